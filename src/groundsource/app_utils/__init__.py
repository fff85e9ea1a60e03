"""Configuration, logging and path helpers."""

from .config_schema import (
    CacheConfig,
    ContentValidationOptions,
    GroundSourceConfig,
    LinkValidationOptions,
    OllamaConfig,
    PipelineOptions,
    SearchConfig,
    WebValidationOptions,
)
from .paths import get_user_data_dir

__all__ = [
    "CacheConfig",
    "ContentValidationOptions",
    "GroundSourceConfig",
    "LinkValidationOptions",
    "OllamaConfig",
    "PipelineOptions",
    "SearchConfig",
    "WebValidationOptions",
    "get_user_data_dir",
]
