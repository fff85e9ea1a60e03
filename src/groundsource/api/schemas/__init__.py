"""Pydantic schemas for API request/response models."""

from .common import ErrorResponse, HealthResponse
from .grounding import (
    CacheClearResponse,
    CitationOptionsSchema,
    CitationSchema,
    CitationsRequest,
    CitationsResponse,
    GroundingResponseSchema,
    PipelineErrorSchema,
    PipelineOptionsSchema,
    PipelineResultSchema,
    SearchRequest,
    SourceMetadataSchema,
    SourceSchema,
    ValidateRequest,
)

__all__ = [
    "CacheClearResponse",
    "CitationOptionsSchema",
    "CitationSchema",
    "CitationsRequest",
    "CitationsResponse",
    "ErrorResponse",
    "GroundingResponseSchema",
    "HealthResponse",
    "PipelineErrorSchema",
    "PipelineOptionsSchema",
    "PipelineResultSchema",
    "SearchRequest",
    "SourceMetadataSchema",
    "SourceSchema",
    "ValidateRequest",
]
