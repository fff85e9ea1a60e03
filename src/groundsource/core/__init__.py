"""Core models, scoring and the grounding pipeline."""

from .cache import ResultCache
from .citations import CitationFormatter, CitationOptions, CitationStyle
from .domains import Domain, DomainConfig, get_domain_config, resolve_domain
from .errors import (
    DomainError,
    ErrorCode,
    GroundingError,
    NetworkError,
    RateLimitError,
    ScrapingError,
    ValidationError,
)
from .similarity import SimilarityAlgorithm, SimilarityOptions, calculate_similarity
from .source import (
    Citation,
    Issue,
    IssueSeverity,
    IssueType,
    PipelineError,
    PipelinePhase,
    PipelineProgress,
    PipelineResult,
    Source,
    ValidationResult,
)
from .source_pipeline import GroundingPipeline

__all__ = [
    "ResultCache",
    "CitationFormatter",
    "CitationOptions",
    "CitationStyle",
    "Domain",
    "DomainConfig",
    "get_domain_config",
    "resolve_domain",
    "DomainError",
    "ErrorCode",
    "GroundingError",
    "NetworkError",
    "RateLimitError",
    "ScrapingError",
    "ValidationError",
    "SimilarityAlgorithm",
    "SimilarityOptions",
    "calculate_similarity",
    "Citation",
    "Issue",
    "IssueSeverity",
    "IssueType",
    "PipelineError",
    "PipelinePhase",
    "PipelineProgress",
    "PipelineResult",
    "Source",
    "ValidationResult",
    "GroundingPipeline",
]
