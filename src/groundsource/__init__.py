"""
GroundSource: Source validation and citation for grounded answers

Validates candidate web sources for a query through link, page and content
checks, scores their relevance and formats the survivors as citations.
"""

from groundsource.core import (
    CitationFormatter,
    CitationOptions,
    CitationStyle,
    GroundingPipeline,
    PipelineResult,
    Source,
    calculate_similarity,
)
from groundsource.app_utils.config_schema import GroundSourceConfig, PipelineOptions

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "GroundingPipeline",
    "PipelineOptions",
    "PipelineResult",
    "Source",
    # Citations
    "CitationFormatter",
    "CitationOptions",
    "CitationStyle",
    # Similarity
    "calculate_similarity",
    # Config
    "GroundSourceConfig",
]
