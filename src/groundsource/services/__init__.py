"""Service layer for GroundSource.

Exports are imported lazily: the pipeline depends on the relevance service,
and the grounding service depends on the pipeline.
"""

__all__ = [
    "ConfigService",
    "GroundingResponse",
    "GroundingService",
    "OllamaRelevanceScorer",
    "RelevanceScorer",
]


def __getattr__(name):
    """Lazy import implementation to avoid circular dependencies."""
    if name == "ConfigService":
        from .config_service import ConfigService

        return ConfigService

    if name in ("GroundingResponse", "GroundingService"):
        from . import grounding_service

        return getattr(grounding_service, name)

    if name in ("OllamaRelevanceScorer", "RelevanceScorer"):
        from . import relevance_service

        return getattr(relevance_service, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
