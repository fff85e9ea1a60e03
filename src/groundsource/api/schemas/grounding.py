"""Grounding-related schemas."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class PipelineOptionsSchema(BaseModel):
    """Pipeline options accepted by the grounding endpoints.

    Times are in milliseconds. Stage option blocks are passed through as
    dicts; unknown keys are ignored.
    """

    link_validation: Dict[str, Any] = Field(default_factory=dict)
    web_validation: Dict[str, Any] = Field(default_factory=dict)
    content_validation: Dict[str, Any] = Field(default_factory=dict)
    max_concurrent_requests: int = 5
    timeout: int = 30000
    retry_count: int = 3
    retry_delay: int = 1000
    cache_results: bool = True
    similarity_threshold: float = 0.6
    max_results: int = 10
    sort_results: bool = True
    filter_duplicates: bool = True
    include_metadata: bool = True
    log_progress: bool = True
    domain: Optional[str] = None


class CitationOptionsSchema(BaseModel):
    """Citation rendering options."""

    max_citations: int = 10
    style: Literal["inline", "footnote", "endnote"] = "inline"
    include_metadata: bool = True
    format_markdown: bool = True


class ValidateRequest(BaseModel):
    """Request body for validating caller-supplied URLs."""

    query: str
    urls: List[str]
    options: Optional[PipelineOptionsSchema] = None
    citation_options: Optional[CitationOptionsSchema] = None


class SearchRequest(BaseModel):
    """Request body for search + validate."""

    query: str
    max_results: int = 10
    options: Optional[PipelineOptionsSchema] = None
    citation_options: Optional[CitationOptionsSchema] = None


class SourceMetadataSchema(BaseModel):
    date: str = ""
    author: Optional[str] = None
    language: Optional[str] = None
    word_count: int = 0
    reading_time: int = 0


class SourceSchema(BaseModel):
    """A validated source."""

    url: str
    title: str = ""
    description: str = ""
    content: str = ""
    score: float = 0.0
    relevance: float = 0.0
    metadata: SourceMetadataSchema = Field(default_factory=SourceMetadataSchema)
    validations: Dict[str, Any] = Field(default_factory=dict)


class CitationSchema(BaseModel):
    url: str
    title: str
    description: str
    date: str
    relevance_score: float


class PipelineErrorSchema(BaseModel):
    """A URL that was rejected, and why."""

    url: str
    phase: str
    error: str
    code: str
    retry_count: int = 0


class PipelineResultSchema(BaseModel):
    sources: List[SourceSchema]
    citations: List[CitationSchema]
    errors: List[PipelineErrorSchema]
    score: float
    metadata: Dict[str, Any]


class GroundingResponseSchema(BaseModel):
    """Pipeline result plus rendered citations."""

    query: str
    result: PipelineResultSchema
    citations_text: str
    search_results: List[Dict[str, str]] = Field(default_factory=list)


class CitationsRequest(BaseModel):
    """Request body for formatting already-validated sources."""

    sources: List[SourceSchema]
    options: Optional[CitationOptionsSchema] = None


class CitationsResponse(BaseModel):
    text: str
    count: int


class CacheClearResponse(BaseModel):
    status: str
