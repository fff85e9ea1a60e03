"""Configuration schema and default values for GroundSource."""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

from groundsource.core.citations import CitationOptions, CitationStyle
from groundsource.core.constants import (
    DEFAULT_ALLOWED_PROTOCOLS,
    DEFAULT_LINK_TIMEOUT_MS,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_MAX_RESPONSE_SIZE,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_RELEVANCE_MODEL,
    DEFAULT_USER_AGENT,
    READABILITY_THRESHOLDS,
)
from groundsource.core.domains import resolve_domain
from groundsource.core.errors import ValidationError


def _filter(cls_, data_: Optional[dict]) -> dict:
    """Filter dict to only include known dataclass fields."""
    known = {f.name for f in fields(cls_)}
    return {k: v for k, v in (data_ or {}).items() if k in known}


@dataclass
class LinkValidationOptions:
    """Options for the link validator. Times are in milliseconds."""

    timeout: int = DEFAULT_LINK_TIMEOUT_MS
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    allowed_protocols: List[str] = field(
        default_factory=lambda: list(DEFAULT_ALLOWED_PROTOCOLS)
    )
    allowed_domains: List[str] = field(default_factory=list)
    blocked_domains: List[str] = field(default_factory=list)
    check_whitelist: bool = False
    check_blacklist: bool = True
    validate_robots_txt: bool = True
    max_response_size: int = DEFAULT_MAX_RESPONSE_SIZE
    user_agent: str = DEFAULT_USER_AGENT
    require_canonical: bool = False
    # 404/410 fail the link instead of only warning
    check_broken_links: bool = True

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "LinkValidationOptions":
        return cls(**_filter(cls, data))


@dataclass
class ContentValidationOptions:
    """Bounds and thresholds for the content validator."""

    min_length: int = 100
    max_length: int = 100000
    min_words: int = 20
    max_words: int = 10000
    min_sentences: int = 2
    max_sentences: int = 1000
    min_paragraphs: int = 1
    max_paragraphs: int = 100
    quality_threshold: float = 0.7
    domain_relevance_threshold: float = 0.6
    spam_threshold: float = 0.3
    max_consecutive_chars: int = 3
    max_line_length: int = 120
    readability_level: str = "intermediate"
    allow_html: bool = False
    required_keywords: List[str] = field(default_factory=list)
    forbidden_keywords: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.readability_level not in READABILITY_THRESHOLDS:
            raise ValidationError(
                f"Unknown readability level: {self.readability_level}",
                field="readability_level",
            )

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ContentValidationOptions":
        return cls(**_filter(cls, data))


@dataclass
class WebValidationOptions:
    """Toggles and limits for the web page validator."""

    check_security: bool = True
    check_accessibility: bool = True
    check_seo: bool = True
    check_performance: bool = True
    check_structure: bool = True
    max_load_time: int = 5000  # milliseconds
    min_heading_level: int = 1
    max_heading_level: int = 6
    require_favicon: bool = True
    require_manifest: bool = False
    # When set, the page's main text is also run through the content validator
    content_validation: Optional[ContentValidationOptions] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "WebValidationOptions":
        data = _filter(cls, data)
        content = data.pop("content_validation", None)
        return cls(
            **data,
            content_validation=(
                ContentValidationOptions.from_dict(content)
                if content is not None
                else None
            ),
        )


@dataclass
class PipelineOptions:
    """Options for one pipeline run. Times are in milliseconds."""

    link_validation: LinkValidationOptions = field(
        default_factory=LinkValidationOptions
    )
    web_validation: WebValidationOptions = field(default_factory=WebValidationOptions)
    content_validation: ContentValidationOptions = field(
        default_factory=ContentValidationOptions
    )
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

    def validate(self) -> None:
        """Check option values before any work starts.

        Raises:
            ValidationError: If a numeric option is out of range
            DomainError: If ``domain`` names an unknown domain
        """
        if self.max_concurrent_requests < 1:
            raise ValidationError(
                "max_concurrent_requests must be at least 1",
                field="max_concurrent_requests",
            )
        if self.max_results < 0:
            raise ValidationError(
                "max_results must not be negative", field="max_results"
            )
        if self.retry_count < 0:
            raise ValidationError(
                "retry_count must not be negative", field="retry_count"
            )
        if self.retry_delay < 0:
            raise ValidationError(
                "retry_delay must not be negative", field="retry_delay"
            )
        if self.timeout <= 0:
            raise ValidationError("timeout must be positive", field="timeout")
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValidationError(
                "similarity_threshold must be between 0 and 1",
                field="similarity_threshold",
            )
        resolve_domain(self.domain)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PipelineOptions":
        data = _filter(cls, data)
        link = data.pop("link_validation", None)
        web = data.pop("web_validation", None)
        content = data.pop("content_validation", None)
        return cls(
            **data,
            link_validation=LinkValidationOptions.from_dict(link),
            web_validation=WebValidationOptions.from_dict(web),
            content_validation=ContentValidationOptions.from_dict(content),
        )


@dataclass
class OllamaConfig:
    """Ollama settings for the optional LLM relevance scorer."""

    base_url: str = DEFAULT_OLLAMA_BASE_URL
    timeout: int = 60
    relevance_model: str = DEFAULT_RELEVANCE_MODEL
    enable_relevance_scoring: bool = False


@dataclass
class SearchConfig:
    """DuckDuckGo search settings."""

    max_results: int = 10
    region: str = "us-en"
    safesearch: str = "moderate"
    retries: int = 3


@dataclass
class CacheConfig:
    """Result cache settings."""

    ttl_seconds: int = 3600
    max_entries: int = 100


@dataclass
class GroundSourceConfig:
    """Main configuration for GroundSource."""

    pipeline: PipelineOptions
    citations: CitationOptions
    search: SearchConfig
    ollama: OllamaConfig
    cache: CacheConfig

    def to_dict(self) -> dict:
        """Convert config to dictionary for YAML serialization."""
        citations = asdict(self.citations)
        citations["style"] = self.citations.style.value
        return {
            "pipeline": self.pipeline.to_dict(),
            "citations": citations,
            "search": asdict(self.search),
            "ollama": asdict(self.ollama),
            "cache": asdict(self.cache),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GroundSourceConfig":
        """Create config from dictionary (loaded from YAML)."""
        citations_data = _filter(CitationOptions, data.get("citations"))
        if "style" in citations_data:
            citations_data["style"] = CitationStyle(citations_data["style"])

        return cls(
            pipeline=PipelineOptions.from_dict(data.get("pipeline")),
            citations=CitationOptions(**citations_data),
            search=SearchConfig(**_filter(SearchConfig, data.get("search"))),
            ollama=OllamaConfig(**_filter(OllamaConfig, data.get("ollama"))),
            cache=CacheConfig(**_filter(CacheConfig, data.get("cache"))),
        )

    @classmethod
    def create_default(cls) -> "GroundSourceConfig":
        """Create default configuration."""
        return cls(
            pipeline=PipelineOptions(),
            citations=CitationOptions(),
            search=SearchConfig(),
            ollama=OllamaConfig(),
            cache=CacheConfig(),
        )
