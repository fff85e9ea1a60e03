"""Data models shared by the validators, the pipeline and the citation formatter.

Every model is a plain dataclass with a ``to_dict`` that yields JSON-ready
values, so results can be returned from the API or printed by the CLI
without a separate conversion layer.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from groundsource.core.errors import ErrorCode


class IssueSeverity(str, Enum):
    """Severity of a validation finding."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class IssueType(str, Enum):
    """Category of a validation finding."""

    # Link stage
    PROTOCOL = "protocol"
    DOMAIN = "domain"
    STATUS = "status"
    ROBOTS = "robots"
    REDIRECT = "redirect"
    FORMAT = "format"
    # Web stage
    SECURITY = "security"
    ACCESSIBILITY = "accessibility"
    SEO = "seo"
    PERFORMANCE = "performance"
    STRUCTURE = "structure"
    STANDARDS = "standards"
    # Content stage
    LENGTH = "length"
    WORDS = "words"
    SENTENCES = "sentences"
    PARAGRAPHS = "paragraphs"
    READABILITY = "readability"
    QUALITY = "quality"
    RELEVANCE = "relevance"
    SPAM = "spam"
    KEYWORDS = "keywords"


class PipelinePhase(str, Enum):
    """Stage of the pipeline in which a per-URL error happened."""

    LINK = "link"
    WEB = "web"
    CONTENT = "content"
    PROCESSING = "processing"


@dataclass
class Issue:
    """A single finding produced by a validator."""

    type: IssueType
    severity: IssueSeverity
    message: str
    suggestion: Optional[str] = None
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "suggestion": self.suggestion,
            "code": self.code,
        }


@dataclass
class LinkMetadata:
    """What the link validator learned about an address."""

    url: str
    normalized_url: str = ""
    protocol: str = ""
    domain: str = ""
    path: str = ""
    query: str = ""
    fragment: str = ""
    final_url: Optional[str] = None
    status_code: Optional[int] = None
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    last_modified: Optional[str] = None
    redirect_count: int = 0
    redirect_chain: List[str] = field(default_factory=list)
    response_time: float = 0.0  # milliseconds
    is_canonical: bool = True
    robots_allowed: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class WebMetadata:
    """Page-level facts extracted from a fetched document."""

    title: str = ""
    description: str = ""
    language: Optional[str] = None
    charset: Optional[str] = None
    viewport: Optional[str] = None
    author: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    open_graph: Dict[str, str] = field(default_factory=dict)
    twitter: Dict[str, str] = field(default_factory=dict)
    schema_org: List[Any] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=dict)
    load_time: float = 0.0  # milliseconds
    size: int = 0
    resource_counts: Dict[str, int] = field(default_factory=dict)
    security_headers: Dict[str, Optional[str]] = field(default_factory=dict)
    main_text: str = ""
    main_content: str = ""  # markdown rendering of the main content

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ContentMetadata:
    """Text statistics computed by the content validator."""

    length: int = 0
    word_count: int = 0
    sentence_count: int = 0
    paragraph_count: int = 0
    readability_score: float = 0.0
    quality_score: float = 0.0
    relevance_score: float = 0.0
    spam_score: float = 0.0
    keywords: List[str] = field(default_factory=list)
    language: str = "en"
    reading_time: int = 0  # minutes

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


StageMetadata = Union[LinkMetadata, WebMetadata, ContentMetadata]


@dataclass
class ValidationResult:
    """Outcome of one validation stage.

    Any error-severity issue makes the result invalid; validators build
    results through :meth:`from_issues` so the two never disagree.
    """

    is_valid: bool
    score: float
    issues: List[Issue] = field(default_factory=list)
    metadata: Optional[StageMetadata] = None
    link_result: Optional["ValidationResult"] = None

    @classmethod
    def from_issues(
        cls,
        issues: List[Issue],
        score: float,
        metadata: Optional[StageMetadata] = None,
        link_result: Optional["ValidationResult"] = None,
    ) -> "ValidationResult":
        """Build a result whose validity follows from its issues."""
        return cls(
            is_valid=not any(i.severity == IssueSeverity.ERROR for i in issues),
            score=max(0.0, min(1.0, score)),
            issues=issues,
            metadata=metadata,
            link_result=link_result,
        )

    @property
    def errors(self) -> List[Issue]:
        return [i for i in self.issues if i.severity == IssueSeverity.ERROR]

    @property
    def warnings(self) -> List[Issue]:
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING]

    def first_error_message(self) -> str:
        """Get the message of the first error issue, for error reporting."""
        errors = self.errors
        return errors[0].message if errors else "Validation failed"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "is_valid": self.is_valid,
            "score": self.score,
            "issues": [i.to_dict() for i in self.issues],
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }
        if self.link_result is not None:
            data["link_result"] = self.link_result.to_dict()
        return data


@dataclass
class SourceMetadata:
    """Descriptive metadata attached to an accepted source."""

    date: str
    author: Optional[str] = None
    language: Optional[str] = None
    word_count: int = 0
    reading_time: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Source:
    """A web source that passed every validation stage.

    ``score`` is the mean of the three stage scores and ``relevance`` the
    similarity of the page to the query, both in [0, 1].
    """

    url: str
    title: str
    description: str
    content: str
    score: float
    relevance: float
    metadata: SourceMetadata
    validations: Dict[str, ValidationResult] = field(default_factory=dict)

    @property
    def combined_score(self) -> float:
        """Average of quality score and relevance, used for ranking."""
        return (self.score + self.relevance) / 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "score": self.score,
            "relevance": self.relevance,
            "metadata": self.metadata.to_dict(),
            "validations": {k: v.to_dict() for k, v in self.validations.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Source":
        """Create from dictionary representation.

        Validation payloads are not restored; a rebuilt source is meant for
        formatting, not for re-validation.
        """
        metadata = data.get("metadata") or {}
        return cls(
            url=data["url"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            content=data.get("content", ""),
            score=float(data.get("score", 0.0)),
            relevance=float(data.get("relevance", 0.0)),
            metadata=SourceMetadata(
                date=metadata.get("date", ""),
                author=metadata.get("author"),
                language=metadata.get("language"),
                word_count=metadata.get("word_count", 0),
                reading_time=metadata.get("reading_time", 0),
            ),
        )


@dataclass
class Citation:
    """Attribution record for one returned source."""

    url: str
    title: str
    description: str
    date: str
    relevance_score: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PipelineError:
    """A per-URL failure recorded instead of being raised."""

    url: str
    phase: PipelinePhase
    error: str
    code: ErrorCode
    retry_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "phase": self.phase.value,
            "error": self.error,
            "code": self.code.value,
            "retry_count": self.retry_count,
        }


@dataclass
class PipelineMetadata:
    """Run statistics for one pipeline invocation."""

    query: str
    timestamp: str
    duration: float = 0.0  # milliseconds
    total_sources: int = 0
    valid_sources: int = 0
    average_score: float = 0.0
    retries: int = 0
    cache_hits: int = 0
    batches: int = 0
    processing_steps: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PipelineResult:
    """Everything one ``process`` call produces."""

    sources: List[Source]
    citations: List[Citation]
    errors: List[PipelineError]
    score: float
    metadata: PipelineMetadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sources": [s.to_dict() for s in self.sources],
            "citations": [c.to_dict() for c in self.citations],
            "errors": [e.to_dict() for e in self.errors],
            "score": self.score,
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class PipelineProgress:
    """Snapshot yielded by the streaming pipeline after each batch.

    Each snapshot supersedes the previous one. The last snapshot has
    ``complete`` set and carries the final result.
    """

    batch: int
    total_batches: int
    processed: int
    total: int
    sources: List[Source] = field(default_factory=list)
    errors: List[PipelineError] = field(default_factory=list)
    complete: bool = False
    result: Optional[PipelineResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch": self.batch,
            "total_batches": self.total_batches,
            "processed": self.processed,
            "total": self.total,
            "sources": [s.to_dict() for s in self.sources],
            "errors": [e.to_dict() for e in self.errors],
            "complete": self.complete,
            "result": self.result.to_dict() if self.result else None,
        }
