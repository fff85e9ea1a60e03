"""
Pytest configuration and shared fixtures.
"""

import logging
from typing import Dict, List, Optional, Union

import pytest

from groundsource.core.source import (
    ContentMetadata,
    LinkMetadata,
    Source,
    SourceMetadata,
    ValidationResult,
    WebMetadata,
)
from groundsource.scrapers.url_fetcher import FetchResponse

# ============================================================================
# HTML Fixtures
# ============================================================================

DEFAULT_PARAGRAPHS = [
    "Pivot tables summarize large data sets in a few clicks. Select a range, "
    "open the Insert tab and choose PivotTable to start.",
    "Drag fields into rows, columns and values to group your data. Filters let "
    "you focus on the records that matter for the report you are building.",
]


def make_html(
    title: Optional[str] = "Excel Pivot Tables",
    description: Optional[str] = (
        "Learn how to create and customize pivot tables in Excel to analyze data."
    ),
    paragraphs: Optional[List[str]] = None,
    head_extra: str = "",
    body_extra: str = "",
) -> str:
    """Build a well-formed HTML page."""
    paragraphs = DEFAULT_PARAGRAPHS if paragraphs is None else paragraphs
    head = ['<meta charset="utf-8">']
    if title is not None:
        head.append(f"<title>{title}</title>")
    if description is not None:
        head.append(f'<meta name="description" content="{description}">')
    head.append(head_extra)
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        '<html lang="en"><head>'
        + "".join(head)
        + "</head><body><main><h1>"
        + (title or "Untitled")
        + "</h1>"
        + body
        + "</main>"
        + body_extra
        + "</body></html>"
    )


def html_response(
    url: str,
    html: str,
    status: int = 200,
    headers: Optional[Dict[str, str]] = None,
    elapsed_ms: float = 50.0,
) -> FetchResponse:
    """Build a FetchResponse carrying an HTML page."""
    all_headers = {"content-type": "text/html; charset=utf-8"}
    all_headers.update(headers or {})
    return FetchResponse(
        url=url,
        final_url=url,
        status=status,
        headers=all_headers,
        text=html,
        elapsed_ms=elapsed_ms,
        size=len(html.encode()),
    )


class FakeFetcher:
    """Stands in for HttpFetcher, serving canned responses by URL.

    Unknown URLs answer HTTP 404. An exception registered for a URL is
    raised instead of returning a response.
    """

    def __init__(
        self, responses: Optional[Dict[str, Union[FetchResponse, Exception]]] = None
    ):
        self.responses = dict(responses or {})
        self.calls: List[str] = []

    async def fetch(
        self,
        url,
        timeout_ms=10000,
        max_redirects=5,
        max_size=10 * 1024 * 1024,
        user_agent=None,
        read_body=True,
    ) -> FetchResponse:
        self.calls.append(url)
        outcome = self.responses.get(url)
        if outcome is None:
            return FetchResponse(url=url, final_url=url, status=404)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def fake_fetcher():
    """Provide an empty FakeFetcher; tests register responses on it."""
    return FakeFetcher()


# ============================================================================
# Model Fixtures
# ============================================================================


def make_source(
    url: str = "https://example.com/a",
    title: str = "Example Title",
    description: str = "Example description",
    score: float = 0.8,
    relevance: float = 0.8,
    date: str = "2024-01-01T00:00:00+00:00",
) -> Source:
    """Build a Source without running any validation."""
    return Source(
        url=url,
        title=title,
        description=description,
        content="Example content",
        score=score,
        relevance=relevance,
        metadata=SourceMetadata(date=date, word_count=2, reading_time=1),
    )


def valid_result(
    metadata=None, score: float = 0.9, link_result: Optional[ValidationResult] = None
) -> ValidationResult:
    return ValidationResult(
        is_valid=True,
        score=score,
        issues=[],
        metadata=metadata,
        link_result=link_result,
    )


def link_ok(url: str = "https://example.com/a") -> ValidationResult:
    return valid_result(LinkMetadata(url=url, status_code=200))


def web_ok(
    title: str = "Excel Pivot Tables",
    description: str = "Create pivot tables in Excel",
) -> ValidationResult:
    return valid_result(
        WebMetadata(
            title=title,
            description=description,
            main_text=" ".join(DEFAULT_PARAGRAPHS),
            main_content=" ".join(DEFAULT_PARAGRAPHS),
        )
    )


def content_ok() -> ValidationResult:
    return valid_result(ContentMetadata(word_count=40, reading_time=1))


@pytest.fixture
def sample_sources():
    """Two sources with distinct combined scores."""
    return [
        make_source(
            url="https://example.com/low",
            title="Lower Ranked",
            description="Less useful",
            score=0.5,
            relevance=0.5,
        ),
        make_source(
            url="https://example.com/high",
            title="Higher Ranked",
            description="More useful",
            score=0.9,
            relevance=0.9,
        ),
    ]


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def restore_root_logging():
    """Undo level, handler and stream changes made by configure_logging."""
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    streams = {h: h.stream for h in handlers if type(h) is logging.StreamHandler}
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler, stream in streams.items():
        handler.setStream(stream)
    root.setLevel(level)
