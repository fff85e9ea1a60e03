"""Unit tests for the aiohttp-based HTTP fetcher."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from groundsource.core.errors import NetworkError, RateLimitError, RedirectLimitError
from groundsource.scrapers.url_fetcher import (
    FetchResponse,
    HttpFetcher,
    parse_retry_after,
)


def _make_response(
    status=200,
    headers=None,
    chunks=(b"<html><body>Hello</body></html>",),
    url="https://example.com/page",
    history=(),
):
    """Create a mock aiohttp response that streams the given chunks."""

    async def iter_chunked(size):
        for chunk in chunks:
            yield chunk

    response = MagicMock()
    response.status = status
    response.headers = headers or {"Content-Type": "text/html; charset=utf-8"}
    response.charset = "utf-8"
    response.url = url
    response.history = [MagicMock(url=u) for u in history]
    response.content.iter_chunked = iter_chunked
    return response


def _make_session(response=None, enter_error=None):
    """Create a mock session whose get() is an async context manager."""
    mock_cm = AsyncMock()
    if enter_error is not None:
        mock_cm.__aenter__.side_effect = enter_error
    else:
        mock_cm.__aenter__ = AsyncMock(return_value=response)
    mock_cm.__aexit__ = AsyncMock(return_value=None)

    session = MagicMock()
    session.get = MagicMock(return_value=mock_cm)
    return session


@pytest.mark.unit
class TestParseRetryAfter:
    """Tests for Retry-After parsing."""

    def test_seconds(self):
        assert parse_retry_after("30") == 30.0

    def test_missing(self):
        assert parse_retry_after(None) is None

    def test_http_date_ignored(self):
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None

    def test_negative_clamped(self):
        assert parse_retry_after("-5") == 0.0


@pytest.mark.unit
class TestFetchResponse:
    def test_properties(self):
        response = FetchResponse(
            url="http://a.com",
            final_url="https://a.com/",
            status=200,
            headers={"content-type": "text/html"},
            redirect_chain=["http://a.com"],
        )
        assert response.redirect_count == 1
        assert response.content_type == "text/html"


@pytest.mark.unit
@pytest.mark.asyncio
class TestHttpFetcher:
    """Tests for HttpFetcher.fetch()."""

    async def test_successful_fetch(self):
        response = _make_response(
            headers={"Content-Type": "text/html", "X-Frame-Options": "DENY"},
            history=["http://example.com/page"],
        )
        session = _make_session(response)

        result = await HttpFetcher(session=session).fetch("http://example.com/page")

        assert result.status == 200
        assert result.text == "<html><body>Hello</body></html>"
        assert result.final_url == "https://example.com/page"
        assert result.redirect_chain == ["http://example.com/page"]
        assert result.headers["x-frame-options"] == "DENY"
        assert result.size == len(b"<html><body>Hello</body></html>")
        assert result.truncated is False

    async def test_passes_limits_and_user_agent(self):
        session = _make_session(_make_response())

        await HttpFetcher(session=session).fetch(
            "https://example.com/page",
            timeout_ms=2500,
            max_redirects=2,
            user_agent="TestBot/1.0",
        )

        _, kwargs = session.get.call_args
        assert kwargs["max_redirects"] == 2
        assert kwargs["timeout"].total == 2.5
        assert kwargs["headers"]["User-Agent"] == "TestBot/1.0"

    async def test_body_truncated_at_max_size(self):
        response = _make_response(chunks=[b"a" * 6, b"b" * 6, b"c" * 6])
        session = _make_session(response)

        result = await HttpFetcher(session=session).fetch(
            "https://example.com/page", max_size=10
        )

        assert result.truncated is True
        assert result.size == 10
        assert result.text == "aaaaaabbbb"

    async def test_skip_body(self):
        session = _make_session(_make_response())

        result = await HttpFetcher(session=session).fetch(
            "https://example.com/page", read_body=False
        )

        assert result.text == ""
        assert result.size == 0

    async def test_error_status_is_returned(self):
        session = _make_session(_make_response(status=404))

        result = await HttpFetcher(session=session).fetch("https://example.com/x")

        assert result.status == 404

    async def test_rate_limit(self):
        response = _make_response(
            status=429, headers={"Content-Type": "text/html", "Retry-After": "12"}
        )
        session = _make_session(response)

        with pytest.raises(RateLimitError) as exc_info:
            await HttpFetcher(session=session).fetch("https://example.com/page")

        assert exc_info.value.retry_after == 12.0
        assert exc_info.value.status_code == 429

    async def test_too_many_redirects(self):
        error = aiohttp.TooManyRedirects(MagicMock(), ())
        session = _make_session(enter_error=error)

        with pytest.raises(RedirectLimitError) as exc_info:
            await HttpFetcher(session=session).fetch(
                "https://example.com/loop", max_redirects=3
            )

        assert exc_info.value.limit == 3

    async def test_timeout(self):
        session = _make_session(enter_error=asyncio.TimeoutError())

        with pytest.raises(NetworkError, match="Timeout after 1000ms"):
            await HttpFetcher(session=session).fetch(
                "https://example.com/slow", timeout_ms=1000
            )

    async def test_connection_error(self):
        session = _make_session(enter_error=aiohttp.ClientError("Connection refused"))

        with pytest.raises(NetworkError, match="Connection refused") as exc_info:
            await HttpFetcher(session=session).fetch("https://example.com/down")

        assert exc_info.value.url == "https://example.com/down"
