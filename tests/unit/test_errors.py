"""Unit tests for error types and helpers."""

import asyncio

import aiohttp
import pytest

from groundsource.core.errors import (
    DomainError,
    ErrorCode,
    NetworkError,
    RateLimitError,
    RedirectLimitError,
    ScrapingError,
    ValidationError,
    error_code_for,
    is_transient,
    user_message,
)


@pytest.mark.unit
class TestErrorCodes:
    """Tests for exception codes."""

    def test_codes(self):
        assert ValidationError("bad").code == ErrorCode.VALIDATION_ERROR
        assert DomainError("x").code == ErrorCode.DOMAIN_ERROR
        assert NetworkError("down").code == ErrorCode.NETWORK_ERROR
        assert RateLimitError("slow").code == ErrorCode.RATE_LIMIT_ERROR
        error = ScrapingError("empty", url="https://a.com")
        assert error.code == ErrorCode.WEB_INVALID

    def test_rate_limit_is_network_error(self):
        error = RateLimitError("slow", url="https://a.com", retry_after=5)
        assert isinstance(error, NetworkError)
        assert error.status_code == 429
        assert error.retry_after == 5

    def test_error_code_for_foreign_exceptions(self):
        assert error_code_for(asyncio.TimeoutError()) == ErrorCode.NETWORK_ERROR
        assert (
            error_code_for(aiohttp.ClientConnectionError()) == ErrorCode.NETWORK_ERROR
        )
        assert error_code_for(KeyError("x")) == ErrorCode.PROCESSING_ERROR


@pytest.mark.unit
class TestIsTransient:
    """Tests for retry eligibility."""

    @pytest.mark.parametrize(
        "error",
        [
            NetworkError("down"),
            RateLimitError("slow"),
            asyncio.TimeoutError(),
            KeyError("x"),
        ],
    )
    def test_transient(self, error):
        assert is_transient(error)

    @pytest.mark.parametrize(
        "error",
        [
            ValidationError("bad"),
            DomainError("x"),
            RedirectLimitError("loop", limit=5),
            ScrapingError("empty", url="https://a.com"),
        ],
    )
    def test_structural(self, error):
        assert not is_transient(error)


@pytest.mark.unit
class TestUserMessage:
    """Tests for user-facing messages."""

    def test_rate_limit_with_retry_after(self):
        message = user_message(RateLimitError("slow", retry_after=30))
        assert "30 seconds" in message

    def test_validation_with_field(self):
        message = user_message(ValidationError("must not be empty", field="query"))
        assert "'query'" in message

    def test_scraping(self):
        message = user_message(ScrapingError("bad markup", url="https://a.com"))
        assert "https://a.com" in message

    def test_unknown(self):
        assert "unexpected" in user_message(RuntimeError("boom"))
