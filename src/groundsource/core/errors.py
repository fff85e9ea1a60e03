"""Error codes and exception types for source grounding."""

import asyncio
from enum import Enum
from typing import Optional

import aiohttp


class ErrorCode(str, Enum):
    """Machine-readable codes attached to pipeline errors."""

    LINK_INVALID = "LINK_INVALID"
    WEB_INVALID = "WEB_INVALID"
    CONTENT_INVALID = "CONTENT_INVALID"
    LOW_RELEVANCE = "LOW_RELEVANCE"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    DOMAIN_ERROR = "DOMAIN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NO_SOURCES_FOUND = "NO_SOURCES_FOUND"


class GroundingError(Exception):
    """Base class for all GroundSource errors."""

    code: ErrorCode = ErrorCode.PROCESSING_ERROR


class ValidationError(GroundingError):
    """Raised when caller input is malformed.

    Structural: never retried.
    """

    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class DomainError(GroundingError):
    """Raised for unknown or misconfigured knowledge domains."""

    code = ErrorCode.DOMAIN_ERROR

    def __init__(self, domain: str, message: Optional[str] = None):
        self.domain = domain
        super().__init__(message or f"Unknown domain: {domain}")


class NetworkError(GroundingError):
    """Raised when a remote resource cannot be reached."""

    code = ErrorCode.NETWORK_ERROR

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class RateLimitError(NetworkError):
    """Raised when a remote host answers HTTP 429."""

    code = ErrorCode.RATE_LIMIT_ERROR

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, url=url, status_code=429)


class RedirectLimitError(NetworkError):
    """Raised when a URL redirects more often than allowed.

    Unlike other network errors this is deterministic, so it is not retried.
    """

    def __init__(self, message: str, url: Optional[str] = None, limit: int = 0):
        self.limit = limit
        super().__init__(message, url=url)


class ScrapingError(GroundingError):
    """Raised when a fetched page has no readable document."""

    code = ErrorCode.WEB_INVALID

    def __init__(self, message: str, url: str):
        self.url = url
        super().__init__(message)


def is_transient(error: BaseException) -> bool:
    """Check whether a failed stage may succeed if retried.

    Input errors, redirect loops and unreadable pages fail the same way every
    time. Anything else (network trouble, timeouts, unexpected exceptions)
    gets another attempt.

    Args:
        error: Exception raised by a validation stage

    Returns:
        True if the stage should be retried
    """
    if isinstance(
        error, (ValidationError, DomainError, RedirectLimitError, ScrapingError)
    ):
        return False
    return isinstance(error, Exception)


def error_code_for(error: BaseException) -> ErrorCode:
    """Map an exception to the error code recorded in pipeline results."""
    if isinstance(error, GroundingError):
        return error.code
    if isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError)):
        return ErrorCode.NETWORK_ERROR
    return ErrorCode.PROCESSING_ERROR


def user_message(error: BaseException) -> str:
    """Build a short user-facing explanation for an error."""
    if isinstance(error, RateLimitError):
        if error.retry_after:
            return (
                "Too many requests. Please try again in "
                f"{int(error.retry_after)} seconds."
            )
        return "Too many requests. Please try again later."
    if isinstance(error, NetworkError):
        if error.status_code:
            return f"Network error (HTTP {error.status_code}): {error}"
        return f"Network error: {error}"
    if isinstance(error, ValidationError):
        if error.field:
            return f"Invalid value for '{error.field}': {error}"
        return f"Invalid input: {error}"
    if isinstance(error, DomainError):
        return f"Domain error: {error}"
    if isinstance(error, ScrapingError):
        return f"Could not read {error.url}: {error}"
    return "An unexpected error occurred. Please try again."
