"""HTTP fetching for link probes, robots.txt and page downloads."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import aiohttp

from groundsource.core.constants import DEFAULT_MAX_RESPONSE_SIZE
from groundsource.core.errors import NetworkError, RateLimitError, RedirectLimitError
from groundsource.utils.web_search import BROWSER_HEADERS

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class FetchResponse:
    """What a fetch returned.

    Header names are lower-cased; repeated headers are joined with ", ".
    """

    url: str
    final_url: str
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    redirect_chain: List[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    size: int = 0
    truncated: bool = False

    @property
    def redirect_count(self) -> int:
        return len(self.redirect_chain)

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds. HTTP dates are ignored."""
    if not value:
        return None
    try:
        return max(float(value.strip()), 0.0)
    except ValueError:
        return None


def _collect_headers(raw_headers) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for key, value in raw_headers.items():
        name = key.lower()
        headers[name] = f"{headers[name]}, {value}" if name in headers else value
    return headers


def _decode(body: bytes, charset: Optional[str]) -> str:
    try:
        return body.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


class HttpFetcher:
    """Thin aiohttp wrapper with timeout, redirect limit and size cap.

    Pass a session to share connections across fetches; otherwise a
    short-lived session is opened per request.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self._session = session
        self.headers = dict(headers or BROWSER_HEADERS)

    async def fetch(
        self,
        url: str,
        timeout_ms: int = 10000,
        max_redirects: int = 5,
        max_size: int = DEFAULT_MAX_RESPONSE_SIZE,
        user_agent: Optional[str] = None,
        read_body: bool = True,
    ) -> FetchResponse:
        """GET a URL.

        Args:
            url: Address to fetch
            timeout_ms: Total request timeout in milliseconds
            max_redirects: Redirects to follow before giving up
            max_size: Bytes of body to read at most; the rest is dropped
            user_agent: Overrides the default User-Agent header
            read_body: Skip reading the body when only status and headers
                are needed

        Returns:
            FetchResponse for any HTTP status other than 429

        Raises:
            RateLimitError: On HTTP 429
            RedirectLimitError: When more than max_redirects redirects occur
            NetworkError: On connection failures and timeouts
        """
        if self._session is not None:
            return await self._fetch(
                self._session,
                url,
                timeout_ms,
                max_redirects,
                max_size,
                user_agent,
                read_body,
            )
        async with aiohttp.ClientSession() as session:
            return await self._fetch(
                session, url, timeout_ms, max_redirects, max_size, user_agent, read_body
            )

    async def _fetch(
        self,
        session: aiohttp.ClientSession,
        url: str,
        timeout_ms: int,
        max_redirects: int,
        max_size: int,
        user_agent: Optional[str],
        read_body: bool,
    ) -> FetchResponse:
        headers = dict(self.headers)
        if user_agent:
            headers["User-Agent"] = user_agent

        started = time.perf_counter()
        try:
            timeout_obj = aiohttp.ClientTimeout(total=timeout_ms / 1000)
            async with session.get(
                url,
                headers=headers,
                timeout=timeout_obj,
                allow_redirects=True,
                max_redirects=max_redirects,
            ) as response:
                response_headers = _collect_headers(response.headers)

                if response.status == 429:
                    retry_after = parse_retry_after(response_headers.get("retry-after"))
                    logger.warning(f"Rate limited by {url} (retry after {retry_after})")
                    raise RateLimitError(
                        f"HTTP 429 from {url}", url=url, retry_after=retry_after
                    )

                body = b""
                truncated = False
                if read_body:
                    chunks = []
                    size = 0
                    async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                        chunks.append(chunk)
                        size += len(chunk)
                        if size > max_size:
                            truncated = True
                            break
                    body = b"".join(chunks)[:max_size]

                text = _decode(body, response.charset)
                elapsed_ms = (time.perf_counter() - started) * 1000

                return FetchResponse(
                    url=url,
                    final_url=str(response.url),
                    status=response.status,
                    headers=response_headers,
                    text=text,
                    redirect_chain=[str(r.url) for r in response.history],
                    elapsed_ms=elapsed_ms,
                    size=len(body),
                    truncated=truncated,
                )

        except aiohttp.TooManyRedirects:
            raise RedirectLimitError(
                f"More than {max_redirects} redirects", url=url, limit=max_redirects
            ) from None
        except asyncio.TimeoutError:
            logger.warning(f"Timeout fetching {url}")
            raise NetworkError(f"Timeout after {timeout_ms}ms", url=url) from None
        except aiohttp.ClientError as e:
            logger.warning(f"Error fetching {url}: {e}")
            raise NetworkError(str(e) or type(e).__name__, url=url) from e
