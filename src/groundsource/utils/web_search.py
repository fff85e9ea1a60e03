"""Web search and HTML helpers.

Provides the search collaborator (DuckDuckGo through ``ddgs``) that supplies
candidate URLs, and the BeautifulSoup helpers that pull readable main
content out of fetched pages.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Tuple

from bs4 import BeautifulSoup, Tag
from ddgs import DDGS
from markdownify import markdownify as md

logger = logging.getLogger(__name__)

# Browser-like headers to bypass bot detection
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}

MAIN_CONTENT_SELECTORS = ["main", "article", '[role="main"]', ".content", "#content"]
BLOCK_TAGS = ["p", "li", "h1", "h2", "h3", "h4", "h5", "h6", "pre", "blockquote"]


class SearchProvider(Protocol):
    """Anything that turns a query into ranked ``{title, url, snippet}`` dicts."""

    async def search(self, query: str, max_results: int = 10) -> List[Dict[str, str]]:
        ...


async def search_duckduckgo(
    query: str,
    max_results: int = 10,
    region: str = "us-en",
    safesearch: str = "moderate",
    retries: int = 3,
) -> List[Dict[str, str]]:
    """
    Search DuckDuckGo and return top N results.

    Args:
        query: Search query string
        max_results: Maximum number of results to return
        region: DuckDuckGo region code
        safesearch: "on", "moderate" or "off"
        retries: Attempts before giving up

    Returns:
        List of dicts with keys: 'url', 'title', 'snippet'
        Returns empty list on failure
    """
    logger.info(f"Searching DuckDuckGo for: {query}")

    try:
        # DuckDuckGo search with exponential backoff
        for attempt in range(retries):
            try:
                results = await asyncio.to_thread(
                    lambda: list(
                        DDGS().text(
                            query,
                            region=region,
                            safesearch=safesearch,
                            timelimit=None,
                            max_results=max_results,
                        )
                    )
                )

                formatted = [
                    {
                        "url": r.get("href", r.get("link", "")),
                        "title": r.get("title", "Untitled"),
                        "snippet": r.get("body", r.get("snippet", "")),
                    }
                    for r in results
                ]
                formatted = [r for r in formatted if r["url"]]

                logger.info(f"Found {len(formatted)} search results")
                return formatted

            except Exception as e:
                if attempt < retries - 1:
                    wait_time = 2**attempt  # 1s, 2s
                    logger.warning(
                        f"DuckDuckGo search failed (attempt {attempt + 1}), "
                        f"retrying in {wait_time}s: {e}"
                    )
                    await asyncio.sleep(wait_time)
                else:
                    raise

        return []

    except Exception as e:
        logger.error(f"DuckDuckGo search failed after retries: {e}")
        return []


class DuckDuckGoSearch:
    """SearchProvider backed by :func:`search_duckduckgo`."""

    def __init__(
        self, region: str = "us-en", safesearch: str = "moderate", retries: int = 3
    ):
        self.region = region
        self.safesearch = safesearch
        self.retries = retries

    async def search(self, query: str, max_results: int = 10) -> List[Dict[str, str]]:
        return await search_duckduckgo(
            query,
            max_results=max_results,
            region=self.region,
            safesearch=self.safesearch,
            retries=self.retries,
        )


def clean_html_for_content(soup: BeautifulSoup | Tag) -> BeautifulSoup | Tag:
    """
    Remove scripts, navigation, ads and other noise from a parsed page.

    Works in place on the given tree, so pass a copy if the original
    structure is still needed.

    Args:
        soup: BeautifulSoup object or tag

    Returns:
        The same object, cleaned
    """
    for tag in soup.find_all(
        ["script", "style", "iframe", "img", "svg", "noscript", "link", "meta"]
    ):
        tag.decompose()

    for tag in soup.find_all(["nav", "header", "footer", "aside", "form", "button"]):
        tag.decompose()

    noise_classes = [
        "advertisement",
        "ads",
        "social",
        "share",
        "cookie",
        "modal",
        "popup",
        "sidebar",
        "navigation",
        "menu",
        "comments",
        "related",
    ]
    for cls in noise_classes:
        for tag in soup.find_all(class_=lambda x: x and cls in x.lower()):
            tag.decompose()

    noise_ids = ["sidebar", "footer", "header", "nav", "menu", "comments", "cookie"]
    for noise_id in noise_ids:
        for tag in soup.find_all(id=lambda x: x and noise_id in x.lower()):
            tag.decompose()

    for tag in soup.find_all(["p", "div", "span"]):
        if not tag.get_text(strip=True):
            tag.decompose()

    return soup


def find_main_content(soup: BeautifulSoup) -> Optional[Tag]:
    """Return the main content element, falling back to <body>."""
    for selector in MAIN_CONTENT_SELECTORS:
        content = soup.select_one(selector)
        if content:
            return content
    return soup.find("body")


def extract_main_content(html: str) -> Tuple[str, str]:
    """Extract the readable main content of a page.

    Parses its own copy of the document, so callers can keep inspecting
    their tree.

    Args:
        html: Raw HTML

    Returns:
        Tuple of (plain_text, markdown). Paragraphs in the plain text are
        separated by blank lines. Both are empty if nothing was found.
    """
    soup = BeautifulSoup(html, "html.parser")
    content = find_main_content(soup)
    if content is None:
        return "", ""

    content = clean_html_for_content(content)

    blocks = []
    for block in content.find_all(BLOCK_TAGS):
        # Nested blocks (p inside li, etc.) are covered by their parent
        if block.find_parent(["p", "li", "pre", "blockquote"]):
            continue
        text = " ".join(block.get_text(" ", strip=True).split())
        if text:
            blocks.append(text)
    if not blocks:
        text = " ".join(content.get_text(" ", strip=True).split())
        blocks = [text] if text else []

    plain_text = "\n\n".join(blocks)
    markdown = md(str(content), heading_style="ATX").strip()
    return plain_text, markdown
