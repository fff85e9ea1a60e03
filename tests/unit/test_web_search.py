"""Unit tests for groundsource.utils.web_search module."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bs4 import BeautifulSoup

from groundsource.utils.web_search import (
    DuckDuckGoSearch,
    clean_html_for_content,
    extract_main_content,
    find_main_content,
    search_duckduckgo,
)

# ============================================================================
# Search
# ============================================================================


@pytest.mark.unit
@pytest.mark.asyncio
class TestSearchDuckDuckGo:
    """Tests for DuckDuckGo search functionality."""

    async def test_successful_search(self):
        with patch("groundsource.utils.web_search.DDGS") as mock_ddgs:
            mock_instance = MagicMock()
            mock_instance.text.return_value = [
                {
                    "href": "https://example.com/page1",
                    "title": "Excel Pivot Tables",
                    "body": "Create a pivot table...",
                },
                {
                    "href": "https://example.com/page2",
                    "title": "Pivot Table Tips",
                    "body": "Ten tips...",
                },
            ]
            mock_ddgs.return_value = mock_instance

            results = await search_duckduckgo("excel pivot", max_results=5)

            assert len(results) == 2
            assert results[0] == {
                "url": "https://example.com/page1",
                "title": "Excel Pivot Tables",
                "snippet": "Create a pivot table...",
            }
            mock_instance.text.assert_called_once_with(
                "excel pivot",
                region="us-en",
                safesearch="moderate",
                timelimit=None,
                max_results=5,
            )

    async def test_alternative_keys_and_missing_urls(self):
        """'link' and 'snippet' are accepted; hits without a URL are dropped."""
        with patch("groundsource.utils.web_search.DDGS") as mock_ddgs:
            mock_instance = MagicMock()
            mock_instance.text.return_value = [
                {
                    "link": "https://example.com/page1",
                    "title": "Test Page",
                    "snippet": "Test snippet",
                },
                {"title": "No URL"},
            ]
            mock_ddgs.return_value = mock_instance

            results = await search_duckduckgo("test query")

            assert len(results) == 1
            assert results[0]["url"] == "https://example.com/page1"
            assert results[0]["snippet"] == "Test snippet"

    async def test_retry_on_failure(self):
        with patch("groundsource.utils.web_search.DDGS") as mock_ddgs, patch(
            "groundsource.utils.web_search.asyncio.sleep", new=AsyncMock()
        ) as mock_sleep:
            mock_instance = MagicMock()
            mock_instance.text.side_effect = [
                Exception("Rate limited"),
                [{"href": "https://example.com", "title": "Test", "body": "Content"}],
            ]
            mock_ddgs.return_value = mock_instance

            results = await search_duckduckgo("test")

            assert len(results) == 1
            assert mock_instance.text.call_count == 2
            mock_sleep.assert_awaited_once_with(1)

    async def test_fails_after_retries(self):
        """Persistent failures yield an empty list instead of raising."""
        with patch("groundsource.utils.web_search.DDGS") as mock_ddgs, patch(
            "groundsource.utils.web_search.asyncio.sleep", new=AsyncMock()
        ):
            mock_instance = MagicMock()
            mock_instance.text.side_effect = Exception("Persistent error")
            mock_ddgs.return_value = mock_instance

            results = await search_duckduckgo("test", retries=2)

            assert results == []
            assert mock_instance.text.call_count == 2

    async def test_provider_passes_settings(self):
        with patch(
            "groundsource.utils.web_search.search_duckduckgo",
            new=AsyncMock(return_value=[]),
        ) as mock_search:
            provider = DuckDuckGoSearch(region="de-de", safesearch="off", retries=1)

            await provider.search("query", max_results=4)

            mock_search.assert_awaited_once_with(
                "query", max_results=4, region="de-de", safesearch="off", retries=1
            )


# ============================================================================
# HTML helpers
# ============================================================================


@pytest.mark.unit
class TestCleanHtml:
    """Tests for clean_html_for_content."""

    def test_removes_noise(self):
        soup = BeautifulSoup(
            "<body><nav>Menu</nav><script>x()</script>"
            "<div class='cookie-banner'>Accept</div>"
            "<div id='sidebar'>Links</div><p>Keep me</p><p> </p></body>",
            "html.parser",
        )

        cleaned = clean_html_for_content(soup)

        text = cleaned.get_text(" ", strip=True)
        assert text == "Keep me"


@pytest.mark.unit
class TestExtractMainContent:
    """Tests for main content extraction."""

    def test_prefers_main_element(self):
        soup = BeautifulSoup(
            "<body><div>Outside</div><article>Inside</article></body>",
            "html.parser",
        )
        assert find_main_content(soup).name == "article"

    def test_falls_back_to_body(self):
        soup = BeautifulSoup("<body><div>Only</div></body>", "html.parser")
        assert find_main_content(soup).name == "body"

    def test_blocks_joined_by_blank_lines(self):
        html = (
            "<html><body><header>Site</header><main><h1>Title</h1>"
            "<p>First   paragraph.</p><ul><li><p>Item one</p></li></ul>"
            "</main><footer>Footer</footer></body></html>"
        )

        text, markdown = extract_main_content(html)

        assert text == "Title\n\nFirst paragraph.\n\nItem one"
        assert markdown.startswith("# Title")
        assert "Footer" not in markdown

    def test_text_without_blocks(self):
        html = "<html><body><div>Loose text</div></body></html>"
        text, _ = extract_main_content(html)
        assert text == "Loose text"

    def test_empty_document(self):
        assert extract_main_content("") == ("", "")
