"""Integration tests for grounding API endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from groundsource import __version__
from groundsource.api.deps import get_grounding_service
from groundsource.api.main import create_app
from groundsource.core.source_pipeline import GroundingPipeline
from groundsource.services import GroundingService
from groundsource.validators.content_validator import ContentValidator
from groundsource.validators.link_validator import LinkValidator
from groundsource.validators.web_validator import WebPageValidator
from conftest import FakeFetcher, html_response, make_html

RELEVANT = "https://example.com/pivot-tables"
MISSING = "https://example.com/missing"

FAST_OPTIONS = {"retry_delay": 0, "log_progress": False}


class StaticSearch:
    """Search provider returning fixed results."""

    def __init__(self, results):
        self.results = results
        self.queries = []

    async def search(self, query, max_results=10):
        self.queries.append((query, max_results))
        return self.results[:max_results]


@pytest.fixture
def fetcher():
    return FakeFetcher({RELEVANT: html_response(RELEVANT, make_html())})


@pytest.fixture
def search_provider():
    return StaticSearch(
        [
            {"url": RELEVANT, "title": "Excel Pivot Tables", "snippet": "How to"},
            {"url": MISSING, "title": "Gone", "snippet": "Missing page"},
        ]
    )


@pytest.fixture
def grounding_service(fetcher, search_provider):
    link_validator = LinkValidator(fetcher)
    content_validator = ContentValidator()
    pipeline = GroundingPipeline(
        link_validator,
        WebPageValidator(link_validator, content_validator, fetcher),
        content_validator,
    )
    return GroundingService(pipeline, search_provider)


@pytest.fixture
def app(grounding_service):
    """Create test application with a grounding service wired to fakes."""
    app = create_app()
    app.dependency_overrides[get_grounding_service] = lambda: grounding_service
    return app


@pytest.fixture
async def client(app):
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.mark.integration
class TestHealthAPI:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}


@pytest.mark.integration
class TestValidateAPI:
    """Test POST /api/grounding/validate."""

    @pytest.mark.asyncio
    async def test_validate_urls(self, client):
        response = await client.post(
            "/api/grounding/validate",
            json={
                "query": "excel pivot tables",
                "urls": [RELEVANT, MISSING],
                "options": FAST_OPTIONS,
                "citation_options": {"style": "footnote", "include_metadata": False},
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "excel pivot tables"
        assert [s["url"] for s in data["result"]["sources"]] == [RELEVANT]
        assert data["result"]["citations"][0]["url"] == RELEVANT
        assert data["result"]["errors"] == [
            {
                "url": MISSING,
                "phase": "link",
                "error": "HTTP 404 error",
                "code": "LINK_INVALID",
                "retry_count": 0,
            }
        ]
        assert "Footnotes:" in data["citations_text"]
        assert data["search_results"] == []

    @pytest.mark.asyncio
    async def test_metadata_can_be_omitted(self, client):
        response = await client.post(
            "/api/grounding/validate",
            json={
                "query": "excel pivot tables",
                "urls": [RELEVANT],
                "options": {**FAST_OPTIONS, "include_metadata": False},
            },
        )

        assert response.status_code == 200
        assert response.json()["result"]["sources"][0]["validations"] == {}

    @pytest.mark.asyncio
    async def test_no_sources(self, client):
        response = await client.post(
            "/api/grounding/validate",
            json={"query": "excel", "urls": [MISSING], "options": FAST_OPTIONS},
        )

        assert response.status_code == 200
        errors = response.json()["result"]["errors"]
        assert errors[-1]["code"] == "NO_SOURCES_FOUND"

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self, client):
        response = await client.post(
            "/api/grounding/validate", json={"query": "", "urls": [RELEVANT]}
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Query must be a non-empty string"

    @pytest.mark.asyncio
    async def test_unknown_domain_rejected(self, client):
        response = await client.post(
            "/api/grounding/validate",
            json={
                "query": "excel",
                "urls": [RELEVANT],
                "options": {"domain": "astrology"},
            },
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Unknown domain: astrology"

    @pytest.mark.asyncio
    async def test_malformed_body(self, client):
        response = await client.post("/api/grounding/validate", json={"query": "excel"})
        assert response.status_code == 422


@pytest.mark.integration
class TestSearchAPI:
    """Test POST /api/grounding/search."""

    @pytest.mark.asyncio
    async def test_search(self, client, search_provider):
        response = await client.post(
            "/api/grounding/search",
            json={
                "query": "excel pivot tables",
                "max_results": 5,
                "options": FAST_OPTIONS,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert search_provider.queries == [("excel pivot tables", 5)]
        assert len(data["search_results"]) == 2
        assert [s["url"] for s in data["result"]["sources"]] == [RELEVANT]
        assert data["citations_text"].startswith("[1] Excel Pivot Tables")

    @pytest.mark.asyncio
    async def test_invalid_max_results(self, client):
        response = await client.post(
            "/api/grounding/search", json={"query": "excel", "max_results": 0}
        )
        assert response.status_code == 422


@pytest.mark.integration
class TestCitationsAPI:
    """Test POST /api/grounding/citations."""

    SOURCES = [
        {
            "url": "https://example.com/low",
            "title": "Lower Ranked",
            "description": "Less useful",
            "score": 0.5,
            "relevance": 0.5,
            "metadata": {"date": "2024-01-01"},
        },
        {
            "url": "https://example.com/high",
            "title": "Higher Ranked",
            "description": "More useful",
            "score": 0.9,
            "relevance": 0.9,
            "metadata": {"date": "2024-02-01"},
        },
    ]

    @pytest.mark.asyncio
    async def test_endnotes(self, client):
        response = await client.post(
            "/api/grounding/citations",
            json={
                "sources": self.SOURCES,
                "options": {"style": "endnote", "include_metadata": False},
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["text"].startswith("Higher Ranked [1]")
        assert "References:" in data["text"]

    @pytest.mark.asyncio
    async def test_max_citations(self, client):
        response = await client.post(
            "/api/grounding/citations",
            json={"sources": self.SOURCES, "options": {"max_citations": 1}},
        )

        assert response.json()["count"] == 1

    @pytest.mark.asyncio
    async def test_unknown_style(self, client):
        response = await client.post(
            "/api/grounding/citations",
            json={"sources": self.SOURCES, "options": {"style": "apa"}},
        )
        assert response.status_code == 422


@pytest.mark.integration
class TestCacheAPI:
    @pytest.mark.asyncio
    async def test_clear_cache(self, client, fetcher):
        body = {
            "query": "excel pivot tables",
            "urls": [RELEVANT],
            "options": FAST_OPTIONS,
        }
        await client.post("/api/grounding/validate", json=body)
        calls_after_first = len(fetcher.calls)

        await client.post("/api/grounding/validate", json=body)
        assert len(fetcher.calls) == calls_after_first

        response = await client.delete("/api/grounding/cache")
        assert response.status_code == 200
        assert response.json() == {"status": "cleared"}

        await client.post("/api/grounding/validate", json=body)
        assert len(fetcher.calls) > calls_after_first
