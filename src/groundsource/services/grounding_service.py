"""Grounding service: search, validate and cite in one call.

Ties the search provider, the grounding pipeline and the citation formatter
together for the API and the CLI.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from groundsource.app_utils.config_schema import GroundSourceConfig, PipelineOptions
from groundsource.core.citations import CitationFormatter, CitationOptions
from groundsource.core.errors import ValidationError
from groundsource.core.source import PipelineResult, Source
from groundsource.core.source_pipeline import GroundingPipeline
from groundsource.utils.web_search import DuckDuckGoSearch, SearchProvider

logger = logging.getLogger(__name__)


@dataclass
class GroundingResponse:
    """Pipeline result plus its rendered citation text."""

    query: str
    result: PipelineResult
    citations_text: str
    search_results: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "result": self.result.to_dict(),
            "citations_text": self.citations_text,
            "search_results": list(self.search_results),
        }


def unique_urls(results: List[Dict[str, str]]) -> List[str]:
    """URLs from search results in rank order, without repeats."""
    seen = set()
    urls = []
    for item in results:
        url = item.get("url")
        if url and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


class GroundingService:
    """Finds, validates and cites sources for a query."""

    def __init__(
        self,
        pipeline: GroundingPipeline,
        search_provider: SearchProvider,
        formatter: Optional[CitationFormatter] = None,
        pipeline_options: Optional[PipelineOptions] = None,
        citation_options: Optional[CitationOptions] = None,
    ):
        """Initialize grounding service.

        Args:
            pipeline: Pipeline that validates candidate URLs.
            search_provider: Source of candidate URLs for a query.
            formatter: Citation formatter.
            pipeline_options: Defaults for calls that pass no options.
            citation_options: Defaults for calls that pass no citation options.
        """
        self.pipeline = pipeline
        self.search_provider = search_provider
        self.formatter = formatter or CitationFormatter()
        self.pipeline_options = pipeline_options or PipelineOptions()
        self.citation_options = citation_options or CitationOptions()

    @classmethod
    def create_default(
        cls, config: Optional[GroundSourceConfig] = None
    ) -> "GroundingService":
        """Build a service from configuration."""
        config = config or GroundSourceConfig.create_default()
        return cls(
            pipeline=GroundingPipeline.create_default(config),
            search_provider=DuckDuckGoSearch(
                region=config.search.region,
                safesearch=config.search.safesearch,
                retries=config.search.retries,
            ),
            pipeline_options=config.pipeline,
            citation_options=config.citations,
        )

    async def ground(
        self,
        query: str,
        max_results: int = 10,
        options: Optional[PipelineOptions] = None,
        citation_options: Optional[CitationOptions] = None,
    ) -> GroundingResponse:
        """Search for a query and return validated, cited sources.

        Args:
            query: User query
            max_results: Number of search hits to validate
            options: Pipeline options
            citation_options: Citation rendering options

        Returns:
            GroundingResponse. A search that finds nothing still yields a
            well-formed empty result.

        Raises:
            ValidationError: If the query or max_results is invalid
            DomainError: If options name an unknown domain
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Query must be a non-empty string", field="query")
        if max_results < 1:
            raise ValidationError("max_results must be at least 1", field="max_results")

        search_results = await self.search_provider.search(query, max_results)
        urls = unique_urls(search_results)
        logger.info(f"Validating {len(urls)} search results for: {query}")

        response = await self.validate(query, urls, options, citation_options)
        response.search_results = search_results
        return response

    async def validate(
        self,
        query: str,
        urls: List[str],
        options: Optional[PipelineOptions] = None,
        citation_options: Optional[CitationOptions] = None,
    ) -> GroundingResponse:
        """Validate caller-supplied URLs for a query and cite the survivors."""
        result = await self.pipeline.process(
            query, urls, options or self.pipeline_options
        )
        return GroundingResponse(
            query=query,
            result=result,
            citations_text=self.format_citations(result.sources, citation_options),
        )

    def format_citations(
        self, sources: List[Source], options: Optional[CitationOptions] = None
    ) -> str:
        return self.formatter.format(sources, options or self.citation_options)

    def clear_cache(self) -> None:
        self.pipeline.clear_cache()
