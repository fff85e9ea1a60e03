"""Grounding endpoints: validate URLs, search and cite."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

from groundsource.api.deps import GroundingServiceDep
from groundsource.api.schemas import (
    CacheClearResponse,
    CitationOptionsSchema,
    CitationsRequest,
    CitationsResponse,
    GroundingResponseSchema,
    PipelineOptionsSchema,
    SearchRequest,
    ValidateRequest,
)
from groundsource.app_utils.config_schema import PipelineOptions
from groundsource.core.citations import CitationOptions, CitationStyle
from groundsource.core.errors import DomainError, ValidationError
from groundsource.core.source import Source
from groundsource.services import GroundingResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _pipeline_options(
    schema: Optional[PipelineOptionsSchema],
) -> Optional[PipelineOptions]:
    if schema is None:
        return None
    return PipelineOptions.from_dict(schema.model_dump())


def _citation_options(
    schema: Optional[CitationOptionsSchema],
) -> Optional[CitationOptions]:
    if schema is None:
        return None
    return CitationOptions(
        max_citations=schema.max_citations,
        style=CitationStyle(schema.style),
        include_metadata=schema.include_metadata,
        format_markdown=schema.format_markdown,
    )


def _to_response(response: GroundingResponse) -> GroundingResponseSchema:
    return GroundingResponseSchema.model_validate(response.to_dict())


@router.post("/validate", response_model=GroundingResponseSchema)
async def validate_sources(
    body: ValidateRequest, service: GroundingServiceDep
) -> GroundingResponseSchema:
    """Validate caller-supplied URLs for a query and cite the survivors."""
    try:
        response = await service.validate(
            body.query,
            body.urls,
            _pipeline_options(body.options),
            _citation_options(body.citation_options),
        )
    except (ValidationError, DomainError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _to_response(response)


@router.post("/search", response_model=GroundingResponseSchema)
async def search_sources(
    body: SearchRequest, service: GroundingServiceDep
) -> GroundingResponseSchema:
    """Search the web for a query, then validate and cite the results."""
    try:
        response = await service.ground(
            body.query,
            max_results=body.max_results,
            options=_pipeline_options(body.options),
            citation_options=_citation_options(body.citation_options),
        )
    except (ValidationError, DomainError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _to_response(response)


@router.post("/citations", response_model=CitationsResponse)
async def format_citations(
    body: CitationsRequest, service: GroundingServiceDep
) -> CitationsResponse:
    """Render citations for already-validated sources."""
    sources = [Source.from_dict(s.model_dump()) for s in body.sources]
    options = _citation_options(body.options)
    text = service.format_citations(sources, options)
    limit = options.max_citations if options else service.citation_options.max_citations
    return CitationsResponse(text=text, count=min(len(sources), max(limit, 0)))


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(service: GroundingServiceDep) -> CacheClearResponse:
    """Drop cached pipeline results and robots.txt rules."""
    service.clear_cache()
    return CacheClearResponse(status="cleared")
