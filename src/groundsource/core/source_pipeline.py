"""Source grounding pipeline.

Takes a query and candidate URLs, runs every URL through link, web and
content validation, scores relevance against the query and returns the
surviving sources ranked, deduplicated and ready for citation.

URLs are processed in batches of ``max_concurrent_requests``. All URLs in a
batch run concurrently; the next batch starts only when the current one is
done. A failing URL is recorded in ``errors`` and never affects its siblings.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from groundsource.app_utils.config_schema import GroundSourceConfig, PipelineOptions
from groundsource.core.cache import ResultCache
from groundsource.core.citations import build_citations
from groundsource.core.errors import (
    ErrorCode,
    GroundingError,
    RateLimitError,
    ValidationError,
    error_code_for,
    is_transient,
)
from groundsource.core.similarity import (
    SimilarityAlgorithm,
    SimilarityOptions,
    calculate_similarity,
)
from groundsource.core.source import (
    PipelineError,
    PipelineMetadata,
    PipelinePhase,
    PipelineProgress,
    PipelineResult,
    Source,
    SourceMetadata,
    ValidationResult,
    WebMetadata,
)
from groundsource.scrapers.url_fetcher import HttpFetcher
from groundsource.services.relevance_service import (
    OllamaRelevanceScorer,
    RelevanceScorer,
)
from groundsource.validators.content_validator import ContentValidator
from groundsource.validators.link_validator import LinkValidator
from groundsource.validators.web_validator import WebPageValidator

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RELEVANCE_OPTIONS = SimilarityOptions(algorithm=SimilarityAlgorithm.HYBRID)


@dataclass
class RetryTracker:
    """Counts re-attempts made for one URL."""

    retries: int = 0


@dataclass
class UrlOutcome:
    """Result of processing one URL: a source or an error, never both."""

    url: str
    source: Optional[Source] = None
    error: Optional[PipelineError] = None
    retries: int = 0


def make_cache_key(query: str, urls: Sequence[str], options: PipelineOptions) -> str:
    """Build a cache key that ignores URL order."""
    return "|".join(
        [
            query,
            ",".join(sorted(urls)),
            json.dumps(options.to_dict(), sort_keys=True, default=str),
        ]
    )


def calculate_pipeline_score(sources: List[Source], requested: int) -> float:
    """Blend coverage, mean quality and mean relevance into one score."""
    if not sources or requested <= 0:
        return 0.0
    coverage = min(1.0, len(sources) / requested)
    mean_score = sum(s.score for s in sources) / len(sources)
    mean_relevance = sum(s.relevance for s in sources) / len(sources)
    score = 0.2 * coverage + 0.4 * mean_score + 0.4 * mean_relevance
    return max(0.0, min(1.0, score))


def remove_duplicates(sources: List[Source]) -> List[Source]:
    """Drop sources whose (title, description) was already seen; keeps the first."""
    seen = set()
    unique = []
    for source in sources:
        key = (source.title, source.description)
        if key in seen:
            logger.debug(f"Dropping duplicate source: {source.url}")
            continue
        seen.add(key)
        unique.append(source)
    return unique


def split_batches(urls: Sequence[str], size: int) -> List[List[str]]:
    return [list(urls[i : i + size]) for i in range(0, len(urls), size)]


class GroundingPipeline:
    """Validates candidate URLs and turns the survivors into ranked sources."""

    def __init__(
        self,
        link_validator: LinkValidator,
        web_validator: WebPageValidator,
        content_validator: ContentValidator,
        cache: Optional[ResultCache[PipelineResult]] = None,
        relevance_scorer: Optional[RelevanceScorer] = None,
    ):
        self.link_validator = link_validator
        self.web_validator = web_validator
        self.content_validator = content_validator
        self.cache = cache if cache is not None else ResultCache()
        self.relevance_scorer = relevance_scorer

    @classmethod
    def create_default(
        cls, config: Optional[GroundSourceConfig] = None
    ) -> "GroundingPipeline":
        """Wire up a pipeline with default collaborators.

        Args:
            config: Application configuration; defaults when omitted

        Returns:
            Pipeline sharing one HTTP fetcher across its validators
        """
        config = config or GroundSourceConfig.create_default()
        fetcher = HttpFetcher()
        link_validator = LinkValidator(fetcher)
        content_validator = ContentValidator()
        web_validator = WebPageValidator(link_validator, content_validator, fetcher)

        scorer = None
        if config.ollama.enable_relevance_scoring:
            scorer = OllamaRelevanceScorer(
                ollama_url=config.ollama.base_url,
                model=config.ollama.relevance_model,
                request_timeout=float(config.ollama.timeout),
            )
            logger.info(
                f"LLM relevance scoring enabled ({config.ollama.relevance_model})"
            )

        return cls(
            link_validator,
            web_validator,
            content_validator,
            cache=ResultCache(
                ttl_seconds=config.cache.ttl_seconds,
                max_entries=config.cache.max_entries,
            ),
            relevance_scorer=scorer,
        )

    async def process(
        self,
        query: str,
        urls: List[str],
        options: Optional[PipelineOptions] = None,
    ) -> PipelineResult:
        """Validate URLs for a query and return the accepted sources.

        Args:
            query: User query the sources should support
            urls: Candidate URLs
            options: Pipeline options; defaults when omitted

        Returns:
            PipelineResult. Per-URL failures are listed in ``errors``.

        Raises:
            ValidationError: If the query, URL list or options are malformed
            DomainError: If ``options.domain`` names an unknown domain
            GroundingError: If processing ends without a final snapshot
        """
        result: Optional[PipelineResult] = None
        async for progress in self.process_stream(query, urls, options):
            if progress.complete:
                result = progress.result
        if result is None:
            raise GroundingError("Pipeline finished without a final result")
        return result

    async def process_stream(
        self,
        query: str,
        urls: List[str],
        options: Optional[PipelineOptions] = None,
    ) -> AsyncIterator[PipelineProgress]:
        """Process URLs, yielding a snapshot after every batch.

        Each snapshot replaces the previous one and lists all sources
        accepted so far. The last snapshot has ``complete`` set and carries
        the final result. A cache hit yields that final snapshot only.

        Raises:
            ValidationError: If the query, URL list or options are malformed
            DomainError: If ``options.domain`` names an unknown domain
        """
        options = options or PipelineOptions()
        self._validate_input(query, urls, options)

        started = time.perf_counter()
        cache_key = make_cache_key(query, urls, options)

        if options.cache_results:
            cached = self.cache.get(cache_key)
            if cached is not None:
                cached.metadata.cache_hits += 1
                await self.cache.update(cache_key, cached)
                logger.info(f"Cache hit for query: {query}")
                yield PipelineProgress(
                    batch=cached.metadata.batches,
                    total_batches=cached.metadata.batches,
                    processed=len(urls),
                    total=len(urls),
                    sources=list(cached.sources),
                    errors=list(cached.errors),
                    complete=True,
                    result=cached,
                )
                return

        metadata = PipelineMetadata(
            query=query,
            timestamp=datetime.now(timezone.utc).isoformat(),
            processing_steps=["cache_check"],
        )
        sources: List[Source] = []
        errors: List[PipelineError] = []
        batches = split_batches(urls, options.max_concurrent_requests)
        processed = 0

        for index, batch in enumerate(batches, start=1):
            outcomes = await asyncio.gather(
                *(self.process_url(url, query, options) for url in batch),
                return_exceptions=True,
            )
            for url, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    # process_url records its own failures; this is a bug guard
                    logger.error(f"Unexpected failure processing {url}: {outcome}")
                    errors.append(
                        PipelineError(
                            url=url,
                            phase=PipelinePhase.PROCESSING,
                            error=str(outcome) or type(outcome).__name__,
                            code=ErrorCode.PROCESSING_ERROR,
                        )
                    )
                    continue
                metadata.retries += outcome.retries
                if outcome.source is not None:
                    sources.append(outcome.source)
                if outcome.error is not None:
                    errors.append(outcome.error)

            processed += len(batch)
            metadata.batches = index
            if options.log_progress:
                logger.info(
                    f"Batch {index}/{len(batches)} done: {processed}/{len(urls)} URLs, "
                    f"{len(sources)} sources, {len(errors)} errors"
                )

            if index < len(batches):
                yield PipelineProgress(
                    batch=index,
                    total_batches=len(batches),
                    processed=processed,
                    total=len(urls),
                    sources=list(sources),
                    errors=list(errors),
                )

        metadata.processing_steps.extend(["batch", "aggregate"])
        metadata.total_sources = len(sources)

        if options.filter_duplicates:
            sources = remove_duplicates(sources)
            metadata.processing_steps.append("dedup")
        if options.sort_results:
            sources.sort(key=lambda s: s.combined_score, reverse=True)
            metadata.processing_steps.append("sort")
        sources = sources[: options.max_results]
        metadata.processing_steps.extend(["truncate", "score"])

        if not options.include_metadata:
            for source in sources:
                source.validations = {}

        if not sources:
            errors.append(
                PipelineError(
                    url="",
                    phase=PipelinePhase.PROCESSING,
                    error="No valid sources found for the query",
                    code=ErrorCode.NO_SOURCES_FOUND,
                )
            )

        metadata.valid_sources = len(sources)
        if sources:
            metadata.average_score = sum(s.score for s in sources) / len(sources)
        metadata.duration = (time.perf_counter() - started) * 1000

        result = PipelineResult(
            sources=sources,
            citations=build_citations(sources),
            errors=errors,
            score=calculate_pipeline_score(sources, len(urls)),
            metadata=metadata,
        )

        if options.cache_results:
            metadata.processing_steps.append("cache")
            await self.cache.set(cache_key, result)

        logger.info(
            f"Grounding done for '{query}': {len(sources)}/{len(urls)} sources, "
            f"score={result.score:.2f}, {metadata.duration:.0f}ms"
        )

        yield PipelineProgress(
            batch=len(batches),
            total_batches=len(batches),
            processed=processed,
            total=len(urls),
            sources=list(sources),
            errors=list(errors),
            complete=True,
            result=result,
        )

    @staticmethod
    def _validate_input(query: Any, urls: Any, options: PipelineOptions) -> None:
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Query must be a non-empty string", field="query")
        if not isinstance(urls, list):
            raise ValidationError("URLs must be a list", field="urls")
        if not all(isinstance(url, str) for url in urls):
            raise ValidationError("Every URL must be a string", field="urls")
        options.validate()

    async def process_url(
        self, url: str, query: str, options: PipelineOptions
    ) -> UrlOutcome:
        """Run one URL through every stage.

        Never raises for per-URL problems; they come back as the outcome's
        ``error``.
        """
        tracker = RetryTracker()
        phase = PipelinePhase.LINK
        domain = options.domain

        try:
            link_result = await self.retry_with_backoff(
                lambda: self.link_validator.validate(
                    url, domain, options.link_validation
                ),
                options,
                tracker,
            )
            if not link_result.is_valid:
                return self._failed(
                    url, phase, link_result, ErrorCode.LINK_INVALID, tracker
                )

            phase = PipelinePhase.WEB
            web_result = await self.retry_with_backoff(
                lambda: self.web_validator.validate(
                    url,
                    domain,
                    options.web_validation,
                    link_options=options.link_validation,
                    link_result=link_result,
                ),
                options,
                tracker,
            )
            if not web_result.is_valid:
                return self._failed(
                    url, phase, web_result, ErrorCode.WEB_INVALID, tracker
                )

            phase = PipelinePhase.CONTENT
            page = web_result.metadata
            content_result = await self.retry_with_backoff(
                lambda: self._validate_content(page.main_text, domain, options),
                options,
                tracker,
            )
            if not content_result.is_valid:
                return self._failed(
                    url, phase, content_result, ErrorCode.CONTENT_INVALID, tracker
                )

            phase = PipelinePhase.PROCESSING
            relevance = await self._score_relevance(query, page, options)
        except Exception as e:
            message = self._describe(e, options)
            logger.warning(f"{phase.value} stage failed for {url}: {message}")
            return UrlOutcome(
                url=url,
                error=PipelineError(
                    url=url,
                    phase=phase,
                    error=message,
                    code=error_code_for(e),
                    retry_count=tracker.retries,
                ),
                retries=tracker.retries,
            )

        if relevance < options.similarity_threshold:
            logger.debug(f"Low relevance ({relevance:.2f}) for {url}")
            return UrlOutcome(
                url=url,
                error=PipelineError(
                    url=url,
                    phase=PipelinePhase.PROCESSING,
                    error=(
                        f"Relevance {relevance:.2f} is below threshold "
                        f"{options.similarity_threshold}"
                    ),
                    code=ErrorCode.LOW_RELEVANCE,
                    retry_count=tracker.retries,
                ),
                retries=tracker.retries,
            )

        source = self._build_source(
            url, relevance, link_result, web_result, content_result
        )
        logger.debug(
            f"Accepted {url}: score={source.score:.2f}, relevance={relevance:.2f}"
        )
        return UrlOutcome(url=url, source=source, retries=tracker.retries)

    async def _validate_content(
        self, text: str, domain: Optional[str], options: PipelineOptions
    ) -> ValidationResult:
        return self.content_validator.validate(text, domain, options.content_validation)

    async def _score_relevance(
        self, query: str, page: WebMetadata, options: PipelineOptions
    ) -> float:
        relevance = max(
            calculate_similarity(query, page.title, _RELEVANCE_OPTIONS),
            calculate_similarity(query, page.description, _RELEVANCE_OPTIONS),
        )
        if self.relevance_scorer is None:
            return relevance

        try:
            llm_score = await asyncio.wait_for(
                self.relevance_scorer.score(
                    query, page.title, page.description, page.main_text
                ),
                timeout=options.timeout / 1000,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Relevance scorer timed out for '{page.title}'")
            return relevance

        if llm_score is None:
            return relevance
        return max(relevance, max(0.0, min(1.0, llm_score)))

    async def retry_with_backoff(
        self,
        operation: Callable[[], Awaitable[T]],
        options: PipelineOptions,
        tracker: Optional[RetryTracker] = None,
    ) -> T:
        """Await operation, retrying transient failures with exponential backoff.

        The delay before retry n (0-based) is ``retry_delay * 2**n`` ms, or the
        server's Retry-After when a rate limit asks for longer. Each attempt
        is bounded by ``options.timeout``.

        Args:
            operation: Zero-argument callable returning a fresh awaitable
            options: Supplies retry_count, retry_delay and timeout
            tracker: Incremented once per retry

        Returns:
            The operation's result

        Raises:
            The last exception, once retries are used up or it is not transient
        """
        attempt = 0
        while True:
            try:
                return await asyncio.wait_for(
                    operation(), timeout=options.timeout / 1000
                )
            except Exception as e:
                if not is_transient(e) or attempt >= options.retry_count:
                    raise
                delay = options.retry_delay * (2**attempt) / 1000
                if isinstance(e, RateLimitError) and e.retry_after:
                    delay = max(delay, e.retry_after)
                attempt += 1
                if tracker is not None:
                    tracker.retries += 1
                logger.warning(
                    f"Attempt {attempt} failed, retrying in {delay:.1f}s: "
                    f"{self._describe(e, options)}"
                )
                await asyncio.sleep(delay)

    @staticmethod
    def _describe(error: Exception, options: PipelineOptions) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return f"Timed out after {options.timeout}ms"
        return str(error) or type(error).__name__

    @staticmethod
    def _failed(
        url: str,
        phase: PipelinePhase,
        result: ValidationResult,
        code: ErrorCode,
        tracker: RetryTracker,
    ) -> UrlOutcome:
        message = result.first_error_message()
        logger.debug(f"{phase.value} validation failed for {url}: {message}")
        return UrlOutcome(
            url=url,
            error=PipelineError(
                url=url,
                phase=phase,
                error=message,
                code=code,
                retry_count=tracker.retries,
            ),
            retries=tracker.retries,
        )

    @staticmethod
    def _build_source(
        url: str,
        relevance: float,
        link_result: ValidationResult,
        web_result: ValidationResult,
        content_result: ValidationResult,
    ) -> Source:
        page = web_result.metadata
        text = content_result.metadata
        link = link_result.metadata
        last_modified = link.last_modified if link is not None else None
        score = (link_result.score + web_result.score + content_result.score) / 3

        return Source(
            url=url,
            title=page.title,
            description=page.description,
            content=page.main_content or page.main_text,
            score=max(0.0, min(1.0, score)),
            relevance=max(0.0, min(1.0, relevance)),
            metadata=SourceMetadata(
                date=last_modified or datetime.now(timezone.utc).isoformat(),
                author=page.author,
                language=page.language or text.language,
                word_count=text.word_count,
                reading_time=text.reading_time,
            ),
            validations={
                "link": link_result,
                "web": web_result,
                "content": content_result,
            },
        )

    def clear_cache(self) -> None:
        """Drop cached results and robots.txt rules."""
        self.cache.clear()
        self.link_validator.clear_robots_cache()
        logger.info("Pipeline cache cleared")

