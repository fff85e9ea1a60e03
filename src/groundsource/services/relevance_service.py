"""LLM relevance scoring for candidate sources.

Optional enrichment on top of the structural similarity score. The pipeline
keeps working without it; a failed scoring call yields None and the
structural score stands.
"""

import logging
import re
from typing import Optional, Protocol

from llama_index.llms.ollama import Ollama

from groundsource.core.constants import DEFAULT_OLLAMA_BASE_URL, DEFAULT_RELEVANCE_MODEL

logger = logging.getLogger(__name__)

# Page text beyond this is cut before prompting
MAX_PROMPT_CONTENT_CHARS = 2000

_NUMBER = re.compile(r"(\d+(?:\.\d+)?|\.\d+)\s*(%)?")

RELEVANCE_PROMPT = """Evaluate this source for grounding an answer to the query below.

Query: {query}

Source title: {title}
Source description: {description}
Source excerpt:
{content}

Consider:
1. Authority and credibility (30%)
2. Relevance to the query (30%)
3. Recency (20%)
4. Depth of coverage (10%)
5. Domain expertise (10%)

Return ONLY a single number between 0 and 1, with no other text."""


class RelevanceScorer(Protocol):
    """Anything that rates a page's relevance to a query in [0, 1]."""

    async def score(
        self, query: str, title: str, description: str, content: str
    ) -> Optional[float]:
        ...


def parse_score(text: str) -> Optional[float]:
    """Pull the first number out of a model reply, clamped to [0, 1].

    Percentages ("85%") and whole numbers up to 100 ("85") are read on a
    0-100 scale. Anything else above 1, such as "1.5", is clamped.
    """
    match = _NUMBER.search(text or "")
    if not match:
        return None
    number, percent = match.groups()
    value = float(number)
    if percent or (1.0 < value <= 100.0 and "." not in number):
        value = value / 100.0
    return max(0.0, min(1.0, value))


class OllamaRelevanceScorer:
    """Relevance scorer backed by a local Ollama model."""

    def __init__(
        self,
        ollama_url: str = DEFAULT_OLLAMA_BASE_URL,
        model: str = DEFAULT_RELEVANCE_MODEL,
        request_timeout: float = 60.0,
    ):
        """Initialize relevance scorer.

        Args:
            ollama_url: Ollama API base URL.
            model: Model name used for scoring.
            request_timeout: Per-request timeout in seconds.
        """
        self.ollama_url = ollama_url
        self.model = model
        self.request_timeout = request_timeout
        self._llm: Optional[Ollama] = None

    def _get_llm(self) -> Ollama:
        if self._llm is None:
            self._llm = Ollama(
                model=self.model,
                base_url=self.ollama_url,
                temperature=0.0,
                request_timeout=self.request_timeout,
            )
        return self._llm

    async def score(
        self, query: str, title: str, description: str, content: str
    ) -> Optional[float]:
        """Ask the model how relevant a page is to the query.

        Returns:
            Score in [0, 1], or None if the model failed or gave no number.
        """
        prompt = RELEVANCE_PROMPT.format(
            query=query,
            title=title or "(none)",
            description=description or "(none)",
            content=(content or "")[:MAX_PROMPT_CONTENT_CHARS] or "(none)",
        )
        try:
            response = await self._get_llm().acomplete(prompt)
        except Exception as e:
            logger.warning(f"Relevance scoring failed for '{title}': {e}")
            return None

        value = parse_score(response.text)
        if value is None:
            logger.warning(f"Relevance model returned no score: {response.text!r}")
        return value

    def reset(self) -> None:
        """Drop the cached LLM instance. Call after configuration changes."""
        self._llm = None
