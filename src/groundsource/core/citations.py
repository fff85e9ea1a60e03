"""Citation formatting for grounded sources.

Turns ranked sources into cited text in one of three styles:

- inline:   ``[1] Title`` / description / ``Source: URL``
- footnote: ``Title [1]`` / description, then a ``Footnotes:`` list of URLs
- endnote:  ``Title [1]`` / description, then a ``References:`` list of
  ``Title. URL`` entries
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from groundsource.core.constants import VALID_SOURCE_SCORE
from groundsource.core.source import Citation, Source

logger = logging.getLogger(__name__)


class CitationStyle(str, Enum):
    """Citation rendering style."""

    INLINE = "inline"
    FOOTNOTE = "footnote"
    ENDNOTE = "endnote"


@dataclass
class CitationOptions:
    """Options for :meth:`CitationFormatter.format`."""

    max_citations: int = 10
    style: CitationStyle = CitationStyle.INLINE
    include_metadata: bool = True
    format_markdown: bool = True


# Citation markers and URLs are left as-is; everything else is escaped.
_PROTECTED = re.compile(r"(\[\d+\]|https?://\S+)")
_MARKDOWN_SPECIAL = re.compile(r"(?<!\\)([`*_\[\]#|<>])")


def escape_markdown(text: str) -> str:
    """Escape markdown control characters.

    Idempotent: a character that is already preceded by a backslash is left
    alone, so escaping twice gives the same text as escaping once.
    """
    parts = _PROTECTED.split(text)
    # split() with one capture group alternates plain text and protected runs
    for i in range(0, len(parts), 2):
        parts[i] = _MARKDOWN_SPECIAL.sub(r"\\\1", parts[i])
    return "".join(parts)


def rank_sources(sources: Sequence[Source]) -> List[Source]:
    """Sort sources by descending combined score. The sort is stable."""
    return sorted(sources, key=lambda s: s.combined_score, reverse=True)


def build_citations(sources: Sequence[Source]) -> List[Citation]:
    """Build the citation records for a list of returned sources."""
    return [
        Citation(
            url=source.url,
            title=source.title,
            description=source.description,
            date=source.metadata.date,
            relevance_score=source.relevance,
        )
        for source in sources
    ]


def format_citation_block(
    citation: Citation, style: CitationStyle, index: int
) -> str:
    """Render the body entry of one citation.

    Args:
        citation: Citation to render
        style: Citation style
        index: 1-based citation number

    Returns:
        The entry text, ending with a blank line
    """
    if style == CitationStyle.INLINE:
        return (
            f"[{index}] {citation.title}\n"
            f"{citation.description}\n"
            f"Source: {citation.url}\n\n"
        )
    return f"{citation.title} [{index}]\n{citation.description}\n\n"


class CitationFormatter:
    """Formats sources as cited text."""

    def format(
        self,
        sources: Sequence[Source],
        options: Optional[CitationOptions] = None,
    ) -> str:
        """Format sources with citations.

        Args:
            sources: Sources to cite, in any order
            options: Formatting options (defaults to inline, 10 citations)

        Returns:
            Cited text, empty if there are no sources and no metadata
        """
        options = options or CitationOptions()
        style = CitationStyle(options.style)

        ranked = rank_sources(sources)[: max(options.max_citations, 0)]
        citations = build_citations(ranked)

        body = "".join(
            format_citation_block(c, style, i)
            for i, c in enumerate(citations, start=1)
        )
        if style == CitationStyle.FOOTNOTE:
            body += "\nFootnotes:\n" + "".join(
                f"[{i}] {c.url}\n" for i, c in enumerate(citations, start=1)
            )
        elif style == CitationStyle.ENDNOTE:
            body += "\nReferences:\n" + "".join(
                f"[{i}] {c.title}. {c.url}\n" for i, c in enumerate(citations, start=1)
            )

        if options.include_metadata and sources:
            body += self.format_metadata(sources)

        if options.format_markdown:
            body = escape_markdown(body)

        logger.debug(f"Formatted {len(citations)} citations ({style.value})")
        return body

    @staticmethod
    def format_metadata(sources: Sequence[Source]) -> str:
        """Summarize source counts and the mean score of all given sources."""
        total = len(sources)
        valid = sum(1 for s in sources if s.score >= VALID_SOURCE_SCORE)
        average = sum(s.score for s in sources) / total if total else 0.0
        return (
            "\nMetadata:\n"
            f"- Total Sources: {total}\n"
            f"- Valid Sources: {valid}\n"
            f"- Average Score: {average * 100:.1f}%\n"
        )
