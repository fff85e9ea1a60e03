"""Text content validation: size bounds, readability, quality, spam and relevance.

Purely computational, so :meth:`ContentValidator.validate` is synchronous.
"""

import logging
import math
import re
from collections import Counter
from typing import List, Optional, Union

from groundsource.app_utils.config_schema import ContentValidationOptions
from groundsource.core.constants import (
    CONTENT_ERROR_PENALTY,
    CONTENT_INFO_PENALTY,
    CONTENT_WARNING_PENALTY,
    MAX_KEYWORDS,
    READABILITY_THRESHOLDS,
    SPAM_PHRASES,
    STOP_WORDS,
    WORDS_PER_MINUTE,
)
from groundsource.core.domains import Domain, get_domain_config, resolve_domain
from groundsource.core.errors import ValidationError
from groundsource.core.source import (
    ContentMetadata,
    Issue,
    IssueSeverity,
    IssueType,
    ValidationResult,
)

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_PUNCTUATION = re.compile(r"[!?.,;:]")
_CAPITALS = re.compile(r"[A-Z]")
_HTML_TAG = re.compile(r"<[^>]*>")
_SYLLABLE_SUFFIX = re.compile(r"(?:[^laeiouy]es|ed|[^laeiouy]e)$")
_VOWEL_GROUP = re.compile(r"[aeiouy]{1,2}")
_NON_LETTERS = re.compile(r"[^a-z]")


def count_word_syllables(word: str) -> int:
    """Approximate syllables in one word from its vowel groups."""
    word = _NON_LETTERS.sub("", word.lower())
    if len(word) <= 3:
        return 1
    word = _SYLLABLE_SUFFIX.sub("", word)
    if word.startswith("y"):
        word = word[1:]
    return len(_VOWEL_GROUP.findall(word)) or 1


def readability_score(words: List[str], sentence_count: int) -> float:
    """Flesch reading ease, clamped to [0, 100]."""
    if not words or sentence_count == 0:
        return 0.0
    syllables = sum(count_word_syllables(w) for w in words)
    score = (
        206.835
        - 1.015 * (len(words) / sentence_count)
        - 84.6 * (syllables / len(words))
    )
    return max(0.0, min(100.0, score))


def _densities(text: str, words: List[str]):
    length = len(text) or 1
    punctuation = len(_PUNCTUATION.findall(text)) / length
    capitals = len(_CAPITALS.findall(text)) / length
    top_frequency = 0
    if words:
        top_frequency = Counter(w.lower() for w in words).most_common(1)[0][1]
    return punctuation, capitals, top_frequency


def quality_score(text: str, words: List[str]) -> float:
    """Start at 1.0 and lose 0.1 for each of the three noise signals."""
    punctuation, capitals, top_frequency = _densities(text, words)
    score = 1.0
    if punctuation > 0.1:
        score -= 0.1
    if capitals > 0.3:
        score -= 0.1
    if top_frequency > len(words) * 0.1:
        score -= 0.1
    return max(0.0, min(1.0, score))


def spam_score(text: str, words: List[str]) -> float:
    """Average of punctuation, caps and repetition density plus spam phrases."""
    punctuation, capitals, top_frequency = _densities(text, words)
    repetition = top_frequency / len(words) if words else 0.0
    lowered = text.lower()
    phrases = sum(1 for phrase in SPAM_PHRASES if phrase in lowered)
    return min(1.0, (punctuation + capitals + repetition + phrases * 0.1) / 4)


def domain_relevance(text: str, domain: Optional[Domain]) -> float:
    """Share of the domain's keywords present in the text (1.0 without domain)."""
    if domain is None:
        return 1.0
    keywords = get_domain_config(domain).keywords
    lowered = text.lower()
    found = sum(1 for keyword in keywords if keyword in lowered)
    return found / len(keywords)


def extract_keywords(words: List[str], limit: int = MAX_KEYWORDS) -> List[str]:
    """Most frequent non-stop words; ties keep first-seen order."""
    counts = Counter(
        cleaned
        for cleaned in (w.lower().strip(".,;:!?\"'()[]{}") for w in words)
        if len(cleaned) > 2 and cleaned not in STOP_WORDS
    )
    return [word for word, _ in counts.most_common(limit)]


def detect_language(words: List[str]) -> str:
    """Very rough check: English if enough common English words appear."""
    if not words:
        return "unknown"
    common = sum(1 for w in words if w.lower() in STOP_WORDS)
    return "en" if common / len(words) >= 0.05 else "unknown"


def calculate_content_score(metadata: ContentMetadata, issues: List[Issue]) -> float:
    score = (
        0.3 * metadata.quality_score
        + 0.3 * metadata.relevance_score
        + 0.2 * (1 - metadata.spam_score)
        + 0.2 * (metadata.readability_score / 100)
    )
    for issue in issues:
        if issue.severity == IssueSeverity.ERROR:
            score -= CONTENT_ERROR_PENALTY
        elif issue.severity == IssueSeverity.WARNING:
            score -= CONTENT_WARNING_PENALTY
        else:
            score -= CONTENT_INFO_PENALTY
    return max(0.0, min(1.0, score))


class ContentValidator:
    """Validates plain text against size, readability, quality and spam rules."""

    def analyze(self, text: str, domain: Optional[Domain] = None) -> ContentMetadata:
        """Compute text statistics without judging them."""
        clean = text.strip()
        words = clean.split()
        sentence_count = sum(1 for s in _SENTENCE_SPLIT.split(clean) if s.strip())
        paragraph_count = sum(1 for p in _PARAGRAPH_SPLIT.split(clean) if p.strip())

        return ContentMetadata(
            length=len(clean),
            word_count=len(words),
            sentence_count=sentence_count,
            paragraph_count=paragraph_count,
            readability_score=round(readability_score(words, sentence_count), 2),
            quality_score=round(quality_score(clean, words), 4),
            relevance_score=round(domain_relevance(clean, domain), 4),
            spam_score=round(spam_score(clean, words), 4),
            keywords=extract_keywords(words),
            language=detect_language(words),
            reading_time=math.ceil(len(words) / WORDS_PER_MINUTE),
        )

    def validate(
        self,
        text: str,
        domain: Union[Domain, str, None] = None,
        options: Optional[ContentValidationOptions] = None,
    ) -> ValidationResult:
        """Validate text content.

        Args:
            text: Plain text to validate
            domain: Domain for the relevance check; None skips it
            options: Content validation options

        Returns:
            ValidationResult with ContentMetadata

        Raises:
            ValidationError: If text is not a string
            DomainError: If domain names an unknown domain
        """
        if not isinstance(text, str):
            raise ValidationError("Content must be a string", field="text")
        options = options or ContentValidationOptions()
        resolved = resolve_domain(domain)
        metadata = self.analyze(text, resolved)

        issues: List[Issue] = []
        issues.extend(self._check_bounds(metadata, options))
        issues.extend(self._check_keywords(text, options))

        threshold = READABILITY_THRESHOLDS[options.readability_level]
        if metadata.readability_score < threshold:
            issues.append(
                Issue(
                    type=IssueType.READABILITY,
                    severity=IssueSeverity.WARNING,
                    message=(
                        f"Readability score ({metadata.readability_score}) is below "
                        f"threshold for {options.readability_level} level"
                    ),
                )
            )

        if metadata.quality_score < options.quality_threshold:
            issues.append(
                Issue(
                    type=IssueType.QUALITY,
                    severity=IssueSeverity.WARNING,
                    message=(
                        f"Content quality score ({metadata.quality_score}) is below "
                        f"threshold ({options.quality_threshold})"
                    ),
                )
            )

        if resolved is not None and (
            metadata.relevance_score < options.domain_relevance_threshold
        ):
            issues.append(
                Issue(
                    type=IssueType.RELEVANCE,
                    severity=IssueSeverity.WARNING,
                    message=(
                        f"Domain relevance score ({metadata.relevance_score}) is "
                        f"below threshold ({options.domain_relevance_threshold})"
                    ),
                )
            )

        issues.extend(self._check_format(text, options))

        if metadata.spam_score > options.spam_threshold:
            issues.append(
                Issue(
                    type=IssueType.SPAM,
                    severity=IssueSeverity.ERROR,
                    message=(
                        f"Spam score ({metadata.spam_score}) exceeds threshold "
                        f"({options.spam_threshold})"
                    ),
                )
            )

        score = calculate_content_score(metadata, issues)
        result = ValidationResult.from_issues(issues, score, metadata)
        logger.debug(
            f"Content validated: {metadata.word_count} words, "
            f"valid={result.is_valid}, score={result.score:.2f}"
        )
        return result

    @staticmethod
    def _check_bounds(
        metadata: ContentMetadata, options: ContentValidationOptions
    ) -> List[Issue]:
        checks = [
            (
                IssueType.LENGTH,
                "chars",
                metadata.length,
                options.min_length,
                options.max_length,
            ),
            (
                IssueType.WORDS,
                "words",
                metadata.word_count,
                options.min_words,
                options.max_words,
            ),
            (
                IssueType.SENTENCES,
                "sentences",
                metadata.sentence_count,
                options.min_sentences,
                options.max_sentences,
            ),
            (
                IssueType.PARAGRAPHS,
                "paragraphs",
                metadata.paragraph_count,
                options.min_paragraphs,
                options.max_paragraphs,
            ),
        ]

        issues = []
        for issue_type, unit, value, minimum, maximum in checks:
            if value < minimum:
                issues.append(
                    Issue(
                        type=issue_type,
                        severity=IssueSeverity.ERROR,
                        message=f"Too few {unit} ({value}). Minimum is {minimum}.",
                    )
                )
            elif value > maximum:
                issues.append(
                    Issue(
                        type=issue_type,
                        severity=IssueSeverity.ERROR,
                        message=f"Too many {unit} ({value}). Maximum is {maximum}.",
                    )
                )
        return issues

    @staticmethod
    def _check_keywords(text: str, options: ContentValidationOptions) -> List[Issue]:
        lowered = text.lower()
        issues = []

        missing = [k for k in options.required_keywords if k.lower() not in lowered]
        if missing:
            issues.append(
                Issue(
                    type=IssueType.KEYWORDS,
                    severity=IssueSeverity.ERROR,
                    message=f"Missing required keywords: {', '.join(missing)}",
                )
            )

        forbidden = [k for k in options.forbidden_keywords if k.lower() in lowered]
        if forbidden:
            issues.append(
                Issue(
                    type=IssueType.KEYWORDS,
                    severity=IssueSeverity.ERROR,
                    message=f"Found forbidden keywords: {', '.join(forbidden)}",
                )
            )
        return issues

    @staticmethod
    def _check_format(text: str, options: ContentValidationOptions) -> List[Issue]:
        issues = []

        if not options.allow_html and _HTML_TAG.search(text):
            issues.append(
                Issue(
                    type=IssueType.FORMAT,
                    severity=IssueSeverity.WARNING,
                    message="HTML tags are not allowed",
                    suggestion="Strip markup before validating",
                )
            )

        repeated = re.compile(r"(.)\1{%d,}" % options.max_consecutive_chars)
        if repeated.search(text):
            issues.append(
                Issue(
                    type=IssueType.QUALITY,
                    severity=IssueSeverity.WARNING,
                    message=(
                        f"Found more than {options.max_consecutive_chars} "
                        "consecutive identical characters"
                    ),
                )
            )

        long_lines = [
            line for line in text.split("\n") if len(line) > options.max_line_length
        ]
        if long_lines:
            issues.append(
                Issue(
                    type=IssueType.FORMAT,
                    severity=IssueSeverity.WARNING,
                    message=(
                        f"Found {len(long_lines)} lines exceeding maximum length "
                        f"of {options.max_line_length} characters"
                    ),
                )
            )
        return issues
