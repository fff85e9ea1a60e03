"""String similarity scoring.

Used to decide whether a fetched page is relevant to the user's query.
Every algorithm returns a score in [0, 1] and is symmetric in its two
arguments, including the keyword bonus.
"""

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import List, Optional, Tuple

from groundsource.core.errors import ValidationError

MAX_KEYWORD_BONUS = 0.3

HYBRID_WEIGHTS = {
    "levenshtein": 0.3,
    "jaro_winkler": 0.3,
    "jaccard": 0.2,
    "cosine": 0.2,
}


class SimilarityAlgorithm(str, Enum):
    """Supported similarity algorithms."""

    LEVENSHTEIN = "levenshtein"
    JACCARD = "jaccard"
    COSINE = "cosine"
    JARO_WINKLER = "jaro-winkler"
    HYBRID = "hybrid"


@dataclass
class SimilarityOptions:
    """Options controlling preprocessing and scoring.

    Attributes:
        algorithm: Which algorithm to score with
        threshold: Cut-off used by :func:`is_similar`
        case_sensitive: Keep letter case when comparing
        ignore_whitespace: Collapse runs of whitespace before comparing
        ignore_special_chars: Drop punctuation before comparing
        weighted_keywords: (keyword, weight) pairs that raise the score when
            the keyword occurs in both strings
    """

    algorithm: SimilarityAlgorithm = SimilarityAlgorithm.HYBRID
    threshold: float = 0.8
    case_sensitive: bool = False
    ignore_whitespace: bool = True
    ignore_special_chars: bool = True
    weighted_keywords: List[Tuple[str, float]] = field(default_factory=list)


_SPECIAL_CHARS = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def preprocess(text: str, options: SimilarityOptions) -> str:
    """Normalize a string according to the options."""
    if not options.case_sensitive:
        text = text.lower()
    if options.ignore_special_chars:
        text = _SPECIAL_CHARS.sub("", text)
    if options.ignore_whitespace:
        text = _WHITESPACE.sub(" ", text).strip()
    return text


@lru_cache(maxsize=4096)
def _edit_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            )
        previous = current
    return previous[-1]


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings.

    Results are memoized on the ordered pair, so repeated comparisons of the
    same query against many titles are cheap.
    """
    if a <= b:
        return _edit_distance(a, b)
    return _edit_distance(b, a)


def levenshtein_similarity(a: str, b: str) -> float:
    """Complement of the edit distance normalized by the longer length."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def jaro_similarity(a: str, b: str) -> float:
    """Jaro similarity of two strings."""
    if a == b:
        return 1.0
    len_a, len_b = len(a), len(b)
    if len_a == 0 or len_b == 0:
        return 0.0

    window = max(max(len_a, len_b) // 2 - 1, 0)
    matched_a = [False] * len_a
    matched_b = [False] * len_b
    matches = 0

    for i, char in enumerate(a):
        start = max(0, i - window)
        end = min(i + window + 1, len_b)
        for j in range(start, end):
            if matched_b[j] or b[j] != char:
                continue
            matched_a[i] = matched_b[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i in range(len_a):
        if not matched_a[i]:
            continue
        while not matched_b[k]:
            k += 1
        if a[i] != b[k]:
            transpositions += 1
        k += 1

    return (
        matches / len_a + matches / len_b + (matches - transpositions / 2) / matches
    ) / 3


def jaro_winkler_similarity(a: str, b: str, prefix_scale: float = 0.1) -> float:
    """Jaro similarity boosted by the length of the common prefix (max 4)."""
    jaro = jaro_similarity(a, b)
    prefix = 0
    for char_a, char_b in zip(a[:4], b[:4]):
        if char_a != char_b:
            break
        prefix += 1
    return jaro + prefix * prefix_scale * (1 - jaro)


def jaccard_similarity(a: str, b: str) -> float:
    """Token-set Jaccard similarity."""
    tokens_a, tokens_b = set(a.split()), set(b.split())
    if not tokens_a and not tokens_b:
        return 1.0
    union = tokens_a | tokens_b
    return len(tokens_a & tokens_b) / len(union)


def cosine_similarity(a: str, b: str) -> float:
    """Cosine similarity of term-frequency vectors."""
    freq_a, freq_b = Counter(a.split()), Counter(b.split())
    if not freq_a and not freq_b:
        return 1.0
    dot = sum(freq_a[term] * freq_b[term] for term in freq_a.keys() & freq_b.keys())
    norm_a = math.sqrt(sum(v * v for v in freq_a.values()))
    norm_b = math.sqrt(sum(v * v for v in freq_b.values()))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def hybrid_similarity(a: str, b: str) -> float:
    """Weighted blend of all four algorithms."""
    return (
        HYBRID_WEIGHTS["levenshtein"] * levenshtein_similarity(a, b)
        + HYBRID_WEIGHTS["jaro_winkler"] * jaro_winkler_similarity(a, b)
        + HYBRID_WEIGHTS["jaccard"] * jaccard_similarity(a, b)
        + HYBRID_WEIGHTS["cosine"] * cosine_similarity(a, b)
    )


_ALGORITHMS = {
    SimilarityAlgorithm.LEVENSHTEIN: levenshtein_similarity,
    SimilarityAlgorithm.JACCARD: jaccard_similarity,
    SimilarityAlgorithm.COSINE: cosine_similarity,
    SimilarityAlgorithm.JARO_WINKLER: jaro_winkler_similarity,
    SimilarityAlgorithm.HYBRID: hybrid_similarity,
}


def _keyword_bonus(a: str, b: str, options: SimilarityOptions) -> float:
    bonus = 0.0
    for keyword, weight in options.weighted_keywords:
        term = preprocess(keyword, options)
        if term and term in a and term in b:
            bonus += weight
    return min(bonus, MAX_KEYWORD_BONUS)


def calculate_similarity(
    a: str, b: str, options: Optional[SimilarityOptions] = None
) -> float:
    """Score how similar two strings are.

    Args:
        a: First string
        b: Second string
        options: Algorithm and preprocessing options (hybrid by default)

    Returns:
        Similarity in [0, 1]. Identical strings and two empty strings score
        1.0; an empty string against a non-empty one scores 0.0.

    Raises:
        ValidationError: If either argument is not a string
    """
    if not isinstance(a, str) or not isinstance(b, str):
        raise ValidationError("Similarity inputs must be strings", field="text")

    options = options or SimilarityOptions()
    norm_a = preprocess(a, options)
    norm_b = preprocess(b, options)

    if norm_a == norm_b:
        return 1.0
    if not norm_a or not norm_b:
        return 0.0

    algorithm = SimilarityAlgorithm(options.algorithm)
    score = _ALGORITHMS[algorithm](norm_a, norm_b)

    if options.weighted_keywords:
        score += _keyword_bonus(norm_a, norm_b, options)

    return max(0.0, min(1.0, score))


def is_similar(a: str, b: str, options: Optional[SimilarityOptions] = None) -> bool:
    """Check whether two strings reach the configured similarity threshold."""
    options = options or SimilarityOptions()
    return calculate_similarity(a, b, options) >= options.threshold


def clear_similarity_cache() -> None:
    """Drop memoized edit distances."""
    _edit_distance.cache_clear()
