"""Core constants for GroundSource.

Shared defaults used by the validators, the pipeline and the configuration
schema so the same numbers are not hardcoded in several places.
"""

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; GroundSourceBot/1.0)"
"""User agent sent with link probes and robots.txt requests."""

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
"""Default base URL for Ollama API server."""

DEFAULT_RELEVANCE_MODEL = "llama3.2:3b"
"""Default model for the optional LLM relevance scorer.

A small model is enough: the prompt asks for a single number.
"""

# Link validation
DEFAULT_LINK_TIMEOUT_MS = 10000
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_MAX_RESPONSE_SIZE = 10 * 1024 * 1024
DEFAULT_ALLOWED_PROTOCOLS = ("http", "https")

SLOW_RESPONSE_MS = 2000
"""Responses slower than this lose 0.1 from link and web scores."""

# Issue penalties for link and web scores
ERROR_PENALTY = 0.4
WARNING_PENALTY = 0.2
INFO_PENALTY = 0.1
REDIRECT_PENALTY = 0.05

# Issue penalties for content scores
CONTENT_ERROR_PENALTY = 0.3
CONTENT_WARNING_PENALTY = 0.1
CONTENT_INFO_PENALTY = 0.05

# Web page checks
TITLE_MIN_LENGTH = 10
TITLE_MAX_LENGTH = 60
DESCRIPTION_MIN_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 160
MAX_SCRIPTS = 20
MAX_STYLESHEETS = 10
MAX_PAGE_SIZE = 5 * 1024 * 1024

# Content checks
WORDS_PER_MINUTE = 200
MAX_KEYWORDS = 10

READABILITY_THRESHOLDS = {
    "basic": 80,
    "intermediate": 60,
    "advanced": 40,
    "technical": 30,
}
"""Minimum Flesch reading-ease score per readability level."""

SPAM_PHRASES = ("buy now", "click here", "free", "guarantee", "limited time")

STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "from",
        "has", "have", "he", "her", "his", "i", "if", "in", "into", "is", "it",
        "its", "not", "of", "on", "or", "our", "she", "so", "than", "that",
        "the", "their", "them", "then", "there", "these", "they", "this", "to",
        "was", "we", "were", "what", "when", "which", "who", "will", "with",
        "you", "your",
    }
)  # fmt: skip

# Pipeline
VALID_SOURCE_SCORE = 0.6
"""Sources at or above this score count as valid in citation summaries."""
