"""Link, web page and content validators."""

from .content_validator import ContentValidator
from .link_validator import LinkValidator
from .robots import RobotsCache, RobotsRules
from .web_validator import WebPageValidator

__all__ = [
    "ContentValidator",
    "LinkValidator",
    "RobotsCache",
    "RobotsRules",
    "WebPageValidator",
]
