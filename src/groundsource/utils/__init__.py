"""Utility modules for GroundSource."""

from .web_search import DuckDuckGoSearch, extract_main_content, search_duckduckgo

__all__ = [
    "DuckDuckGoSearch",
    "extract_main_content",
    "search_duckduckgo",
]
