"""robots.txt parsing and per-origin permission cache."""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from groundsource.core.errors import NetworkError
from groundsource.scrapers.url_fetcher import HttpFetcher

logger = logging.getLogger(__name__)

ROBOTS_TIMEOUT_MS = 5000
ROBOTS_MAX_SIZE = 512 * 1024


@dataclass
class RobotsRules:
    """Parsed robots.txt: user-agent token -> list of (allow, path pattern)."""

    groups: Dict[str, List[Tuple[bool, str]]] = field(default_factory=dict)

    @classmethod
    def parse(cls, text: str) -> "RobotsRules":
        """Parse robots.txt text.

        Consecutive User-agent lines share the rule block that follows them.
        Comments, unknown directives and rules before any User-agent line
        are ignored.
        """
        groups: Dict[str, List[Tuple[bool, str]]] = {}
        current_agents: List[str] = []
        in_rules = False

        for raw_line in text.splitlines():
            line = raw_line.split("#", 1)[0].strip()
            if ":" not in line:
                continue
            directive, value = line.split(":", 1)
            directive = directive.strip().lower()
            value = value.strip()

            if directive == "user-agent":
                if in_rules:
                    current_agents = []
                    in_rules = False
                agent = value.lower()
                current_agents.append(agent)
                groups.setdefault(agent, [])
            elif directive in ("allow", "disallow"):
                in_rules = True
                # An empty Disallow allows everything
                if not value:
                    continue
                for agent in current_agents:
                    groups[agent].append((directive == "allow", value))

        return cls(groups=groups)

    def _rules_for(self, user_agent: str) -> Optional[List[Tuple[bool, str]]]:
        agent = user_agent.lower()
        best: Optional[str] = None
        for token in self.groups:
            if token != "*" and token in agent:
                if best is None or len(token) > len(best):
                    best = token
        if best is not None:
            return self.groups[best]
        return self.groups.get("*")

    def is_allowed(self, path: str, user_agent: str) -> bool:
        """Check whether a path may be crawled.

        The longest matching pattern wins; on a tie Allow beats Disallow.
        """
        rules = self._rules_for(user_agent)
        if not rules:
            return True

        best_length = -1
        allowed = True
        for allow, pattern in rules:
            if _pattern_matches(pattern, path):
                length = len(pattern)
                if length > best_length or (length == best_length and allow):
                    best_length = length
                    allowed = allow
        return allowed


def _pattern_matches(pattern: str, path: str) -> bool:
    anchored = pattern.endswith("$")
    if anchored:
        pattern = pattern[:-1]
    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    regex = "^" + regex + ("$" if anchored else "")
    return re.match(regex, path) is not None


class RobotsCache:
    """Fetches robots.txt once per origin and answers permission checks.

    Rules are read without locking. Populating an origin holds a per-origin
    lock, so concurrent checks against one host trigger a single fetch.
    """

    def __init__(self, fetcher: HttpFetcher):
        self.fetcher = fetcher
        self._rules: Dict[str, RobotsRules] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def get_rules(self, origin: str, user_agent: str) -> RobotsRules:
        rules = self._rules.get(origin)
        if rules is not None:
            return rules

        async with self._locks.setdefault(origin, asyncio.Lock()):
            rules = self._rules.get(origin)
            if rules is None:
                rules = await self._fetch_rules(origin, user_agent)
                self._rules[origin] = rules
        return rules

    async def _fetch_rules(self, origin: str, user_agent: str) -> RobotsRules:
        robots_url = f"{origin}/robots.txt"
        try:
            response = await self.fetcher.fetch(
                robots_url,
                timeout_ms=ROBOTS_TIMEOUT_MS,
                max_size=ROBOTS_MAX_SIZE,
                user_agent=user_agent,
            )
        except NetworkError as e:
            logger.debug(f"robots.txt unavailable for {origin}: {e}")
            return RobotsRules()

        if response.status != 200:
            logger.debug(f"No robots.txt for {origin} (HTTP {response.status})")
            return RobotsRules()
        return RobotsRules.parse(response.text)

    async def is_allowed(self, url: str, user_agent: str) -> bool:
        """Check whether user_agent may crawl url. Missing robots.txt allows."""
        parts = urlsplit(url)
        origin = f"{parts.scheme}://{parts.netloc}"
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"
        rules = await self.get_rules(origin, user_agent)
        return rules.is_allowed(path, user_agent)

    def clear(self) -> None:
        self._rules.clear()
        self._locks.clear()
