"""In-memory result cache with TTL expiry and LRU eviction."""

import asyncio
import copy
import logging
import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResultCache(Generic[T]):
    """Read-mostly cache shared by concurrent pipeline runs.

    Stored values are deep-copied on the way in and on the way out, so a
    caller can never mutate a cached result. Writes are serialized with an
    asyncio lock; when two runs race on the same key the last write wins.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache.

        Args:
            ttl_seconds: Entry lifetime; 0 or less disables expiry
            max_entries: Capacity before least-recently-used entries go
            clock: Time source, injectable for tests
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, T]]" = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, stored_at: float) -> bool:
        return self.ttl_seconds > 0 and self._clock() - stored_at > self.ttl_seconds

    def get(self, key: str) -> Optional[T]:
        """Return a copy of the cached value, or None on miss or expiry."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._expired(stored_at):
            self._entries.pop(key, None)
            logger.debug(f"Cache entry expired: {key[:80]}")
            return None
        self._entries.move_to_end(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: T) -> None:
        """Store a copy of value under key."""
        async with self._lock:
            self._entries[key] = (self._clock(), copy.deepcopy(value))
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Cache evicted: {evicted[:80]}")

    async def update(self, key: str, value: T) -> bool:
        """Replace the value under key, keeping its original timestamp.

        Returns:
            False when the key is absent, in which case nothing is stored.
        """
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            self._entries[key] = (entry[0], copy.deepcopy(value))
            return True

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
