"""Unit tests for the result cache."""

import pytest

from groundsource.core.cache import ResultCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.mark.unit
@pytest.mark.asyncio
class TestResultCache:
    """Tests for TTL expiry, LRU eviction and copy semantics."""

    async def test_set_and_get(self):
        cache = ResultCache()
        await cache.set("k", {"value": 1})
        assert cache.get("k") == {"value": 1}

    async def test_miss_returns_none(self):
        assert ResultCache().get("missing") is None

    async def test_returns_copies(self):
        cache = ResultCache()
        original = {"items": [1, 2]}
        await cache.set("k", original)

        original["items"].append(3)
        first = cache.get("k")
        first["items"].append(4)

        assert cache.get("k") == {"items": [1, 2]}

    async def test_expiry(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=10, clock=clock)
        await cache.set("k", "v")

        clock.now = 5
        assert cache.get("k") == "v"
        clock.now = 11
        assert cache.get("k") is None
        assert len(cache) == 0

    async def test_zero_ttl_never_expires(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=0, clock=clock)
        await cache.set("k", "v")
        clock.now = 10**9
        assert cache.get("k") == "v"

    async def test_lru_eviction(self):
        cache = ResultCache(max_entries=2)
        await cache.set("a", 1)
        await cache.set("b", 2)
        cache.get("a")  # "b" becomes least recently used
        await cache.set("c", 3)

        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") == 3

    async def test_clear(self):
        cache = ResultCache()
        await cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0

    async def test_update_keeps_timestamp(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=10, clock=clock)
        await cache.set("k", "v1")

        clock.now = 8
        assert await cache.update("k", "v2") is True
        assert cache.get("k") == "v2"

        clock.now = 11
        assert cache.get("k") is None

    async def test_update_missing_key(self):
        cache = ResultCache()
        assert await cache.update("missing", "v") is False
        assert len(cache) == 0
