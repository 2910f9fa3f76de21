"""Tests for the TTL + LRU cache."""

import asyncio

import pytest

from vibetrip.app.core.cache import TTLCache


@pytest.fixture
def cache(clock):
    return TTLCache(name="test", max_size=3, default_ttl=10, clock=clock)


class TestTTLCache:
    @pytest.mark.asyncio
    async def test_set_and_get(self, cache):
        await cache.set("k", {"destination": "Kyoto"})

        assert await cache.get("k") == {"destination": "Kyoto"}
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, cache, clock):
        await cache.set("k", "v")
        clock.advance(10)
        assert await cache.get("k") == "v"

        clock.advance(0.1)
        assert await cache.get("k") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_per_entry_ttl_overrides_default(self, cache, clock):
        await cache.set("short", "v", ttl=1)
        clock.advance(2)

        assert await cache.get("short") is None

    @pytest.mark.asyncio
    async def test_zero_ttl_is_not_replaced_by_default(self, cache, clock):
        await cache.set("k", "v", ttl=0)
        clock.advance(0.1)

        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_evicts_least_recently_accessed(self, cache, clock):
        for key in ("a", "b", "c"):
            await cache.set(key, key)
            clock.advance(1)

        # Touch "a" so "b" becomes the LRU entry
        await cache.get("a")
        clock.advance(1)
        await cache.set("d", "d")

        assert len(cache) == 3
        assert await cache.has("b") is False
        assert await cache.has("a") is True
        assert await cache.has("d") is True

    @pytest.mark.asyncio
    async def test_overwrite_does_not_evict(self, cache, clock):
        for key in ("a", "b", "c"):
            await cache.set(key, key)
            clock.advance(1)

        await cache.set("a", "updated")

        assert len(cache) == 3
        assert await cache.get("a") == "updated"

    @pytest.mark.asyncio
    async def test_stats_track_hits_and_misses(self, cache):
        await cache.set("k", "v")
        await cache.get("k")
        await cache.get("k")
        await cache.get("nope")

        stats = cache.get_stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["size"] == 1
        assert stats["hit_rate"] == pytest.approx(0.6667)

    @pytest.mark.asyncio
    async def test_has_does_not_touch_stats(self, cache):
        await cache.set("k", "v")
        await cache.has("k")
        await cache.has("other")

        assert cache.get_stats()["hits"] == 0
        assert cache.get_stats()["misses"] == 0

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, cache, clock):
        await cache.set("old", 1, ttl=1)
        await cache.set("fresh", 2)
        clock.advance(5)

        assert await cache.cleanup_expired() == 1
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_clear_resets_entries_and_stats(self, cache):
        await cache.set("k", "v")
        await cache.get("k")

        await cache.clear()

        assert len(cache) == 0
        assert cache.get_stats()["hits"] == 0

    @pytest.mark.asyncio
    async def test_delete(self, cache):
        await cache.set("k", "v")

        assert await cache.delete("k") is True
        assert await cache.delete("k") is False


class TestGetOrCompute:
    @pytest.mark.asyncio
    async def test_computes_once_per_key(self):
        cache = TTLCache(name="test", max_size=10, default_ttl=60)
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return "value"

        results = await asyncio.gather(*(cache.get_or_compute("k", compute) for _ in range(5)))

        assert results == ["value"] * 5
        assert calls == 1

    @pytest.mark.asyncio
    async def test_errors_are_not_cached(self):
        cache = TTLCache(name="test", max_size=10, default_ttl=60)

        async def boom():
            raise RuntimeError("fail")

        async def ok():
            return "recovered"

        with pytest.raises(RuntimeError):
            await cache.get_or_compute("k", boom)

        assert await cache.has("k") is False
        assert await cache.get_or_compute("k", ok) == "recovered"


def test_rejects_invalid_configuration():
    with pytest.raises(ValueError):
        TTLCache(max_size=0)
    with pytest.raises(ValueError):
        TTLCache(default_ttl=0)
