import asyncio
import pytest

from bloglab.services.cache_service import CacheAside
from bloglab.tests.conftest import BrokenCacheStore

class CountingLoader:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(0)
        return self.value

async def test_repeated_reads_within_ttl_load_once(cache):
    loader = CountingLoader({"id": 1, "title": "Cached"})
    key = cache.key("post", 1)

    for _ in range(3):
        assert await cache.get(key, loader, ttl=60) == {"id": 1, "title": "Cached"}
    assert loader.calls == 1

async def test_expired_entry_is_reloaded(cache, timer):
    loader = CountingLoader("value")
    key = cache.key("post", 1)

    await cache.get(key, loader, ttl=60)
    timer.advance(59)
    await cache.get(key, loader, ttl=60)
    assert loader.calls == 1

    timer.advance(1)
    await cache.get(key, loader, ttl=60)
    assert loader.calls == 2

async def test_native_ttl_is_set(cache, redis):
    key = cache.key("post", 1)
    await cache.get(key, CountingLoader("value"), ttl=60)

    assert 0 < await redis.ttl(key) <= 60

async def test_concurrent_misses_share_one_load(cache):
    loader = CountingLoader("shared")
    key = cache.key("post", 7)

    results = await asyncio.gather(*(cache.get(key, loader) for _ in range(10)))

    assert results == ["shared"] * 10
    assert loader.calls == 1

async def test_none_is_not_cached(cache):
    loader = CountingLoader(None)
    key = cache.key("post", 404)

    assert await cache.get(key, loader) is None
    assert await cache.get(key, loader) is None
    assert loader.calls == 2

async def test_malformed_entry_is_treated_as_miss(cache, cache_store):
    key = cache.key("post", 1)
    await cache_store.set_with_ttl(key, "not json", 60)

    loader = CountingLoader("fresh")
    assert await cache.get(key, loader) == "fresh"
    assert loader.calls == 1

async def test_write_through_updates_source_then_cache(cache):
    source = {}
    key = cache.key("post", 1)

    async def writer(value):
        source["post"] = value

    await cache.set(key, {"title": "New"}, writer, ttl=60)

    assert source["post"] == {"title": "New"}
    loader = CountingLoader({"title": "Old"})
    assert await cache.get(key, loader) == {"title": "New"}
    assert loader.calls == 0

async def test_failed_write_leaves_cache_untouched(cache):
    key = cache.key("post", 1)
    await cache.get(key, CountingLoader({"title": "Old"}))

    async def writer(value):
        raise RuntimeError("database down")

    with pytest.raises(RuntimeError):
        await cache.set(key, {"title": "New"}, writer)

    assert await cache.get(key, CountingLoader(None)) == {"title": "Old"}

async def test_unavailable_cache_falls_back_to_source(timer):
    broken = BrokenCacheStore()
    cache = CacheAside(broken, clock=timer)
    loader = CountingLoader("from source")
    written = []

    async def writer(value):
        written.append(value)

    assert await cache.get("blog:post:1", loader) == "from source"
    assert await cache.get("blog:post:1", loader) == "from source"
    assert loader.calls == 2

    await cache.set("blog:post:1", "new", writer)
    await cache.invalidate("blog:post:1")
    assert written == ["new"]
    assert broken.calls > 0

async def test_invalidate_forces_reload(cache):
    loader = CountingLoader("value")
    key = cache.key("post", 1)

    await cache.get(key, loader)
    await cache.invalidate(key)
    await cache.get(key, loader)
    assert loader.calls == 2

async def test_failed_load_releases_its_lock(cache):
    key = cache.key("post", 1)

    async def failing_loader():
        raise RuntimeError("store down")

    with pytest.raises(RuntimeError):
        await cache.get(key, failing_loader, ttl=60)
    assert key not in cache._locks

    loader = CountingLoader("recovered")
    assert await cache.get(key, loader, ttl=60) == "recovered"
    assert key not in cache._locks
