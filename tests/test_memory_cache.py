import asyncio

from conftest import FakeRedis
from services.cache_stats import get_stats, hit, miss
from services.memory_cache import AsyncInMemoryCache


class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = Clock()
    cache = AsyncInMemoryCache(clock=clock)

    async def run():
        await cache.set("course:1", {"title": "A"}, ttl=10)
        fresh = await cache.get("course:1")
        clock.now += 11
        return fresh, await cache.get("course:1")

    fresh, stale = asyncio.run(run())
    assert fresh == {"title": "A"}
    assert stale is None
    assert cache.size() == 0


def test_least_recently_used_is_evicted():
    cache = AsyncInMemoryCache(max_entries=2)

    async def run():
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("a")
        await cache.set("c", 3)
        return [await cache.get(k) for k in ("a", "b", "c")]

    assert asyncio.run(run()) == [1, None, 3]
    assert cache.evictions == 1


def test_pattern_delete_only_touches_prefix():
    cache = AsyncInMemoryCache()

    async def run():
        await cache.set("courses_list:x", 1)
        await cache.set("courses_list:y", 2)
        await cache.set("course:1", 3)
        removed = await cache.pattern_delete("courses_list:")
        return removed, await cache.get("course:1")

    assert asyncio.run(run()) == (2, 3)


def test_same_lock_per_key():
    cache = AsyncInMemoryCache()

    async def run():
        return await cache.get_lock("k"), await cache.get_lock("k"), await cache.get_lock("other")

    first, again, other = asyncio.run(run())
    assert first is again
    assert first is not other


def test_released_lock_is_forgotten_unless_held():
    cache = AsyncInMemoryCache()

    async def run():
        held = await cache.get_lock("held")
        await cache.get_lock("idle")
        async with held:
            await cache.release_lock("held")
            await cache.release_lock("idle")
            return set(cache._locks)

    assert asyncio.run(run()) == {"held"}


def test_eviction_drops_the_evicted_keys_lock():
    cache = AsyncInMemoryCache(max_entries=2)

    async def run():
        for key in ("a", "b", "c", "d"):
            await cache.get_lock(key)
            await cache.set(key, key)
        return set(cache._locks)

    assert asyncio.run(run()) == {"c", "d"}
    assert cache.evictions == 2


def test_stats_per_namespace():
    r = FakeRedis()

    async def run():
        await hit(r, "courses")
        await hit(r, "courses")
        await miss(r, "courses")
        await miss(r, "courses_list")
        return await get_stats(r)

    stats = asyncio.run(run())
    assert stats["namespaces"]["courses"] == {"hits": 2, "misses": 1, "hit_ratio": 66.67}
    assert stats["namespaces"]["courses_list"]["hit_ratio"] == 0
    assert stats["totals"] == {"hits": 2, "misses": 2, "hit_ratio": 50.0}
