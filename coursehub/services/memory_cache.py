# services/memory_cache.py
"""
Process-local L1 cache sitting in front of Redis.

Holds JSON-shaped course documents and course listings. Entries expire
after their TTL and the least recently used entry is evicted once
`max_entries` is reached. `get_lock` hands out one asyncio.Lock per key so a
cold course is loaded from Redis/MongoDB once even under concurrent requests;
callers hand it back with `release_lock` so misses on unknown ids don't pile
up locks.
"""

import asyncio
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Tuple

from config import settings

DEFAULT_MAX_ENTRIES = 1024

class AsyncInMemoryCache:
    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries
        self._clock = clock
        self._store: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}
        self.evictions = 0

    def size(self) -> int:
        return len(self._store)

    def _expired(self, expires_at: float) -> bool:
        return expires_at != 0 and self._clock() > expires_at

    async def get(self, key: str) -> Optional[Any]:
        item = self._store.get(key)
        if item is None:
            return None
        expires_at, value = item
        if self._expired(expires_at):
            del self._store[key]
            return None
        self._store.move_to_end(key)
        return value

    async def set(self, key: str, value: Any, ttl: int = 0) -> None:
        expires_at = self._clock() + ttl if ttl and ttl > 0 else 0
        self._store[key] = (expires_at, value)
        self._store.move_to_end(key)
        while len(self._store) > self.max_entries:
            evicted, _ = self._store.popitem(last=False)
            self._drop_lock(evicted)
            self.evictions += 1

    def _drop_lock(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)
        self._drop_lock(key)

    async def pattern_delete(self, prefix: str) -> int:
        doomed = [k for k in self._store if k.startswith(prefix)]
        for k in doomed:
            await self.delete(k)
        return len(doomed)

    async def get_lock(self, key: str) -> asyncio.Lock:
        # no await between lookup and insert, so this can't race on one loop
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def release_lock(self, key: str) -> None:
        """Forget the key's lock once its guarded load is done and nobody holds it."""
        self._drop_lock(key)

    def clear(self) -> None:
        self._store.clear()
        self._locks.clear()
        self.evictions = 0

memory_cache = AsyncInMemoryCache(max_entries=settings.L1_CACHE_MAX_ENTRIES)
