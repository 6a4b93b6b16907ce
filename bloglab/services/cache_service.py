"""Cache-aside accessor.

Reads go to the cache first and fall back to a loader on a miss; writes go
to the source of truth first and only then to the cache. The cache is
never a correctness dependency: any cache failure is logged and the
source of truth answers instead.

Entries are stored as a JSON envelope ``{"v": value, "exp": expires_at}``.
Expiry is checked lazily against ``exp`` when reading; the native TTL is
set as well so abandoned keys disappear on their own.
"""

import asyncio
import json
import math
import time
from typing import Any, Awaitable, Callable, Dict, Optional
import logging

from bloglab.exceptions import StoreUnavailableError
from bloglab.stores.base import CacheStore
from bloglab.utils.cache import DEFAULT_PREFIX, cache_key

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]
Writer = Callable[[Any], Awaitable[Any]]


class CacheAside:
    def __init__(
        self,
        cache: CacheStore,
        default_ttl: int = 300,
        clock: Callable[[], float] = time.time,
        key_prefix: str = DEFAULT_PREFIX,
    ):
        self.cache = cache
        self.default_ttl = default_ttl
        self.clock = clock
        self.key_prefix = key_prefix
        # Per-key locks so concurrent misses in this process load once
        self._locks: Dict[str, asyncio.Lock] = {}

    def key(self, kind: str, identifier: Any, query: Optional[Dict[str, Any]] = None) -> str:
        return cache_key(kind, identifier, query, prefix=self.key_prefix)

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def _read(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the live envelope, or None when absent, expired or unreadable"""
        try:
            raw = await self.cache.get(key)
        except StoreUnavailableError as e:
            logger.warning(f"Cache read failed, using source of truth: {e}")
            return None

        if raw is None:
            return None

        try:
            envelope = json.loads(raw)
            expires_at = float(envelope["exp"])
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Discarding malformed cache entry {key}: {e}")
            return None

        if self.clock() >= expires_at:
            logger.debug(f"Cache entry expired for {key}")
            return None
        return envelope

    async def _write(self, key: str, value: Any, ttl: int) -> bool:
        envelope = json.dumps({"v": value, "exp": self.clock() + ttl}, default=str)
        try:
            await self.cache.set_with_ttl(key, envelope, max(1, math.ceil(ttl)))
            return True
        except StoreUnavailableError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

    async def get(self, key: str, loader: Loader, ttl: Optional[int] = None) -> Any:
        """Return the cached value, loading and caching it on a miss.

        A loader result of None is returned but not cached.
        """
        envelope = await self._read(key)
        if envelope is not None:
            logger.debug(f"Cache hit for {key}")
            return envelope["v"]

        try:
            async with self._lock_for(key):
                # Another task may have populated the key while we waited
                envelope = await self._read(key)
                if envelope is not None:
                    logger.debug(f"Cache hit for {key} after wait")
                    return envelope["v"]

                logger.debug(f"Cache miss for {key}")
                value = await loader()
                if value is not None:
                    await self._write(key, value, ttl if ttl is not None else self.default_ttl)
                return value
        finally:
            self._locks.pop(key, None)

    async def set(self, key: str, value: Any, writer: Writer, ttl: Optional[int] = None) -> Any:
        """Write-through: source of truth first, then the cache.

        Errors from ``writer`` propagate and leave the cache untouched.
        """
        result = await writer(value)
        await self._write(key, value, ttl if ttl is not None else self.default_ttl)
        return result

    async def invalidate(self, key: str) -> None:
        try:
            await self.cache.delete(key)
        except StoreUnavailableError as e:
            logger.warning(f"Cache invalidation failed for {key}: {e}")
