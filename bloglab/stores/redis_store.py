"""Redis cache store.

Handles:
- String values with TTL (cache-aside snapshots)
- Counters (rate limiting)
- Sorted sets (trending leaderboard)

The client is passed in, so tests can hand over a fake and the
application owns a single connection pool per process.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple
import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from bloglab.exceptions import StoreUnavailableError
from bloglab.stores.base import CacheStore

logger = logging.getLogger(__name__)


class RedisCacheStore(CacheStore):
    def __init__(self, redis: Redis):
        self.redis = redis

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisCacheStore":
        return cls(Redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        ))

    @asynccontextmanager
    async def _call(self, operation: str, key: str) -> AsyncIterator[None]:
        try:
            yield
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(
                "Redis unavailable",
                context={"operation": operation, "key": key, "detail": str(e)}
            ) from e

    async def get(self, key: str) -> Optional[str]:
        """Get the value of a key"""
        async with self._call("get", key):
            return await self.redis.get(key)

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """Set a key with expiration in seconds"""
        async with self._call("setex", key):
            await self.redis.setex(key, max(1, int(ttl_seconds)), value)

    async def delete(self, key: str) -> None:
        """Delete a key"""
        async with self._call("delete", key):
            await self.redis.delete(key)

    async def increment(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        async with self._call("incr", key):
            value = await self.redis.incr(key)
            if value == 1 and ttl_seconds:
                await self.redis.expire(key, int(ttl_seconds))
            return int(value)

    async def zset_add(self, key: str, member: str, score: float) -> None:
        async with self._call("zadd", key):
            await self.redis.zadd(key, {member: score})

    async def zset_remove(self, key: str, member: str) -> None:
        async with self._call("zrem", key):
            await self.redis.zrem(key, member)

    async def zset_top_n(self, key: str, n: int) -> List[Tuple[str, float]]:
        if n <= 0:
            return []
        async with self._call("zrevrange", key):
            rows = await self.redis.zrevrange(key, 0, n - 1, withscores=True)
        return [(str(member), float(score)) for member, score in rows]

    async def close(self) -> None:
        """Close the Redis connection"""
        await self.redis.aclose()
        logger.info("Redis connection closed")
