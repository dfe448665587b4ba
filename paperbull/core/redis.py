from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis

from paperbull.config import settings

redis_client: Optional[Redis] = None


async def get_redis() -> Redis:
    """Get Redis client instance."""
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
    return redis_client


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


class RedisCache:
    """Key/value cache with optional expiry, backed by Redis.

    Satisfies the cache contract the market data provider accepts:
    ``get(key) -> str | None`` and ``set(key, value, expire=None)``.
    Keys are namespaced with *prefix*.
    """

    def __init__(self, client: Redis, prefix: str = "paperbull"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(self._key(key))

    async def set(
        self,
        key: str,
        value: str,
        expire: Optional[int] = None,
    ) -> None:
        if expire:
            await self.client.setex(self._key(key), expire, value)
        else:
            await self.client.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))


async def get_market_data_cache() -> RedisCache:
    """Cache used by the market data provider in the running application."""
    return RedisCache(await get_redis(), prefix="paperbull:market")
