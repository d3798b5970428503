"""
Redis cache utilities
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from tutorgen.config import get_settings

logger = logging.getLogger(__name__)

# Connection pool
_pool: Optional[ConnectionPool] = None


async def get_redis_pool() -> ConnectionPool:
    """Get or create Redis connection pool"""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=20,
            decode_responses=True,
        )
    return _pool


async def get_redis() -> redis.Redis:
    """Get Redis client"""
    pool = await get_redis_pool()
    return redis.Redis(connection_pool=pool)


async def close_redis():
    """Close Redis connections"""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


class CacheService:
    """Prefixed key helpers over the shared Redis pool"""

    def __init__(self, prefix: str = "tutorgen", client: Optional[redis.Redis] = None):
        self.prefix = prefix
        self._client = client

    def _key(self, key: str) -> str:
        """Generate full cache key with prefix"""
        return f"{self.prefix}:{key}"

    async def _get_client(self) -> redis.Redis:
        if self._client is not None:
            return self._client
        return await get_redis()


class RateLimitCache(CacheService):
    """Fixed-window rate limiting"""

    def __init__(self, client: Optional[redis.Redis] = None):
        super().__init__(prefix="tutorgen:ratelimit", client=client)

    async def check_rate_limit(
        self,
        identifier: str,
        limit: int,
        window_seconds: int
    ) -> tuple[bool, int]:
        """
        Check if rate limit is exceeded.
        Returns (is_allowed, remaining_requests)
        """
        key = self._key(identifier)
        try:
            client = await self._get_client()
            current = await client.incr(key)
            if current == 1:
                # First request in window
                await client.expire(key, window_seconds)
        except (RedisError, OSError) as e:
            # Redis down: allow
            logger.warning(f"Rate limiter unavailable, allowing {identifier}: {e}")
            return True, limit

        if current > limit:
            return False, 0
        return True, limit - current

    async def get_retry_after(self, identifier: str) -> int:
        """Seconds until the current window closes"""
        try:
            client = await self._get_client()
            ttl = await client.ttl(self._key(identifier))
        except (RedisError, OSError):
            return 0
        return max(0, ttl)


# Initialize cache instances
rate_limit = RateLimitCache()
