"""
Redis Cache Module

Shared Redis client plus a namespaced JSON cache:
- Connection pooling
- Automatic serialization
- TTL management
"""

import json
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, Union

import structlog
from redis.asyncio import ConnectionPool, Redis

from storefront_signals.config import get_settings

logger = structlog.get_logger(__name__)

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis(url: Optional[str] = None) -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()
    pool = ConnectionPool.from_url(
        url or settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=settings.redis.decode_responses,
    )
    client = Redis(connection_pool=pool)

    try:
        await client.ping()
    except Exception as e:
        logger.error("Redis connection failed", error=str(e))
        await pool.disconnect()
        raise

    _redis_pool, _redis_client = pool, client
    logger.info("Redis connection established")
    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def redis_available() -> bool:
    return _redis_client is not None


async def cache_get(key: str) -> Optional[Any]:
    """
    Get value from cache.

    Args:
        key: Cache key

    Returns:
        Cached value or None if not found
    """
    value = await get_redis().get(key)
    if value is None:
        return None

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


async def cache_set(
    key: str,
    value: Any,
    ttl: Optional[Union[int, timedelta]] = None,
) -> bool:
    """
    Set value in cache.

    Args:
        key: Cache key
        value: Value to cache (will be JSON serialized)
        ttl: Time-to-live in seconds or timedelta

    Returns:
        True if successful
    """
    client = get_redis()

    try:
        serialized = json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        logger.warning("Failed to serialize value for cache", key=key, error=str(e))
        return False

    if ttl:
        if isinstance(ttl, timedelta):
            ttl = int(ttl.total_seconds())
        await client.setex(key, ttl, serialized)
    else:
        await client.set(key, serialized)

    return True


async def cache_delete(key: str) -> bool:
    """Delete key from cache"""
    result = await get_redis().delete(key)
    return result > 0


class CacheManager:
    """
    Cache manager with namespace support.

    Lookups degrade to the factory when Redis is not initialized or
    errors, so a cache outage never fails a read.

    Example:
        cache = CacheManager("trending", default_ttl=60)
        payload = await cache.get_or_set("product:week:10", compute)
    """

    def __init__(self, namespace: str, default_ttl: int = 3600):
        self.namespace = namespace
        self.default_ttl = default_ttl

    def _key(self, key: str) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        return await cache_get(self._key(key))

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return await cache_set(self._key(key), value, ttl or self.default_ttl)

    async def delete(self, key: str) -> bool:
        return await cache_delete(self._key(key))

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """
        Get from cache or compute and cache.

        Args:
            key: Cache key
            factory: Async function to compute value if not cached
            ttl: Time-to-live

        Returns:
            Cached or computed value
        """
        if not redis_available():
            return await factory()

        try:
            value = await self.get(key)
        except Exception as e:
            logger.warning("Cache read failed", namespace=self.namespace, key=key, error=str(e))
            return await factory()

        if value is not None:
            return value

        value = await factory()
        try:
            await self.set(key, value, ttl)
        except Exception as e:
            logger.warning("Cache write failed", namespace=self.namespace, key=key, error=str(e))
        return value


trending_cache = CacheManager("trending", default_ttl=get_settings().trending.cache_ttl_seconds)
