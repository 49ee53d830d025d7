"""Redis storage area.

Shared backend for deployments where several processes (or tabs served
by several workers) must see the same storage area.
Requires the `redis` package: pip install redis
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .base import StorageArea


if TYPE_CHECKING:
    from redis.asyncio import Redis


# Check for redis package
try:
    from redis.asyncio import Redis as RedisClient

    HAS_REDIS = True
except ImportError:
    HAS_REDIS = False
    RedisClient = None  # type: ignore[assignment,misc]


def _check_redis() -> None:
    """Check if redis package is available."""
    if not HAS_REDIS:
        msg = "Redis backend requires the 'redis' package. Install with: pip install redis"
        raise ImportError(msg)


class RedisStorage(StorageArea):
    """Redis-backed storage area.

    Each area lives under its own namespace, so a session area and a
    local area can share one Redis database.

    Parameters
    ----------
    namespace : str
        Area name (e.g. ``"session"`` or ``"local"``).
    redis_url : str
        Redis connection URL.
    prefix : str
        Key prefix for all Redis keys.
    ttl : int or None
        Optional TTL in seconds refreshed on every write.
    pool_size : int
        Connection pool size.
    redis_client : Redis, optional
        Pre-configured Redis client (for testing).
    """

    def __init__(
        self,
        namespace: str,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "vault_auth",
        ttl: int | None = None,
        pool_size: int = 10,
        *,
        redis_client: Redis | None = None,
    ) -> None:
        """Initialize the Redis storage area."""
        if redis_client is None:
            _check_redis()
        self._namespace = namespace
        self._prefix = prefix
        self._ttl = ttl
        self._client: Any = redis_client
        if self._client is None:
            self._client = RedisClient.from_url(
                redis_url,
                max_connections=pool_size,
                decode_responses=True,
            )

    def _key(self, key: str) -> str:
        """Build a Redis key with prefix and namespace."""
        return f"{self._prefix}:{self._namespace}:{key}"

    async def get(self, key: str) -> str | None:
        """Get a value from Redis."""
        return await self._client.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        """Store a value in Redis with optional TTL."""
        if self._ttl:
            await self._client.setex(self._key(key), self._ttl, value)
        else:
            await self._client.set(self._key(key), value)

    async def remove(self, key: str) -> None:
        """Delete a value from Redis."""
        await self._client.delete(self._key(key))

    async def keys(self) -> list[str]:
        """List all keys in this area."""
        pattern = self._key("*")
        prefix_len = len(self._key(""))
        return [key[prefix_len:] async for key in self._client.scan_iter(match=pattern)]

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()
