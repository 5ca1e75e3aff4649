import redis.asyncio as redis
from loguru import logger

from app.core.errors import CacheError


class RedisService:
    """
    Thin async Redis wrapper. Backend failures are raised as CacheError so the
    layer above decides how to degrade.
    """

    def __init__(self, url: str, max_connections: int = 50, client: redis.Redis | None = None) -> None:
        self._url = url
        self._max_connections = max_connections
        self._client: redis.Redis | None = client

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            logger.info("Creating Redis client for RedisService")
            self._client = redis.from_url(
                self._url,
                decode_responses=True,
                encoding="utf-8",
                socket_connect_timeout=5,
                socket_timeout=5,
                max_connections=self._max_connections,
                health_check_interval=30,
                socket_keepalive=True,
            )
        return self._client

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Store a value in Redis with optional TTL.

        Args:
            key: The key to store the value under
            value: Serialized value
            ttl: Optional time-to-live in seconds. If None, key never expires.
        """
        try:
            client = await self.get_client()
            if ttl is not None:
                await client.setex(key, ttl, value)
            else:
                await client.set(key, value)
        except (redis.RedisError, OSError) as exc:
            raise CacheError(f"set '{key}' failed: {exc}") from exc

    async def get(self, key: str) -> str | None:
        """Get a value from Redis by key, None if the key doesn't exist."""
        try:
            client = await self.get_client()
            return await client.get(key)
        except (redis.RedisError, OSError) as exc:
            raise CacheError(f"get '{key}' failed: {exc}") from exc

    async def incr(self, key: str) -> int:
        """Atomically increment an integer key, creating it at 1."""
        try:
            client = await self.get_client()
            return int(await client.incr(key))
        except (redis.RedisError, OSError) as exc:
            raise CacheError(f"incr '{key}' failed: {exc}") from exc

    async def delete(self, key: str) -> int:
        try:
            client = await self.get_client()
            return int(await client.delete(key))
        except (redis.RedisError, OSError) as exc:
            raise CacheError(f"delete '{key}' failed: {exc}") from exc

    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete all keys matching a pattern.

        Args:
            pattern: Redis key pattern (e.g., "rec:user:42:limit:*")

        Returns:
            Number of keys deleted
        """
        try:
            client = await self.get_client()
            deleted_count = 0
            keys_to_delete = []
            async for key in client.scan_iter(match=pattern, count=500):
                keys_to_delete.append(key)
                if len(keys_to_delete) >= 500:
                    deleted_count += await client.delete(*keys_to_delete)
                    keys_to_delete = []
            if keys_to_delete:
                deleted_count += await client.delete(*keys_to_delete)
            return deleted_count
        except (redis.RedisError, OSError) as exc:
            raise CacheError(f"delete pattern '{pattern}' failed: {exc}") from exc

    async def ping(self) -> bool:
        try:
            client = await self.get_client()
            return bool(await client.ping())
        except (redis.RedisError, OSError) as exc:
            logger.warning(f"Redis ping failed: {exc}")
            return False

    async def close(self) -> None:
        """Close and disconnect the Redis client"""
        if self._client is not None:
            try:
                await self._client.aclose()
                logger.info("RedisService client closed")
            except Exception as exc:
                logger.warning(f"Failed to close RedisService client: {exc}")
            finally:
                self._client = None
