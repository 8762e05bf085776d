"""
Async Redis Client Module

Async Redis client used by the Redis cache backend. It provides:

- Connection management with retry logic (3 attempts, exponential backoff)
- Key-value operations with JSON serialization
- Millisecond TTL inspection and expiry updates
- Prefix-scoped clearing so the cache never flushes foreign keys

Every operation is fail-open: a RedisError is logged and reported as a miss or
a failed write, never raised into the caller.

Usage:
    ```python
    client = await init_redis(settings)
    await client.set_json("user:123", {"email": "a@b.c"}, ttl=300)
    profile = await client.get_json("user:123")
    ```
"""

import asyncio
import json
import logging

from typing import Any

import redis.asyncio as redis

from redis.exceptions import ConnectionError as RedisConnectionError, RedisError

from app.config import Settings


logger = logging.getLogger(__name__)


class _RedisClientContainer:
    """Container for Redis client singleton to avoid global statements."""

    client: "RedisClient | None" = None


_container = _RedisClientContainer()


class RedisClient:
    """
    Async Redis client wrapper.

    Attributes:
        settings: Application settings containing the Redis URL
        _client: Underlying redis async client instance
        _connected: Connection state flag
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._client: redis.Redis | None = None
        self._connected: bool = False

    @staticmethod
    def _mask_url(url: str) -> str:
        """Mask the password part of a Redis URL for logging."""
        if "@" in url:
            return f"redis://***@{url.split('@')[-1]}"
        return url

    async def connect(self, max_retries: int = 3, base_delay: float = 1.0) -> bool:
        """
        Establish connection to Redis with exponential backoff.

        Returns:
            bool: True if connection successful, False otherwise.
        """
        for attempt in range(1, max_retries + 1):
            try:
                logger.info(
                    "Connecting to Redis at %s (attempt %d/%d)",
                    self._mask_url(self.settings.redis_url),
                    attempt,
                    max_retries,
                )
                self._client = redis.from_url(
                    self.settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=5.0,
                    socket_timeout=5.0,
                    retry_on_timeout=True,
                )
                await self._client.ping()
                self._connected = True
                logger.info("Successfully connected to Redis")
                return True

            except RedisConnectionError as e:
                logger.warning(
                    "Redis connection failed (attempt %d/%d): %s", attempt, max_retries, str(e)
                )
            except RedisError:
                logger.exception("Redis error during connection")

            if attempt < max_retries:
                delay = base_delay * (2 ** (attempt - 1))
                logger.info("Retrying in %.1f seconds...", delay)
                await asyncio.sleep(delay)

        logger.error("Failed to connect to Redis after %d attempts", max_retries)
        self._connected = False
        return False

    async def close(self) -> None:
        """Close the connection pool. Safe to call multiple times."""
        if self._client:
            try:
                await self._client.aclose()
                logger.info("Redis connection closed")
            except RedisError:
                logger.exception("Error closing Redis connection")
            finally:
                self._client = None
                self._connected = False

    async def ping(self) -> bool:
        """Return True if Redis answers PING."""
        if not self._client:
            return False
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning("Redis ping failed: %s", str(e))
            return False

    # =========================================================================
    # Core Operations
    # =========================================================================

    async def get_json(self, key: str) -> Any | None:
        """
        Get and deserialize a JSON value.

        Returns:
            The decoded value, or None if the key is absent or on error.
        """
        if not self._client:
            return None
        try:
            value = await self._client.get(key)
            if value is None:
                return None
            return json.loads(value)
        except json.JSONDecodeError:
            logger.exception("Failed to decode JSON for key '%s'", key)
            return None
        except RedisError:
            logger.exception("Failed to get JSON key '%s'", key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Serialize and store a JSON value, with an optional TTL in seconds.

        Returns:
            bool: True if stored, False on error.
        """
        if not self._client:
            return False
        try:
            json_value = json.dumps(value, default=str)
            if ttl is not None and ttl > 0:
                await self._client.setex(key, ttl, json_value)
            else:
                await self._client.set(key, json_value)
            return True
        except (TypeError, ValueError):
            logger.exception("Failed to serialize JSON for key '%s'", key)
            return False
        except RedisError:
            logger.exception("Failed to set JSON key '%s'", key)
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if a key was removed."""
        if not self._client:
            return False
        try:
            return await self._client.delete(key) > 0
        except RedisError:
            logger.exception("Failed to delete key '%s'", key)
            return False

    async def exists(self, key: str) -> bool:
        if not self._client:
            return False
        try:
            return await self._client.exists(key) > 0
        except RedisError:
            logger.exception("Failed to check existence of key '%s'", key)
            return False

    async def expire(self, key: str, seconds: int) -> bool:
        """Set expiration on an existing key. False if the key is absent or on error."""
        if not self._client:
            return False
        try:
            return bool(await self._client.expire(key, seconds))
        except RedisError:
            logger.exception("Failed to set expiration on key '%s'", key)
            return False

    async def pttl(self, key: str) -> int:
        """
        Remaining TTL of a key in milliseconds.

        Returns:
            int: Milliseconds remaining, -1 if no expiration, -2 if absent or on error.
        """
        if not self._client:
            return -2
        try:
            return int(await self._client.pttl(key))
        except RedisError:
            logger.exception("Failed to get TTL for key '%s'", key)
            return -2

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``. Returns the number removed."""
        if not self._client:
            return 0
        removed = 0
        try:
            async for key in self._client.scan_iter(match=f"{prefix}*"):
                removed += await self._client.delete(key)
        except RedisError:
            logger.exception("Failed to clear keys with prefix '%s'", prefix)
        return removed

    async def count_prefix(self, prefix: str) -> int:
        if not self._client:
            return 0
        count = 0
        try:
            async for _ in self._client.scan_iter(match=f"{prefix}*"):
                count += 1
        except RedisError:
            logger.exception("Failed to count keys with prefix '%s'", prefix)
        return count


async def init_redis(settings: Settings) -> RedisClient:
    """
    Initialize and connect the process-wide Redis client.

    Raises:
        RuntimeError: If Redis connection fails after retry attempts.
    """
    if _container.client is not None:
        logger.warning("Redis client already initialized")
        return _container.client

    client = RedisClient(settings)
    if not await client.connect():
        raise RuntimeError("Failed to connect to Redis after multiple attempts")

    _container.client = client
    return client


async def close_redis() -> None:
    """Close the process-wide Redis client. Safe to call multiple times."""
    if _container.client is not None:
        await _container.client.close()
        _container.client = None


def get_redis_client() -> RedisClient | None:
    """Get the process-wide Redis client, or None if it was never initialized."""
    return _container.client
