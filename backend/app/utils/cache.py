"""
Caching Utilities Module

Read-through memoization for expensive or rate-sensitive computations such as
presigned URL signing and user lookups. The cache is never a source of truth:
entries may vanish at any time and a miss always falls through to ``compute``.

Two interchangeable backends implement the same ``Cache`` interface:

- ``MemoryCache``: process-local dictionary with per-entry monotonic expiry
- ``RedisCache``: shared cache on top of ``RedisClient``, fail-open on errors

One instance is built by the application lifespan and handed to the services
that need it, so each test can use a fresh cache.

Usage:
    ```python
    cache = MemoryCache()
    url = await cache.get_or_compute(
        cache_key(CacheKeys.DOWNLOAD_URL, file_id),
        lambda: storage.generate_presigned_download_url(file_id, 3600),
        ttl_seconds=3300,
    )
    ```
"""

import logging
import math
import time

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from app.core.redis_client import RedisClient


logger = logging.getLogger(__name__)

T = TypeVar("T")

TTL_ABSENT = -2
TTL_NO_EXPIRY = -1


class CacheKeys:
    """Operation prefixes for cache keys."""

    UPLOAD_URL = "upload_url"
    DOWNLOAD_URL = "download_url"
    USER = "user"


def cache_key(operation: str, identifier: str) -> str:
    """
    Build the cache key for an operation on one identifier.

    >>> cache_key(CacheKeys.DOWNLOAD_URL, "3f2a")
    'download_url:3f2a'
    """
    return f"{operation}:{identifier}"


class Cache(ABC):
    """Key/value store with optional per-entry expiry."""

    def __init__(self) -> None:
        self._hits = 0
        self._misses = 0

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the unexpired value for ``key`` or None."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store ``value``. ``ttl_seconds`` of None means no expiry."""

    @abstractmethod
    async def invalidate(self, key: str) -> bool:
        """Remove ``key``. Returns True if an entry was removed."""

    @abstractmethod
    async def has(self, key: str) -> bool:
        """True if ``key`` holds an unexpired entry."""

    @abstractmethod
    async def remaining_ttl(self, key: str) -> int:
        """Milliseconds until expiry, -1 for no expiry, -2 for absent."""

    @abstractmethod
    async def touch(self, key: str, ttl_seconds: float) -> bool:
        """Reset the expiry of an existing entry. False if absent."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry owned by this cache."""

    @abstractmethod
    async def _count_keys(self) -> int: ...

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        ttl_seconds: float | None = None,
    ) -> T:
        """
        Return the cached value for ``key``, or await ``compute()`` and cache its result.

        Falsy results are returned but never stored, so an empty answer is
        recomputed on the next call. Exceptions from ``compute`` propagate and
        leave the cache untouched.
        """
        cached = await self.get(key)
        if cached is not None:
            self._hits += 1
            return cached

        self._misses += 1
        value = await compute()
        if value:
            await self.set(key, value, ttl_seconds)
        return value

    async def stats(self) -> dict[str, int]:
        return {"hits": self._hits, "misses": self._misses, "keys": await self._count_keys()}


class MemoryCache(Cache):
    """
    Process-local cache.

    Expiry uses a monotonic clock so wall-clock adjustments cannot resurrect or
    kill entries. Expired entries are dropped lazily on access and whenever the
    cache reaches ``max_entries``; if it is still full the oldest entry is evicted.
    """

    def __init__(
        self,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._max_entries = max_entries
        self._clock = clock

    def _live_entry(self, key: str) -> tuple[Any, float | None] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [
            key
            for key, (_, expires_at) in self._entries.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._entries[key]

    async def get(self, key: str) -> Any | None:
        entry = self._live_entry(key)
        return None if entry is None else entry[0]

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        if key not in self._entries and len(self._entries) >= self._max_entries:
            self._purge_expired()
            if len(self._entries) >= self._max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._entries.pop(key, None)
        self._entries[key] = (value, expires_at)

    async def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def remaining_ttl(self, key: str) -> int:
        entry = self._live_entry(key)
        if entry is None:
            return TTL_ABSENT
        expires_at = entry[1]
        if expires_at is None:
            return TTL_NO_EXPIRY
        return math.ceil((expires_at - self._clock()) * 1000)

    async def touch(self, key: str, ttl_seconds: float) -> bool:
        entry = self._live_entry(key)
        if entry is None:
            return False
        self._entries[key] = (entry[0], self._clock() + ttl_seconds)
        return True

    async def clear(self) -> None:
        self._entries.clear()

    async def _count_keys(self) -> int:
        self._purge_expired()
        return len(self._entries)


class RedisCache(Cache):
    """
    Cache backed by Redis.

    Values are stored as JSON under ``namespace``. Redis failures are logged by
    ``RedisClient`` and look like misses here, so callers always fall through to
    the source of truth.
    """

    def __init__(self, client: RedisClient, namespace: str = "gateway:") -> None:
        super().__init__()
        self._client = client
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    @staticmethod
    def _whole_seconds(ttl_seconds: float) -> int:
        return max(math.ceil(ttl_seconds), 1)

    async def get(self, key: str) -> Any | None:
        return await self._client.get_json(self._key(key))

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self._whole_seconds(ttl_seconds) if ttl_seconds is not None else None
        if not await self._client.set_json(self._key(key), value, ttl=ttl):
            logger.warning("Cache write skipped for key '%s'", key)

    async def invalidate(self, key: str) -> bool:
        return await self._client.delete(self._key(key))

    async def has(self, key: str) -> bool:
        return await self._client.exists(self._key(key))

    async def remaining_ttl(self, key: str) -> int:
        return await self._client.pttl(self._key(key))

    async def touch(self, key: str, ttl_seconds: float) -> bool:
        return await self._client.expire(self._key(key), self._whole_seconds(ttl_seconds))

    async def clear(self) -> None:
        removed = await self._client.delete_prefix(self._namespace)
        logger.info("Cleared %d cache entries", removed)

    async def _count_keys(self) -> int:
        return await self._client.count_prefix(self._namespace)
