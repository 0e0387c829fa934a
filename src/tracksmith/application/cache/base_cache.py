"""Base cache interface and in-memory implementation."""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

K = TypeVar("K")  # Key type
V = TypeVar("V")  # Value type

_MISSING: Any = object()


@dataclass
class CacheEntry(Generic[V]):
    """Cache entry with value and metadata."""

    value: V
    created_at: float
    ttl_seconds: int

    # Hey future me, simple time-based expiry: NOW > created_at + ttl means expired. Unix
    # timestamps, so no timezone drama. A clock jumping backwards can keep entries alive longer.
    def is_expired(self) -> bool:
        """Check if cache entry is expired."""
        return time.time() > (self.created_at + self.ttl_seconds)


class BaseCache(ABC, Generic[K, V]):
    """Base cache interface for all cache implementations."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value if found and not expired, None otherwise
        """
        pass

    @abstractmethod
    async def set(self, key: K, value: V, ttl_seconds: int = 3600) -> None:
        """Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time to live in seconds
        """
        pass

    @abstractmethod
    async def delete(self, key: K) -> bool:
        """Delete value from cache.

        Args:
            key: Cache key

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from cache."""
        pass

    @abstractmethod
    async def exists(self, key: K) -> bool:
        """Check if key exists in cache.

        Args:
            key: Cache key

        Returns:
            True if key exists and not expired (even if the cached value is None)
        """
        pass

    @abstractmethod
    async def remember(
        self, key: K, ttl_seconds: int, factory: Callable[[], Awaitable[V]]
    ) -> V:
        """Return the cached value, or compute, store and return it.

        A None result from the factory is cached like any other value, so an
        expensive lookup that found nothing isn't repeated until the TTL runs out.

        Args:
            key: Cache key
            ttl_seconds: Time to live for a freshly computed value
            factory: Async callable producing the value on a miss

        Returns:
            Cached or freshly computed value
        """
        pass


class InMemoryCache(BaseCache[K, V]):
    """In-memory cache implementation using dictionary.

    Shared by all reconcilers in one process. Nothing survives a restart and
    nothing is shared across processes, which is fine for short-lived lookups.
    """

    # Listen up future me, the _lock is CRITICAL for async safety - always use
    # "async with self._lock" before touching self._cache!
    def __init__(self) -> None:
        """Initialize in-memory cache."""
        self._cache: dict[K, CacheEntry[V]] = {}
        self._lock = asyncio.Lock()

    async def _lookup(self, key: K) -> Any:
        """Return the live value or _MISSING. Evicts expired entries."""
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return _MISSING

            if entry.is_expired():
                del self._cache[key]
                return _MISSING

            return entry.value

    # Yo, get() can't tell "not cached" from "cached None" - both return None. Use exists() or
    # remember() when a None value is meaningful.
    async def get(self, key: K) -> V | None:
        """Get value from cache."""
        value = await self._lookup(key)
        if value is _MISSING:
            return None
        return value

    async def set(self, key: K, value: V, ttl_seconds: int = 3600) -> None:
        """Set value in cache."""
        async with self._lock:
            self._cache[key] = CacheEntry(
                value=value,
                created_at=time.time(),
                ttl_seconds=ttl_seconds,
            )

    async def delete(self, key: K) -> bool:
        """Delete value from cache."""
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear(self) -> None:
        """Clear all entries from cache."""
        async with self._lock:
            self._cache.clear()

    async def exists(self, key: K) -> bool:
        """Check if key exists in cache."""
        return await self._lookup(key) is not _MISSING

    # Hey future me - the factory runs OUTSIDE the lock. Two coroutines missing the same key at
    # the same moment may both compute it; the last set() wins. For directory scans that's a
    # harmless duplicate listdir, and it keeps one slow factory from blocking every other key.
    async def remember(
        self, key: K, ttl_seconds: int, factory: Callable[[], Awaitable[V]]
    ) -> V:
        """Return the cached value, or compute, store and return it."""
        value = await self._lookup(key)
        if value is not _MISSING:
            return value  # type: ignore[no-any-return]

        value = await factory()
        await self.set(key, value, ttl_seconds)
        return value  # type: ignore[no-any-return]

    async def cleanup_expired(self) -> int:
        """Remove expired entries from cache.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            expired_keys = [
                key for key, entry in self._cache.items() if entry.is_expired()
            ]
            for key in expired_keys:
                del self._cache[key]
            return len(expired_keys)

    # Listen up, get_stats() is NOT locked - stats are for monitoring, a slightly stale count
    # is fine.
    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        total_entries = len(self._cache)
        expired_entries = sum(1 for entry in self._cache.values() if entry.is_expired())

        return {
            "total_entries": total_entries,
            "active_entries": total_entries - expired_entries,
            "expired_entries": expired_entries,
        }
