"""Caching layer."""

from tracksmith.application.cache.base_cache import BaseCache, CacheEntry, InMemoryCache

__all__ = ["BaseCache", "CacheEntry", "InMemoryCache"]
