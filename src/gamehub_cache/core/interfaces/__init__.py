"""
Core interfaces.
"""

from gamehub_cache.core.interfaces.cache import (
    CacheBackend,
    LocalCacheBackend,
    RemoteCacheBackend,
)

__all__ = ["CacheBackend", "LocalCacheBackend", "RemoteCacheBackend"]
