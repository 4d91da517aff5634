"""
Cache infrastructure.

Remote (Redis) and fallback (in-process) backends, the facade that routes
between them, and the cache-aside helper built on top.
"""

from gamehub_cache.infrastructure.cache.cache_facade import (
    CacheFacade,
    build_cache,
    close_cache,
    get_cache,
    init_cache,
)
from gamehub_cache.infrastructure.cache.cache_query import CacheAsideQuery, get_cache_query
from gamehub_cache.infrastructure.cache.fallback_store import CacheEntry, FallbackStore
from gamehub_cache.infrastructure.cache.redis_client import RemoteCacheClient

__all__ = [
    "CacheAsideQuery",
    "CacheEntry",
    "CacheFacade",
    "FallbackStore",
    "RemoteCacheClient",
    "build_cache",
    "close_cache",
    "get_cache",
    "get_cache_query",
    "init_cache",
]
