"""
GameHub Cache

Resilient cache layer: a Redis client supervised by a reconnecting state
machine, an in-process fallback store, a routing facade, cache-aside
queries and rate-limit counters.
"""

from gamehub_cache.infrastructure.cache import (
    CacheAsideQuery,
    CacheFacade,
    close_cache,
    get_cache,
    get_cache_query,
    init_cache,
)
from gamehub_cache.rate_limiting.counters import RateLimitCounters, get_rate_limit_counters

__version__ = "1.0.0"

__all__ = [
    "CacheAsideQuery",
    "CacheFacade",
    "RateLimitCounters",
    "close_cache",
    "get_cache",
    "get_cache_query",
    "get_rate_limit_counters",
    "init_cache",
]
