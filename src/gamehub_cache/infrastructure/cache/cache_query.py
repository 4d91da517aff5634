"""
Cache-Aside Query Helper

Architecture:
    CacheAsideQuery (Public API)
        ├── CacheFacade (authoritative backend, soft failures)
        └── QueryObserver (hit/miss/error counters, logging)

Algorithm (query):
    1. GET key                        STAGE-2.1
    2. Hit  -> return cached value
    3. Miss -> compute()              STAGE-2.2
    4. SET key result EX ttl          STAGE-2.3 (skipped when result is None)
    5. Return result

The cache is an optimization, not a dependency: a failing cache turns every
call into a miss, compute() still runs exactly once, and its result is
returned. Exceptions raised by compute() itself propagate unchanged.
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from gamehub_cache.core.config.constants import (
    CACHE_PREFIX_GAME_BY_CATEGORY,
    CACHE_PREFIX_GAME_BY_TAG,
    CACHE_PREFIX_GAME_LIST,
    CACHE_PREFIX_GAME_REVIEWS,
    Stage,
)
from gamehub_cache.core.exceptions import CacheError
from gamehub_cache.core.logging.logger import get_logger, log_stage
from gamehub_cache.infrastructure.cache.cache_facade import CacheFacade, get_cache
from gamehub_cache.infrastructure.cache.keys import (
    game_categories_key,
    game_detail_key,
    game_tags_key,
    system_requirements_key,
)

logger = get_logger(__name__)

T = TypeVar("T")


class QueryObserver:
    """Counts cache-aside outcomes and logs them at debug level."""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.errors = 0

    def record_hit(self, key: str) -> None:
        self.hits += 1
        log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", level="debug", cache_key=key)

    def record_miss(self, key: str) -> None:
        self.misses += 1
        log_stage(logger, Stage.CACHE_MISS, "Cache miss, computing", level="debug", cache_key=key)

    def record_error(self, key: str, operation: str, error: Exception | None = None) -> None:
        self.errors += 1
        log_stage(
            logger,
            Stage.CACHE_SOFT_FAILURE,
            "Cache-aside operation failed",
            level="warning",
            cache_key=key,
            operation=operation,
            error=str(error) if error else None,
        )

    def get_stats(self) -> dict[str, Any]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "total_requests": total,
            "hit_rate": round(self.hits / total, 3) if total > 0 else 0.0,
        }


class CacheAsideQuery:
    """
    Read-through helper plus the invalidation calls used by write paths.

    Usage:
        query = get_cache_query()
        games = await query.query(game_list_key(page=1), CacheTTL.SHORT, load_games)

        # after an update
        await query.clear_game_cache(game_id)
    """

    def __init__(self, cache: CacheFacade):
        self._cache = cache
        self._observer = QueryObserver()

    @property
    def cache(self) -> CacheFacade:
        return self._cache

    async def query(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], Awaitable[T] | T],
    ) -> T:
        """
        Return the cached value for key, computing and storing it on a miss.

        Args:
            key: Cache key
            ttl: Expiration in seconds for a freshly computed value
            compute: Sync or async callable producing the value

        Returns:
            Cached or computed value
        """
        try:
            cached = await self._cache.get(key)
        except CacheError as e:
            self._observer.record_error(key, "get", e)
            cached = None

        if cached is not None:
            self._observer.record_hit(key)
            return cached

        self._observer.record_miss(key)
        value = compute()
        if inspect.isawaitable(value):
            value = await value

        if value is not None:
            await self._store(key, value, ttl)
        return value

    async def _store(self, key: str, value: Any, ttl: int) -> None:
        try:
            stored = await self._cache.set(key, value, ttl=ttl)
        except CacheError as e:
            self._observer.record_error(key, "set", e)
            return

        if stored:
            log_stage(logger, Stage.CACHE_POPULATE, "Cache populated", level="debug",
                      cache_key=key, ttl=ttl)
        else:
            self._observer.record_error(key, "set")

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def clear(self, key: str) -> None:
        """
        Delete one key.

        STAGE-2.4: Cache invalidation
        """
        await self._cache.delete(key)
        log_stage(logger, Stage.CACHE_INVALIDATE, "Cache invalidated", level="debug", cache_key=key)

    async def clear_by_pattern(self, pattern: str) -> int:
        """
        Delete every live key matching a glob pattern.

        Returns:
            Number of keys deleted
        """
        return await self._cache.delete_pattern(pattern)

    async def clear_game_cache(self, game_id: Any) -> None:
        """Invalidate everything derived from one game."""
        await self.clear(game_detail_key(game_id))
        await self.clear_by_pattern(f"{CACHE_PREFIX_GAME_REVIEWS}{game_id}:*")
        await self.clear(system_requirements_key(game_id))
        await self.clear_by_pattern(f"{CACHE_PREFIX_GAME_LIST}*")
        await self.clear_by_pattern(f"{CACHE_PREFIX_GAME_BY_CATEGORY}*")
        await self.clear_by_pattern(f"{CACHE_PREFIX_GAME_BY_TAG}*")
        log_stage(logger, Stage.CACHE_INVALIDATE, "Game cache cleared", game_id=str(game_id))

    async def clear_game_list_cache(self) -> int:
        return await self.clear_by_pattern(f"{CACHE_PREFIX_GAME_LIST}*")

    async def clear_game_categories_cache(self) -> None:
        await self.clear(game_categories_key())
        await self.clear(game_tags_key())

    async def clear_all(self) -> bool:
        """Flush the authoritative backend."""
        flushed = await self._cache.flushall()
        logger.info("All cache entries cleared", stage=Stage.CACHE_INVALIDATE.value,
                    backend=self._cache.backend_name, flushed=flushed)
        return flushed

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        return {
            **self._observer.get_stats(),
            "backend": self._cache.backend_name,
            "remote_authoritative": self._cache.is_remote_authoritative(),
        }


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_cache_query: CacheAsideQuery | None = None


def get_cache_query() -> CacheAsideQuery:
    """Get the cache-aside helper bound to the current global cache."""
    global _cache_query

    cache = get_cache()
    if _cache_query is None or _cache_query.cache is not cache:
        _cache_query = CacheAsideQuery(cache)

    return _cache_query
