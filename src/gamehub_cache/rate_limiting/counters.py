"""
Atomic Counter Primitives

Fixed-window rate limiting and short-lived request deduplication, built on
INCR / EXPIRE / SET NX of whichever backend is authoritative. While the
remote cache is down the fallback counters keep working locally.

Fixed window:
    count = INCR key
    if count == 1: EXPIRE key window     (only the first hit opens the window)
    elif TTL key == -1: EXPIRE key window (repair a window whose EXPIRE was lost)
    allowed = count <= limit

Both primitives fail open: if the cache cannot answer, the request is
allowed rather than rejected.
"""

from dataclasses import dataclass
from typing import Any

from gamehub_cache.core.config.constants import TTL_NO_EXPIRY, Stage
from gamehub_cache.core.logging.logger import get_logger, log_stage
from gamehub_cache.infrastructure.cache.cache_facade import CacheFacade, get_cache

logger = get_logger(__name__)


@dataclass(frozen=True)
class WindowResult:
    """Outcome of one windowed increment."""

    count: int
    allowed: bool
    remaining: int
    retry_after: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "allowed": self.allowed,
            "remaining": self.remaining,
            "retry_after": self.retry_after,
        }


class RateLimitCounters:
    """
    Counter helpers used by request-handling dependencies.

    Usage:
        counters = get_rate_limit_counters()
        result = await counters.increment_windowed("download:global:1.2.3.4", 3600, 20)
        if not result.allowed:
            ...
        if await counters.mark_seen_once(dedup_key, 60):
            ...  # duplicate
    """

    def __init__(self, cache: CacheFacade):
        self._cache = cache

    @property
    def cache(self) -> CacheFacade:
        return self._cache

    async def increment_windowed(self, key: str, window_seconds: int, limit: int) -> WindowResult:
        """
        Count one hit in a fixed window.

        Args:
            key: Counter key (encodes the rate-limit scope)
            window_seconds: Window length, set on the first hit (reapplied if it went missing)
            limit: Maximum hits allowed per window

        Returns:
            WindowResult; allowed is True for the first ``limit`` hits

        Raises:
            CacheValueError: If the key holds a non-integer value
        """
        count = await self._cache.incr(key)
        if count is None:
            log_stage(logger, Stage.RATE_LIMITING, "Rate limit counter unavailable, allowing request",
                      level="warning", key=key)
            return WindowResult(count=0, allowed=True, remaining=limit)

        if count == 1:
            opened = await self._cache.expire(key, window_seconds)
            remaining_ttl = window_seconds if opened else TTL_NO_EXPIRY
        else:
            remaining_ttl = await self._cache.ttl(key)

        if remaining_ttl == TTL_NO_EXPIRY:
            # The EXPIRE that opened this window was lost; without one it never closes
            log_stage(logger, Stage.RATE_LIMITING, "Rate limit window had no expiry, reapplying",
                      level="warning", key=key, count=count)
            await self._cache.expire(key, window_seconds)
            remaining_ttl = window_seconds

        allowed = count <= limit
        retry_after = 0
        if not allowed:
            retry_after = remaining_ttl if remaining_ttl > 0 else window_seconds
            log_stage(logger, Stage.RATE_LIMITING, "Rate limit exceeded", level="warning",
                      key=key, count=count, limit=limit, retry_after=retry_after)

        return WindowResult(
            count=count,
            allowed=allowed,
            remaining=max(limit - count, 0),
            retry_after=retry_after,
        )

    async def mark_seen_once(self, key: str, ttl_seconds: int) -> bool:
        """
        Atomically record a marker unless it is already present.

        Returns:
            True if the key was already seen within ttl_seconds, else False
        """
        if await self._cache.set(key, True, ttl=ttl_seconds, nx=True):
            return False

        # set() is also False when the cache failed; only a live marker counts
        seen = await self._cache.exists(key) > 0
        if seen:
            log_stage(logger, Stage.DEDUPLICATION, "Duplicate request rejected", level="warning",
                      key=key)
        return seen


_counters: RateLimitCounters | None = None


def get_rate_limit_counters() -> RateLimitCounters:
    """Get the counters bound to the current global cache."""
    global _counters

    cache = get_cache()
    if _counters is None or _counters.cache is not cache:
        _counters = RateLimitCounters(cache)

    return _counters
