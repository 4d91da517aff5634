"""
Cache Facade - Unified Command Surface

Architecture:
    CacheFacade (Public API)
        ├── ConnectionSupervisor (which backend is authoritative)
        │   ├── RemoteCacheClient (Redis, when READY)
        │   └── FallbackStore (in-process, otherwise)
        └── Value codec (orjson)

Every call is routed to ``supervisor.current_backend`` at call time. There
is no per-call retry against the other backend: a transport failure is
logged, reported to the supervisor's error channel and turned into a
cache-miss-equivalent result. Value errors (INCR on a non-integer, values
orjson cannot encode) propagate because they mean the caller misused the
cache.

Value Encoding:
    set() stores ``orjson.dumps(value)``; get() tries ``orjson.loads`` and
    returns the raw text when it is not JSON, so plain strings written by
    older code (or by INCR) still read back.
"""

from typing import Any

import orjson

from gamehub_cache.core.config.constants import TTL_KEY_MISSING, Stage
from gamehub_cache.core.config.settings import Settings, get_settings
from gamehub_cache.core.exceptions import CacheTransportError, CacheValueError
from gamehub_cache.core.logging.logger import get_logger, log_stage
from gamehub_cache.core.resilience import ConnectionSupervisor
from gamehub_cache.infrastructure.cache.fallback_store import FallbackStore, check_expiry
from gamehub_cache.infrastructure.cache.redis_client import RemoteCacheClient

logger = get_logger(__name__)


def serialize(value: Any) -> str:
    """
    Encode a value to its stored text form.

    Raises:
        CacheValueError: If the value cannot be encoded
    """
    try:
        return orjson.dumps(value).decode("utf-8")
    except TypeError as e:
        raise CacheValueError(
            message=f"Cannot serialize value of type {type(value).__name__}",
            details={"type": type(value).__name__},
        ) from e


def deserialize(raw: str | None) -> Any:
    """Decode stored text, returning it unchanged when it is not JSON."""
    if raw is None:
        return None
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        return raw


class CacheFacade:
    """
    Single entry point for raw cache access.

    Usage:
        cache = await init_cache()

        await cache.set("game:detail:42", {"id": 42}, ttl=300)
        game = await cache.get("game:detail:42")      # {"id": 42}
        await cache.delete_pattern("game:list:*")

    Transport failures never escape: reads return None, writes return
    False, counts return 0, ttl/pttl return -2 and incr returns None.
    """

    def __init__(self, supervisor: ConnectionSupervisor, settings: Settings | None = None):
        self._supervisor = supervisor
        self._settings = settings or get_settings()
        self._scan_count = self._settings.cache.CACHE_PATTERN_SCAN_COUNT

    @property
    def supervisor(self) -> ConnectionSupervisor:
        return self._supervisor

    @property
    def backend_name(self) -> str:
        return self._supervisor.current_backend.name

    def is_remote_authoritative(self) -> bool:
        return self._supervisor.is_remote_authoritative()

    async def _execute(self, command: str, default: Any, *args, **kwargs) -> Any:
        """
        Run one command on the authoritative backend.

        STAGE-2.5: Soft failure on transport errors
        """
        backend = self._supervisor.current_backend
        try:
            return await getattr(backend, command)(*args, **kwargs)
        except CacheTransportError as e:
            log_stage(
                logger,
                Stage.CACHE_SOFT_FAILURE,
                "Cache command failed, returning default",
                level="warning",
                command=command,
                backend=backend.name,
                error=str(e),
            )
            self._supervisor.report_transport_error(e)
            return default

    # -------------------------------------------------------------------------
    # Basic Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any:
        return deserialize(await self._execute("get", None, key))

    async def get_raw(self, key: str) -> str | None:
        """Stored text without decoding."""
        return await self._execute("get", None, key)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
        px: int | None = None,
        nx: bool = False,
    ) -> bool:
        """
        Store a value.

        Args:
            key: Cache key
            value: Any orjson-serializable value
            ttl: Expiration in seconds, a positive int (None = no expiration)
            px: Expiration in milliseconds, a positive int (takes precedence over ttl)
            nx: Only set if the key does not exist

        Returns:
            True if written; False if nx blocked the write or the cache failed

        Raises:
            CacheValueError: If ttl or px is invalid or the value cannot be encoded
        """
        check_expiry("SET", ttl=ttl, px=px)
        if px is not None:
            ttl = None
        return bool(await self._execute("set", False, key, serialize(value), ttl=ttl, px=px, nx=nx))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._execute("delete", 0, *keys)

    async def exists(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._execute("exists", 0, *keys)

    async def incr(self, key: str) -> int | None:
        """
        Atomically increment a counter.

        Returns:
            New value, or None if the cache is unavailable

        Raises:
            CacheValueError: If the stored value is not an integer
        """
        return await self._execute("incr", None, key)

    # -------------------------------------------------------------------------
    # Expiration Operations
    # -------------------------------------------------------------------------

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self._execute("expire", False, key, seconds))

    async def pexpire(self, key: str, millis: int) -> bool:
        return bool(await self._execute("pexpire", False, key, millis))

    async def ttl(self, key: str) -> int:
        return await self._execute("ttl", TTL_KEY_MISSING, key)

    async def pttl(self, key: str) -> int:
        return await self._execute("pttl", TTL_KEY_MISSING, key)

    # -------------------------------------------------------------------------
    # Keyspace Operations
    # -------------------------------------------------------------------------

    async def keys(self, pattern: str = "*") -> list[str]:
        return await self._execute("keys", [], pattern)

    async def scan_keys(self, pattern: str = "*") -> list[str]:
        return await self._execute("scan_keys", [], pattern, self._scan_count)

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every live key matching a glob pattern.

        STAGE-2.4: Pattern invalidation (SCAN, then one bulk DEL)

        Returns:
            Number of keys deleted
        """
        keys = await self.scan_keys(pattern)
        if not keys:
            return 0
        deleted = await self.delete(*keys)
        log_stage(logger, Stage.CACHE_INVALIDATE, "Cache keys invalidated by pattern",
                  pattern=pattern, deleted=deleted, backend=self.backend_name)
        return deleted

    async def flushall(self) -> bool:
        return bool(await self._execute("flushall", False))

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Supervisor status snapshot (see ConnectionSupervisor.status)."""
        return self._supervisor.status()


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_cache: CacheFacade | None = None


def build_cache(settings: Settings | None = None) -> CacheFacade:
    """Wire a facade over a fresh remote client, fallback store and supervisor."""
    settings = settings or get_settings()
    supervisor = ConnectionSupervisor(
        remote=RemoteCacheClient(settings),
        fallback=FallbackStore(settings.fallback.FALLBACK_SWEEP_INTERVAL_SECONDS),
        settings=settings,
    )
    return CacheFacade(supervisor, settings)


def get_cache() -> CacheFacade:
    """
    Get the global cache facade (singleton).

    A facade that was never connected routes to the fallback store.
    """
    global _cache

    if _cache is None:
        _cache = build_cache()

    return _cache


async def init_cache() -> CacheFacade:
    """
    Initialize the global cache and start connecting to Redis.

    Returns after the first connection attempt; if it failed, the facade
    serves from the fallback while the supervisor keeps retrying.
    """
    cache = get_cache()
    state = await cache.supervisor.connect()
    logger.info("Cache initialized", stage="2.0", state=state.value, backend=cache.backend_name)
    return cache


async def close_cache() -> None:
    """Stop the supervisor and drop the global cache. Idempotent."""
    global _cache

    if _cache is not None:
        await _cache.supervisor.stop()
        _cache = None
