"""
Remote Cache Client (Redis)

Architecture:
    RemoteCacheClient (Public API, CacheBackend implementation)
        ├── ConnectionManager (Connection lifecycle, PING latency)
        └── OperationExecutor (Command execution with error translation)

This is a thin adapter: it adds no retry and no fallback of its own. Every
transport failure is surfaced as CacheTransportError so the connection
supervisor can drive its state machine; reconnect policy lives there.

Timeouts:
    - Connect: REDIS_SOCKET_CONNECT_TIMEOUT (default 10s)
    - Per command: REDIS_SOCKET_TIMEOUT (default 5s)
"""

import time
from contextlib import contextmanager

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import DataError, RedisError, ResponseError

from gamehub_cache.core.config.settings import Settings, get_settings
from gamehub_cache.core.exceptions import (
    CacheConnectionError,
    CacheTransportError,
    CacheValueError,
)
from gamehub_cache.core.logging.logger import get_logger

logger = get_logger(__name__)

# Server replies that mean the caller misused a value or argument, not that the link failed
_VALUE_ERROR_MARKERS = (
    "not an integer",
    "WRONGTYPE",
    "out of range",
    "invalid expire time",
    "syntax error",
)


@contextmanager
def translate_errors(command: str, **context):
    """
    Map redis / socket exceptions onto the cache error taxonomy.

    - ResponseError about a value or argument -> CacheValueError (propagated)
    - DataError (rejected client-side)         -> CacheValueError (propagated)
    - Any other RedisError or OSError         -> CacheTransportError
    """
    try:
        yield
    except ResponseError as e:
        if any(marker in str(e) for marker in _VALUE_ERROR_MARKERS):
            raise CacheValueError(
                message=f"Redis {command} rejected value: {e}",
                details={"command": command, **context},
            ) from e
        raise CacheTransportError(
            message=f"Redis {command} failed: {e}",
            details={"command": command, **context},
        ) from e
    except DataError as e:
        raise CacheValueError(
            message=f"Redis {command} rejected arguments: {e}",
            details={"command": command, **context},
        ) from e
    except (RedisError, OSError) as e:
        logger.debug("Redis command failed", command=command, error=str(e), **context)
        raise CacheTransportError(
            message=f"Redis {command} failed: {e}",
            details={"command": command, "original_error": e.__class__.__name__, **context},
        ) from e


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# =============================================================================


class ConnectionManager:
    """
    Manages the Redis connection pool.

    Responsibility: Connection establishment and cleanup.

    Each connect() builds a fresh pool so a reconnect never reuses sockets
    from a pool that saw a reset.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._is_connected = False

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis and verify it with PING.

        STAGE-REDIS.2: Connection establishment

        Raises:
            CacheConnectionError: If connection fails
        """
        await self.disconnect()

        cfg = self._settings.redis
        self._pool = ConnectionPool(
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            db=cfg.REDIS_DB,
            password=cfg.REDIS_PASSWORD,
            max_connections=cfg.REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=cfg.REDIS_SOCKET_CONNECT_TIMEOUT,
            socket_timeout=cfg.REDIS_SOCKET_TIMEOUT,
            retry_on_timeout=False,  # The supervisor owns retry policy
            decode_responses=True,
        )
        self._client = redis.Redis(connection_pool=self._pool)

        try:
            await self._client.ping()
        except (RedisError, OSError) as e:
            await self.disconnect()
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={"host": cfg.REDIS_HOST, "port": cfg.REDIS_PORT},
            ) from e

        self._is_connected = True
        logger.info(
            "Redis connected",
            stage="REDIS.2",
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            max_connections=cfg.REDIS_MAX_CONNECTIONS,
        )
        return self._client

    async def disconnect(self) -> None:
        """
        Close the client and its pool. Safe to call when not connected.

        STAGE-REDIS.3: Connection cleanup
        """
        client, pool = self._client, self._pool
        self._client = None
        self._pool = None
        was_connected, self._is_connected = self._is_connected, False

        try:
            if client is not None:
                await client.aclose()
            if pool is not None:
                await pool.disconnect()
        except (RedisError, OSError) as e:
            logger.debug("Error while closing Redis connection", error=str(e))

        if was_connected:
            logger.info("Redis disconnected", stage="REDIS.3")

    async def ping(self) -> float:
        """
        PING the server.

        Returns:
            Round-trip latency in milliseconds

        Raises:
            CacheTransportError: If not connected or the PING fails
        """
        client = self.get_client()
        start = time.perf_counter()
        with translate_errors("PING"):
            await client.ping()
        return (time.perf_counter() - start) * 1000

    def get_client(self) -> redis.Redis:
        if self._client is None or not self._is_connected:
            raise CacheTransportError(message="Redis client is not connected")
        return self._client

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# =============================================================================


class OperationExecutor:
    """
    Executes Redis commands with consistent error translation.

    Responsibility: one method per command of the CacheBackend surface.
    """

    def __init__(self, connection_manager: ConnectionManager):
        self._conn_mgr = connection_manager

    @property
    def _redis(self) -> redis.Redis:
        return self._conn_mgr.get_client()

    # -------------------------------------------------------------------------
    # Basic Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        with translate_errors("GET", key=key):
            return await self._redis.get(key)

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
        px: int | None = None,
        nx: bool = False,
    ) -> bool:
        """
        SET key value [EX ttl | PX px] [NX]

        PX wins when both expirations are given.

        Returns:
            True if written; False if NX prevented the write
        """
        with translate_errors("SET", key=key):
            result = await self._redis.set(
                key, value, ex=None if px is not None else ttl, px=px, nx=nx
            )
        return bool(result)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        with translate_errors("DEL", keys=keys):
            return await self._redis.delete(*keys)

    async def exists(self, *keys: str) -> int:
        if not keys:
            return 0
        with translate_errors("EXISTS", keys=keys):
            return await self._redis.exists(*keys)

    # -------------------------------------------------------------------------
    # Counter Operations (for rate limiting, deduplication)
    # -------------------------------------------------------------------------

    async def incr(self, key: str) -> int:
        with translate_errors("INCR", key=key):
            return await self._redis.incr(key)

    # -------------------------------------------------------------------------
    # Expiration Operations
    # -------------------------------------------------------------------------

    async def expire(self, key: str, seconds: int) -> bool:
        with translate_errors("EXPIRE", key=key):
            return bool(await self._redis.expire(key, seconds))

    async def pexpire(self, key: str, millis: int) -> bool:
        with translate_errors("PEXPIRE", key=key):
            return bool(await self._redis.pexpire(key, millis))

    async def ttl(self, key: str) -> int:
        with translate_errors("TTL", key=key):
            return await self._redis.ttl(key)

    async def pttl(self, key: str) -> int:
        with translate_errors("PTTL", key=key):
            return await self._redis.pttl(key)

    # -------------------------------------------------------------------------
    # Keyspace Operations
    # -------------------------------------------------------------------------

    async def keys(self, pattern: str = "*") -> list[str]:
        """KEYS pattern. Blocks the server for large keyspaces; prefer scan_keys."""
        with translate_errors("KEYS", pattern=pattern):
            return list(await self._redis.keys(pattern))

    async def scan_keys(self, pattern: str = "*", count: int | None = None) -> list[str]:
        """
        Cursor-based SCAN MATCH pattern.

        SCAN may report a key more than once; the result is de-duplicated
        while keeping first-seen order.
        """
        with translate_errors("SCAN", pattern=pattern):
            found = [key async for key in self._redis.scan_iter(match=pattern, count=count)]
        return list(dict.fromkeys(found))

    async def flushall(self) -> bool:
        with translate_errors("FLUSHALL"):
            return bool(await self._redis.flushall())


# =============================================================================
# LAYER 3: PUBLIC API
# =============================================================================


class RemoteCacheClient:
    """
    Redis-backed CacheBackend.

    Usage:
        client = RemoteCacheClient()
        await client.connect()

        await client.set("key", "value", ttl=3600)
        value = await client.get("key")
        latency_ms = await client.ping()

        await client.disconnect()

    Every command may raise CacheTransportError; callers outside the
    resilience layer should go through CacheFacade instead.
    """

    name = "redis"

    def __init__(self, settings: Settings | None = None):
        """
        Initialize Redis client.

        STAGE-REDIS.1: Client initialization
        """
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(self._settings)
        self._executor = OperationExecutor(self._conn_mgr)

    async def connect(self) -> None:
        """
        Connect (or reconnect) to Redis.

        Raises:
            CacheConnectionError: If connection fails
        """
        await self._conn_mgr.connect()

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()

    async def ping(self) -> float:
        """PING round-trip latency in milliseconds."""
        return await self._conn_mgr.ping()

    def is_connected(self) -> bool:
        return self._conn_mgr.is_connected()

    # -------------------------------------------------------------------------
    # Delegate to OperationExecutor
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await self._executor.get(key)

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
        px: int | None = None,
        nx: bool = False,
    ) -> bool:
        return await self._executor.set(key, value, ttl=ttl, px=px, nx=nx)

    async def delete(self, *keys: str) -> int:
        return await self._executor.delete(*keys)

    async def exists(self, *keys: str) -> int:
        return await self._executor.exists(*keys)

    async def incr(self, key: str) -> int:
        return await self._executor.incr(key)

    async def expire(self, key: str, seconds: int) -> bool:
        return await self._executor.expire(key, seconds)

    async def pexpire(self, key: str, millis: int) -> bool:
        return await self._executor.pexpire(key, millis)

    async def ttl(self, key: str) -> int:
        return await self._executor.ttl(key)

    async def pttl(self, key: str) -> int:
        return await self._executor.pttl(key)

    async def keys(self, pattern: str = "*") -> list[str]:
        return await self._executor.keys(pattern)

    async def scan_keys(self, pattern: str = "*", count: int | None = None) -> list[str]:
        return await self._executor.scan_keys(pattern, count)

    async def flushall(self) -> bool:
        return await self._executor.flushall()
