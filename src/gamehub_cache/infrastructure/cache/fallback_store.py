"""
In-Process Fallback Store

Architecture:
    FallbackStore (CacheBackend implementation)
        ├── CacheEntry table (dict guarded by one threading.Lock)
        └── Sweeper (asyncio task removing expired entries)

The fallback store is authoritative whenever the remote cache is not READY.
It must be observably identical to Redis for every command the application
uses, including TTL sentinels (-1 / -2), INCR atomicity and glob matching.

Expiry is lazy on every read path and eager through the sweeper, so memory
does not grow between accesses. The store is local to one process; it is a
degraded-mode substitute, not a coherent distributed cache.
"""

import asyncio
import functools
import math
import re
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from gamehub_cache.core.config.constants import TTL_KEY_MISSING, TTL_NO_EXPIRY, Stage
from gamehub_cache.core.config.settings import get_settings
from gamehub_cache.core.exceptions import CacheValueError
from gamehub_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

# Redis only accepts canonical base-10 integers for INCR
_INTEGER = re.compile(r"-?(0|[1-9][0-9]*)\Z")


def check_expiry(command: str, **expirations: int | None) -> None:
    """
    Reject expirations Redis would refuse: anything but a positive integer.

    Raises:
        CacheValueError: On a non-integer or non-positive expiration
    """
    for name, value in expirations.items():
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise CacheValueError(
                message=f"invalid expire time in {command.lower()}",
                details={"command": command, name: value},
            )


def _check_integer(command: str, key: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise CacheValueError(
            message="value is not an integer or out of range",
            details={"key": key, "command": command},
        )


@functools.lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern:
    """
    Translate a Redis KEYS/SCAN glob into a regex.

    ``*`` any run, ``?`` one character, ``[abc]`` / ``[a-z]`` / ``[^x]``
    classes and ``\\`` escapes. Reversed ranges are swapped and an
    unterminated class runs to the end of the pattern, as in Redis.
    """
    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c == "*":
            out.append(".*")
        elif c == "?":
            out.append(".")
        elif c == "\\" and i < n:
            out.append(re.escape(pattern[i]))
            i += 1
        elif c == "[":
            negate = i < n and pattern[i] == "^"
            if negate:
                i += 1
            items = []
            while i < n and pattern[i] != "]":
                if pattern[i] == "\\" and i + 1 < n:
                    items.append(re.escape(pattern[i + 1]))
                    i += 2
                elif i + 2 < n and pattern[i + 1] == "-" and pattern[i + 2] != "]":
                    low, high = sorted((pattern[i], pattern[i + 2]))
                    items.append(f"{re.escape(low)}-{re.escape(high)}")
                    i += 3
                else:
                    items.append(re.escape(pattern[i]))
                    i += 1
            i += 1
            if items:
                out.append(f"[{'^' if negate else ''}{''.join(items)}]")
            else:
                # "[]" matches nothing, "[^]" matches any one character
                out.append("." if negate else "(?!)")
        else:
            out.append(re.escape(c))
    return re.compile("".join(out), re.DOTALL)


@dataclass
class CacheEntry:
    """
    One stored value.

    ``expires_at`` and ``created_at`` are readings of the store's clock
    (monotonic seconds by default). An entry whose ``expires_at`` has passed
    is logically absent.
    """

    key: str
    value: str
    expires_at: float | None = None
    created_at: float = field(default=0.0)

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class FallbackStore:
    """
    Thread-safe in-memory key/value table with per-entry expiration.

    Thread-Safety: every operation runs under a single threading.Lock and
    never awaits while holding it, so it is safe from both event-loop tasks
    and worker threads. INCR is a read-modify-write inside that lock and
    cannot lose updates; the sweeper takes the same lock and re-checks expiry
    per entry, so it never removes a value a concurrent SET just wrote.

    Methods are coroutines only to share the CacheBackend surface with the
    remote client; none of them perform I/O.
    """

    name = "fallback"

    def __init__(
        self,
        sweep_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the fallback store.

        Args:
            sweep_interval: Seconds between sweeps (default: from settings)
            clock: Time source in seconds, injectable for tests
        """
        if sweep_interval is None:
            sweep_interval = get_settings().fallback.FALLBACK_SWEEP_INTERVAL_SECONDS

        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._sweep_task: asyncio.Task | None = None

    # -------------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # -------------------------------------------------------------------------

    def _live_entry(self, key: str, now: float) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            del self._entries[key]
            return None
        return entry

    # -------------------------------------------------------------------------
    # Basic Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry(key, self._clock())
            return entry.value if entry else None

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
        px: int | None = None,
        nx: bool = False,
    ) -> bool:
        """
        Store a value, replacing any previous value and expiration.

        With nx=True the write only happens if no live entry exists, which
        makes this an atomic check-and-set.

        px wins when both expirations are given.

        Raises:
            CacheValueError: If ttl or px is not a positive integer
        """
        check_expiry("SET", ttl=ttl, px=px)
        with self._lock:
            now = self._clock()
            if nx and self._live_entry(key, now) is not None:
                return False

            expires_at = None
            if px is not None:
                expires_at = now + px / 1000
            elif ttl is not None:
                expires_at = now + ttl

            self._entries[key] = CacheEntry(
                key=key, value=str(value), expires_at=expires_at, created_at=now
            )
            return True

    async def delete(self, *keys: str) -> int:
        with self._lock:
            now = self._clock()
            deleted = 0
            for key in keys:
                if self._live_entry(key, now) is not None:
                    del self._entries[key]
                    deleted += 1
            return deleted

    async def exists(self, *keys: str) -> int:
        with self._lock:
            now = self._clock()
            # Repeated keys count once per occurrence, as with Redis EXISTS
            return sum(1 for key in keys if self._live_entry(key, now) is not None)

    # -------------------------------------------------------------------------
    # Counter Operations
    # -------------------------------------------------------------------------

    async def incr(self, key: str) -> int:
        """
        Increment a counter, keeping its current expiration.

        Raises:
            CacheValueError: If the stored value is not an integer
        """
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now)
            if entry is None:
                self._entries[key] = CacheEntry(key=key, value="1", created_at=now)
                return 1

            if not _INTEGER.match(entry.value):
                raise CacheValueError(
                    message="value is not an integer or out of range",
                    details={"key": key, "command": "INCR"},
                )

            current = int(entry.value)
            entry.value = str(current + 1)
            return current + 1

    # -------------------------------------------------------------------------
    # Expiration Operations
    # -------------------------------------------------------------------------

    async def expire(self, key: str, seconds: int) -> bool:
        _check_integer("EXPIRE", key, seconds)
        return self._set_expiry(key, seconds * 1000)

    async def pexpire(self, key: str, millis: int) -> bool:
        _check_integer("PEXPIRE", key, millis)
        return self._set_expiry(key, millis)

    def _set_expiry(self, key: str, millis: int) -> bool:
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now)
            if entry is None:
                return False
            if millis <= 0:
                # Redis deletes keys given a non-positive expiration
                del self._entries[key]
                return True
            entry.expires_at = now + millis / 1000
            return True

    async def ttl(self, key: str) -> int:
        remaining = self._remaining_ms(key)
        if remaining < 0:
            return remaining
        return math.floor(remaining / 1000)

    async def pttl(self, key: str) -> int:
        return self._remaining_ms(key)

    def _remaining_ms(self, key: str) -> int:
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now)
            if entry is None:
                return TTL_KEY_MISSING
            if entry.expires_at is None:
                return TTL_NO_EXPIRY
            return math.floor((entry.expires_at - now) * 1000)

    # -------------------------------------------------------------------------
    # Keyspace Operations
    # -------------------------------------------------------------------------

    async def keys(self, pattern: str = "*") -> list[str]:
        """
        List live keys matching a Redis glob (see compile_glob).
        """
        glob = compile_glob(pattern)
        with self._lock:
            now = self._clock()
            return [
                key
                for key, entry in self._entries.items()
                if not entry.is_expired(now) and glob.fullmatch(key)
            ]

    async def scan_keys(self, pattern: str = "*", count: int | None = None) -> list[str]:
        """Same as keys(); a local table has no cursor to page through."""
        return await self.keys(pattern)

    async def flushall(self) -> bool:
        with self._lock:
            self._entries.clear()
        return True

    # -------------------------------------------------------------------------
    # Sweeper
    # -------------------------------------------------------------------------

    def sweep(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            log_stage(logger, Stage.FALLBACK_SWEEP, "Swept expired fallback entries",
                      level="debug", removed=len(expired))
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()

    def start(self) -> None:
        """Start the periodic sweeper. Idempotent; requires a running loop."""
        if self.is_sweeping:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        logger.debug("Fallback sweeper started", interval_seconds=self._sweep_interval)

    def stop(self) -> None:
        """Stop the periodic sweeper. Idempotent; keeps stored entries."""
        task, self._sweep_task = self._sweep_task, None
        if task is None or task.done():
            return
        task.cancel()
        logger.debug("Fallback sweeper stopped")

    @property
    def is_sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def __len__(self) -> int:
        """Number of stored entries, including expired ones not yet swept."""
        return len(self._entries)
