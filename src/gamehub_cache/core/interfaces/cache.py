"""
Cache Backend Protocol

This module defines the command surface shared by the remote cache client
and the in-process fallback store. The connection supervisor holds one
reference typed as CacheBackend and swaps it on state transitions, so call
sites never branch on backend type.

Architectural Decision: Protocol-based abstraction
- Two implementations: RemoteCacheClient (Redis) and FallbackStore (in-process)
- Facilitates testing with mock implementations
- Runtime checking with @runtime_checkable
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """
    Command surface every cache backend must provide.

    Values are opaque text: serialization is the caller's concern.
    TTL results follow Redis conventions: -2 missing key, -1 no expiry.
    """

    name: str

    async def get(self, key: str) -> str | None:
        """
        Get value from cache.

        Returns:
            Value, or None if missing or expired
        """
        ...

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
        px: int | None = None,
        nx: bool = False,
    ) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Serialized value
            ttl: Expiration in seconds (SET ... EX)
            px: Expiration in milliseconds (SET ... PX)
            nx: Only set if the key does not exist (SET ... NX)

        Returns:
            True if the value was written
        """
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys and return how many existed."""
        ...

    async def exists(self, *keys: str) -> int:
        """Count how many of the keys are present (expired keys do not count)."""
        ...

    async def incr(self, key: str) -> int:
        """
        Atomically increment an integer value, treating a missing key as 0.

        Raises:
            CacheValueError: If the stored value is not an integer
        """
        ...

    async def expire(self, key: str, seconds: int) -> bool:
        """Set a TTL in seconds on an existing key. False if the key is absent."""
        ...

    async def pexpire(self, key: str, millis: int) -> bool:
        """Set a TTL in milliseconds on an existing key. False if the key is absent."""
        ...

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds, -1 if no expiry, -2 if missing."""
        ...

    async def pttl(self, key: str) -> int:
        """Remaining TTL in milliseconds, -1 if no expiry, -2 if missing."""
        ...

    async def keys(self, pattern: str = "*") -> list[str]:
        """List live keys matching a glob pattern."""
        ...

    async def scan_keys(self, pattern: str = "*", count: int | None = None) -> list[str]:
        """List live keys matching a glob pattern, incrementally where supported."""
        ...

    async def flushall(self) -> bool:
        """Remove every key."""
        ...


@runtime_checkable
class RemoteCacheBackend(CacheBackend, Protocol):
    """A CacheBackend reached over the network, with a connection lifecycle."""

    async def connect(self) -> None:
        """
        Establish (or re-establish) the connection.

        Raises:
            CacheConnectionError: If connection fails
        """
        ...

    async def disconnect(self) -> None:
        """Release the connection. Safe to call when not connected."""
        ...

    async def ping(self) -> float:
        """
        Round-trip a PING.

        Returns:
            Latency in milliseconds

        Raises:
            CacheTransportError: If the PING fails
        """
        ...


@runtime_checkable
class LocalCacheBackend(CacheBackend, Protocol):
    """An in-process CacheBackend with a background expiry sweeper."""

    def start(self) -> None:
        """Start the sweeper. Idempotent."""
        ...

    def stop(self) -> None:
        """Stop the sweeper. Idempotent; keeps stored entries."""
        ...
