"""
Cache-Related Exceptions

Taxonomy:
- CacheTransportError: the remote call failed (timeout, reset, protocol).
  Never reaches application callers; the facade turns it into a soft miss
  and the supervisor turns it into a state transition.
- CacheValueError: caller misuse such as INCR on a non-integer value.
  Always propagated.
- Absent keys are not errors; they are returned as None.
"""

from gamehub_cache.core.exceptions.base import GameHubError


class CacheError(GameHubError):
    """Base exception for cache-related errors."""
    pass


class CacheTransportError(CacheError):
    """
    Raised when a remote cache command fails in transit.

    Common causes:
    - Command timeout
    - Connection reset by peer
    - Protocol / framing error
    """
    pass


class CacheConnectionError(CacheTransportError):
    """
    Raised when unable to connect to the remote cache.

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheValueError(CacheError):
    """
    Raised when a command is applied to a value of the wrong kind.

    Example: INCR on a key holding "abc".
    """
    pass


class CacheUnavailableError(CacheError):
    """Raised when the remote backend is requested while it is not READY."""
    pass
