"""
System Constants and Enumerations

This module defines constants and enumerations shared across the cache
resilience layer.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management
"""

from enum import Enum, IntEnum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Cache-layer stages used as the ``stage`` field of log entries.

    Format: {PREFIX}.{NUMBER}_{DESCRIPTIVE_NAME}
    """

    SUPERVISOR_CONNECT = "SUP.1_CONNECT"
    SUPERVISOR_READY = "SUP.2_READY"
    SUPERVISOR_RECONNECT = "SUP.3_RECONNECT"
    SUPERVISOR_FAILED = "SUP.4_FAILED"
    SUPERVISOR_HEARTBEAT = "SUP.5_HEARTBEAT"
    SUPERVISOR_SHUTDOWN = "SUP.6_SHUTDOWN"

    FALLBACK_SWEEP = "FB.1_SWEEP"

    CACHE_LOOKUP = "2.1_CACHE_LOOKUP"
    CACHE_MISS = "2.2_CACHE_MISS"
    CACHE_POPULATE = "2.3_CACHE_POPULATE"
    CACHE_INVALIDATE = "2.4_CACHE_INVALIDATE"
    CACHE_SOFT_FAILURE = "2.5_CACHE_SOFT_FAILURE"

    RATE_LIMITING = "3.0_RATE_LIMITING"
    DEDUPLICATION = "3.1_DEDUPLICATION"


# ============================================================================
# Connection State Machine
# ============================================================================


class ConnectionState(str, Enum):
    """
    Remote cache connection states.

    DISCONNECTED: Never connected, or stopped
    CONNECTING: First attempt of a connection cycle in progress
    READY: Remote cache is authoritative
    RECONNECTING: Backoff retries in progress, fallback is authoritative
    FAILED: Retries exhausted; fallback stays authoritative until connect()
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


# ============================================================================
# Cache TTL Tiers
# ============================================================================


class CacheTTL(IntEnum):
    """
    Tiered expirations in seconds.

    SHORT: listings, search results, review pages
    MEDIUM: category/tag lookups, recommendations
    LONG: rarely changing reference data
    """

    SHORT = 300
    MEDIUM = 1800
    LONG = 86400


# ============================================================================
# Key Prefixes
# ============================================================================

CACHE_PREFIX_GAME_LIST = "game:list:"
CACHE_PREFIX_GAME_DETAIL = "game:detail:"
CACHE_PREFIX_GAME_CATEGORIES = "game:categories:"
CACHE_PREFIX_GAME_TAGS = "game:tags:"
CACHE_PREFIX_GAME_REVIEWS = "game:reviews:"
CACHE_PREFIX_GAME_BY_CATEGORY = "game:by_category:"
CACHE_PREFIX_GAME_BY_TAG = "game:by_tag:"
CACHE_PREFIX_SYSTEM_REQUIREMENTS = "system_requirements:"
CACHE_PREFIX_GAME_RECOMMENDATIONS = "game:recommendations:"

DOWNLOAD_GLOBAL_KEY_PREFIX = "download:global:"
DOWNLOAD_DEDUP_KEY_PREFIX = "download:"

# Redis TTL/PTTL sentinel values
TTL_NO_EXPIRY = -1
TTL_KEY_MISSING = -2

# ============================================================================
# HTTP
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
