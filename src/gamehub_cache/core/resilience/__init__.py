"""
Resilience package.

The connection supervisor decides which cache backend is authoritative and
drives reconnection with backoff and heartbeats.
"""

from gamehub_cache.core.resilience.connection_supervisor import (
    ConnectionSupervisor,
    HeartbeatRecord,
    RetryState,
)

__all__ = ["ConnectionSupervisor", "HeartbeatRecord", "RetryState"]
