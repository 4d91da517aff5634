"""
Rate Limiting Module

Windowed counters and duplicate-request markers on top of the cache facade,
plus the FastAPI dependencies that use them.
"""

from .counters import RateLimitCounters, WindowResult, get_rate_limit_counters
from .dependencies import (
    enforce_download_rate_limit,
    get_client_ip,
    prevent_duplicate_download,
    setup_rate_limiting,
)

__all__ = [
    "RateLimitCounters",
    "WindowResult",
    "enforce_download_rate_limit",
    "get_client_ip",
    "get_rate_limit_counters",
    "prevent_duplicate_download",
    "setup_rate_limiting",
]
