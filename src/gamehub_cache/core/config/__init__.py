"""
Configuration package.

Exposes the settings singleton and shared constants.
"""

from gamehub_cache.core.config.constants import CacheTTL, ConnectionState, Stage
from gamehub_cache.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    "CacheTTL",
    "ConnectionState",
    "Settings",
    "Stage",
    "get_settings",
    "reload_settings",
]
