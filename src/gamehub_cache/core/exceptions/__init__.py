"""
Exception Module

Structured exception hierarchy for the cache resilience layer.

Module Structure:
-----------------
- **base.py**: GameHubError base class + ConfigurationError
- **cache.py**: Transport, value and availability errors of the cache layer
- **rate_limit.py**: Rate limiting exceptions

Usage:
------
```python
from gamehub_cache.core.exceptions import CacheTransportError, CacheValueError
```
"""

from gamehub_cache.core.exceptions.base import ConfigurationError, GameHubError
from gamehub_cache.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheTransportError,
    CacheUnavailableError,
    CacheValueError,
)
from gamehub_cache.core.exceptions.rate_limit import RateLimitExceededError

__all__ = [
    # Base
    "GameHubError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheTransportError",
    "CacheConnectionError",
    "CacheValueError",
    "CacheUnavailableError",
    # Rate Limit
    "RateLimitExceededError",
]
