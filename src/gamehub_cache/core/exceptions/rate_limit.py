"""
Rate Limiting Exceptions
"""

from gamehub_cache.core.exceptions.base import GameHubError


class RateLimitExceededError(GameHubError):
    """
    Raised when a windowed counter exceeds its limit, or a duplicate
    request is seen inside its deduplication window.

    Attributes:
        retry_after: Seconds the caller should wait before retrying
    """

    def __init__(self, message: str, retry_after: int, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        self.details.setdefault("retry_after", retry_after)
