#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
cache resilience layer. All tunables (remote endpoint, reconnect policy,
heartbeat, fallback sweeping, TTL tiers, rate limits, logging) live here.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Remote cache connection configuration.

    STAGE-0.1: Redis connection configuration
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=5, gt=0, description="Per-command timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=10, gt=0, description="Connect timeout in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ReconnectSettings(BaseSettings):
    """
    Reconnect backoff policy.

    delay = min(base * 2^attempts + random(0, jitter), max)
    """

    RECONNECT_BASE_DELAY_MS: int = Field(default=1000, gt=0, description="Backoff base delay")
    RECONNECT_MAX_DELAY_MS: int = Field(default=60000, gt=0, description="Backoff cap")
    RECONNECT_JITTER_MS: int = Field(default=2000, ge=0, description="Maximum random jitter")
    RECONNECT_MAX_ATTEMPTS: int = Field(default=10, gt=0, description="Attempts before FAILED")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class HeartbeatSettings(BaseSettings):
    """Heartbeat (PING) configuration while the remote cache is READY."""

    HEARTBEAT_INTERVAL_MS: int = Field(default=30000, gt=0, description="Heartbeat period")
    HEARTBEAT_TIMEOUT_MS: int = Field(default=5000, gt=0, description="PING timeout")
    HEARTBEAT_WARN_LATENCY_MS: int = Field(default=200, gt=0, description="Slow PING threshold")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class FallbackSettings(BaseSettings):
    """In-process fallback store configuration."""

    FALLBACK_SWEEP_INTERVAL_SECONDS: float = Field(
        default=60, gt=0, description="Expired-entry sweep period"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Cache-aside configuration.

    STAGE-2: Cache TTL configuration

    Tiers are a policy convention: callers pick one per data-volatility class.
    """

    CACHE_TTL_SHORT: int = Field(default=300, gt=0, description="Volatile data (5 minutes)")
    CACHE_TTL_MEDIUM: int = Field(default=1800, gt=0, description="Moderately stable data (30 minutes)")
    CACHE_TTL_LONG: int = Field(default=86400, gt=0, description="Stable data (24 hours)")
    CACHE_PATTERN_SCAN_COUNT: int = Field(default=500, gt=0, description="SCAN page size")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Rate limiting configuration.

    STAGE-3: Rate limiting thresholds
    """

    DOWNLOAD_RATE_LIMIT: int = Field(default=20, gt=0, description="Downloads per window per IP")
    DOWNLOAD_RATE_WINDOW_SECONDS: int = Field(default=3600, gt=0, description="Download window")
    DOWNLOAD_DEDUP_TTL_SECONDS: int = Field(default=60, gt=0, description="Duplicate download window")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


_SECTIONS: dict[str, type[BaseSettings]] = {
    "redis": RedisSettings,
    "reconnect": ReconnectSettings,
    "heartbeat": HeartbeatSettings,
    "fallback": FallbackSettings,
    "cache": CacheSettings,
    "rate_limit": RateLimitSettings,
    "logging": LoggingSettings,
}


class Settings(
    RedisSettings,
    ReconnectSettings,
    HeartbeatSettings,
    FallbackSettings,
    CacheSettings,
    RateLimitSettings,
    LoggingSettings,
):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from gamehub_cache.core.config import get_settings

        settings = get_settings()
        host = settings.redis.REDIS_HOST
        attempts = settings.reconnect.RECONNECT_MAX_ATTEMPTS

    Every field is declared once on its section class; this class inherits
    them all so a flat environment (or .env file) populates every section.
    """

    def _section(self, name: str) -> BaseSettings:
        section_cls = _SECTIONS[name]
        values = {field: getattr(self, field) for field in section_cls.model_fields}
        return section_cls.model_construct(**values)

    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return self._section("redis")

    @property
    def reconnect(self) -> ReconnectSettings:
        """Get reconnect backoff settings."""
        return self._section("reconnect")

    @property
    def heartbeat(self) -> HeartbeatSettings:
        """Get heartbeat settings."""
        return self._section("heartbeat")

    @property
    def fallback(self) -> FallbackSettings:
        """Get fallback store settings."""
        return self._section("fallback")

    @property
    def cache(self) -> CacheSettings:
        """Get cache-aside settings."""
        return self._section("cache")

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return self._section("rate_limit")

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return self._section("logging")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
