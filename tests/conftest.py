"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os

import pytest

from tests.test_fixtures import CacheTestFactory, FakeClock, fast_settings

# ============================================================================
# Global State Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def reset_globals():
    """
    Reset module-level singletons between tests.

    The cache facade, cache-aside helper and counters are process-wide
    singletons; a test that builds one must not leak it into the next.
    """
    import gamehub_cache.core.config.settings as settings_module
    import gamehub_cache.infrastructure.cache.cache_facade as facade_module
    import gamehub_cache.infrastructure.cache.cache_query as query_module
    import gamehub_cache.rate_limiting.counters as counters_module

    yield

    settings_module._settings = None
    facade_module._cache = None
    query_module._cache_query = None
    counters_module._counters = None


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """
    Settings tuned for fast tests.

    Backoff in milliseconds, 3 attempts before FAILED, no jitter, and
    heartbeat/sweep intervals long enough that they never fire on their own.
    """
    return fast_settings()


# ============================================================================
# Environment-Based Integration Toggles
# ============================================================================


@pytest.fixture(scope="session")
def use_real_redis():
    """Check if real Redis should be used for integration tests."""
    return os.getenv("USE_REAL_REDIS", "0").lower() in ("1", "true", "yes")


# ============================================================================
# Cache Fixtures
# ============================================================================


@pytest.fixture
def fake_clock():
    """Manually advanced clock for deterministic expiry."""
    return FakeClock()


@pytest.fixture
def fallback_store(fake_clock):
    """FallbackStore driven by the fake clock."""
    return CacheTestFactory.fallback_store(fake_clock)


@pytest.fixture
def mock_remote():
    """Remote backend stand-in that connects successfully."""
    return CacheTestFactory.remote_mock()


@pytest.fixture
async def supervisor(mock_remote, fallback_store, test_settings):
    """
    ConnectionSupervisor over the mock remote and fake-clock fallback.

    Not connected; tests call connect() themselves. Stopped on teardown so
    no heartbeat, sweeper or reconnect task outlives the test.
    """
    from gamehub_cache.core.resilience import ConnectionSupervisor

    sup = ConnectionSupervisor(mock_remote, fallback_store, test_settings)
    yield sup
    await sup.stop()


@pytest.fixture
async def facade(supervisor, test_settings):
    """CacheFacade routed by the supervisor fixture."""
    from gamehub_cache.infrastructure.cache.cache_facade import CacheFacade

    return CacheFacade(supervisor, test_settings)


@pytest.fixture
async def connected_facade(facade):
    """Facade whose supervisor is READY on the mock remote."""
    await facade.supervisor.connect()
    return facade
