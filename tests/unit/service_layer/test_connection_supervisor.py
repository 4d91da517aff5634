"""
Unit Tests for ConnectionSupervisor

Tests the connection state machine: bounded retries ending in FAILED,
operator-triggered restart, heartbeat-driven reconnects, single reconnect
cycle under concurrent error reports, and deterministic shutdown.
"""

import asyncio
import warnings
from unittest.mock import MagicMock

import pytest

from gamehub_cache.core.config.constants import ConnectionState
from gamehub_cache.core.exceptions import (
    CacheConnectionError,
    CacheTransportError,
    CacheUnavailableError,
)
from gamehub_cache.core.resilience import ConnectionSupervisor
from tests.test_fixtures import CacheTestFactory, fast_settings


def record_transitions(supervisor: ConnectionSupervisor) -> list[tuple[ConnectionState, ConnectionState]]:
    transitions = []
    supervisor.add_state_listener(lambda old, new: transitions.append((old, new)))
    return transitions


@pytest.mark.unit
class TestConnect:
    """Test the initial connection cycle."""

    @pytest.mark.asyncio
    async def test_successful_connect_reaches_ready(self, supervisor, mock_remote, fallback_store):
        transitions = record_transitions(supervisor)

        state = await supervisor.connect()

        assert state is ConnectionState.READY
        assert supervisor.is_remote_authoritative()
        assert supervisor.current_backend is mock_remote
        assert transitions == [
            (ConnectionState.DISCONNECTED, ConnectionState.CONNECTING),
            (ConnectionState.CONNECTING, ConnectionState.READY),
        ]
        assert not fallback_store.is_sweeping

    @pytest.mark.asyncio
    async def test_connect_when_ready_is_noop(self, supervisor, mock_remote):
        await supervisor.connect()
        await supervisor.connect()

        mock_remote.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_first_failure_enters_reconnecting_on_fallback(self, supervisor, mock_remote, fallback_store):
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")

        state = await supervisor.connect()

        assert state is ConnectionState.RECONNECTING
        assert supervisor.current_backend is fallback_store
        assert fallback_store.is_sweeping
        assert supervisor.retry_state.attempts == 1

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, supervisor, mock_remote):
        mock_remote.connect.side_effect = [
            CacheConnectionError("refused"),
            CacheConnectionError("refused"),
            None,
        ]

        await supervisor.connect()
        state = await supervisor.wait_until_settled()

        assert state is ConnectionState.READY
        assert supervisor.retry_state.attempts == 0
        assert supervisor.retry_state.last_error is None

    @pytest.mark.asyncio
    async def test_connect_timeout_counts_as_failure(self, mock_remote, fallback_store):
        settings = fast_settings(REDIS_SOCKET_CONNECT_TIMEOUT=0.01, RECONNECT_MAX_ATTEMPTS=1)

        async def hang():
            await asyncio.sleep(10)

        mock_remote.connect.side_effect = hang
        sup = ConnectionSupervisor(mock_remote, fallback_store, settings)
        try:
            await sup.connect()
            assert await sup.wait_until_settled() is ConnectionState.FAILED
            assert "Timed out" in sup.retry_state.last_error
        finally:
            await sup.stop()


@pytest.mark.unit
class TestRetryExhaustion:
    """Test FAILED after the maximum number of attempts."""

    @pytest.mark.asyncio
    async def test_reaches_failed_after_max_attempts(self, supervisor, mock_remote, test_settings):
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")

        await supervisor.connect()
        state = await supervisor.wait_until_settled()

        max_attempts = test_settings.reconnect.RECONNECT_MAX_ATTEMPTS
        assert state is ConnectionState.FAILED
        assert mock_remote.connect.await_count == max_attempts
        assert supervisor.retry_state.attempts == max_attempts

    @pytest.mark.asyncio
    async def test_no_automatic_attempt_after_failed(self, supervisor, mock_remote, test_settings):
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")

        await supervisor.connect()
        await supervisor.wait_until_settled()
        await asyncio.sleep(0.05)

        assert mock_remote.connect.await_count == test_settings.reconnect.RECONNECT_MAX_ATTEMPTS
        assert supervisor.state is ConnectionState.FAILED

    @pytest.mark.asyncio
    async def test_failed_still_routes_to_fallback(self, supervisor, mock_remote, fallback_store):
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")

        await supervisor.connect()
        await supervisor.wait_until_settled()

        assert supervisor.current_backend is fallback_store
        with pytest.raises(CacheUnavailableError):
            supervisor.require_remote()

    @pytest.mark.asyncio
    async def test_manual_connect_restarts_at_connecting(self, supervisor, mock_remote):
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")
        await supervisor.connect()
        await supervisor.wait_until_settled()

        transitions = record_transitions(supervisor)
        mock_remote.connect.side_effect = None

        state = await supervisor.connect()

        assert transitions[0] == (ConnectionState.FAILED, ConnectionState.CONNECTING)
        assert state is ConnectionState.READY

    @pytest.mark.asyncio
    async def test_manual_connect_resets_attempt_budget(self, supervisor, mock_remote, test_settings):
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")
        await supervisor.connect()
        await supervisor.wait_until_settled()

        await supervisor.connect()
        await supervisor.wait_until_settled()

        assert mock_remote.connect.await_count == 2 * test_settings.reconnect.RECONNECT_MAX_ATTEMPTS

    @pytest.mark.asyncio
    async def test_backoff_delay_recorded(self, mock_remote, fallback_store):
        settings = fast_settings(RECONNECT_BASE_DELAY_MS=2, RECONNECT_MAX_DELAY_MS=3)
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")
        sup = ConnectionSupervisor(mock_remote, fallback_store, settings)
        try:
            await sup.connect()
            await sup.wait_until_settled()

            # Capped at RECONNECT_MAX_DELAY_MS with zero jitter
            assert sup.retry_state.next_delay_ms == 3
        finally:
            await sup.stop()

    @pytest.mark.asyncio
    async def test_backoff_doubles_from_failed_attempts(self, mock_remote, fallback_store):
        """First retry waits 2 * base, the second 4 * base."""
        settings = fast_settings(
            RECONNECT_BASE_DELAY_MS=10, RECONNECT_MAX_DELAY_MS=1000, RECONNECT_MAX_ATTEMPTS=3
        )
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")
        sup = ConnectionSupervisor(mock_remote, fallback_store, settings)
        delays = []
        original = sup._before_retry_sleep

        def record(retry_state):
            original(retry_state)
            delays.append(sup.retry_state.next_delay_ms)

        sup._before_retry_sleep = record
        try:
            await sup.connect()
            await sup.wait_until_settled()

            assert delays == [20, 40]
            assert sup.state is ConnectionState.FAILED
        finally:
            await sup.stop()

    def test_backoff_delay_formula(self):
        sup = ConnectionSupervisor(
            CacheTestFactory.remote_mock(),
            CacheTestFactory.fallback_store(),
            fast_settings(RECONNECT_BASE_DELAY_MS=1000, RECONNECT_MAX_DELAY_MS=60000),
        )

        sup._retry.attempts = 1
        assert sup.backoff_delay() == 2.0
        sup._retry.attempts = 2
        assert sup.backoff_delay() == 4.0
        sup._retry.attempts = 10
        assert sup.backoff_delay() == 60.0

    @pytest.mark.asyncio
    async def test_retry_cycle_emits_no_deprecation_warning(self, supervisor, mock_remote):
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            await supervisor.connect()
            await supervisor.wait_until_settled()

        assert supervisor.state is ConnectionState.FAILED


@pytest.mark.unit
class TestTransportErrors:
    """Test the error channel used by the facade and heartbeat."""

    @pytest.mark.asyncio
    async def test_transport_error_while_ready_starts_reconnect(self, supervisor, mock_remote, fallback_store):
        await supervisor.connect()

        supervisor.report_transport_error(CacheTransportError("Connection reset"))

        assert supervisor.state is ConnectionState.RECONNECTING
        assert supervisor.current_backend is fallback_store
        assert fallback_store.is_sweeping

        assert await supervisor.wait_until_settled() is ConnectionState.READY
        assert mock_remote.connect.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_reports_start_one_cycle(self, supervisor, mock_remote):
        await supervisor.connect()
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")

        for _ in range(5):
            supervisor.report_transport_error(CacheTransportError("Connection reset"))
        await supervisor.heartbeat()

        await supervisor.wait_until_settled()

        # One initial connect plus exactly one bounded cycle
        assert mock_remote.connect.await_count == 1 + 3

    @pytest.mark.asyncio
    async def test_report_ignored_when_not_ready(self, supervisor, mock_remote):
        supervisor.report_transport_error(CacheTransportError("Connection reset"))

        assert supervisor.state is ConnectionState.DISCONNECTED
        mock_remote.connect.assert_not_called()


@pytest.mark.unit
class TestHeartbeat:
    """Test heartbeat PINGs."""

    @pytest.mark.asyncio
    async def test_successful_heartbeat_records_latency(self, supervisor, mock_remote):
        mock_remote.ping.return_value = 3.456
        await supervisor.connect()

        latency = await supervisor.heartbeat()

        assert latency == 3.456
        record = supervisor.heartbeat_record
        assert record.last_latency_ms == 3.46
        assert record.last_success_at is not None

    @pytest.mark.asyncio
    async def test_slow_heartbeat_is_not_fatal(self, supervisor, mock_remote):
        mock_remote.ping.return_value = 900.0
        await supervisor.connect()

        await supervisor.heartbeat()

        assert supervisor.state is ConnectionState.READY

    @pytest.mark.asyncio
    async def test_failed_heartbeat_triggers_reconnecting(self, supervisor, mock_remote):
        await supervisor.connect()
        mock_remote.ping.side_effect = CacheTransportError("Connection reset")
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")

        assert await supervisor.heartbeat() is None

        assert supervisor.state is ConnectionState.RECONNECTING

    @pytest.mark.asyncio
    async def test_heartbeat_timeout_triggers_reconnecting(self, supervisor, mock_remote):
        async def slow_ping():
            await asyncio.sleep(10)

        await supervisor.connect()
        mock_remote.ping.side_effect = slow_ping
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")

        assert await supervisor.heartbeat() is None
        assert supervisor.state is ConnectionState.RECONNECTING

    @pytest.mark.asyncio
    async def test_heartbeat_loop_detects_failure(self, mock_remote, fallback_store):
        settings = fast_settings(HEARTBEAT_INTERVAL_MS=5)
        sup = ConnectionSupervisor(mock_remote, fallback_store, settings)
        try:
            await sup.connect()
            mock_remote.ping.side_effect = CacheTransportError("Connection reset")
            mock_remote.connect.side_effect = CacheConnectionError("Connection refused")

            await asyncio.sleep(0.05)

            assert sup.state in (ConnectionState.RECONNECTING, ConnectionState.FAILED)
            assert mock_remote.ping.await_count >= 1
        finally:
            await sup.stop()


@pytest.mark.unit
class TestShutdown:
    """Test deterministic, idempotent stop()."""

    @pytest.mark.asyncio
    async def test_stop_cancels_timers_and_disconnects(self, mock_remote, fallback_store, test_settings):
        sup = ConnectionSupervisor(mock_remote, fallback_store, test_settings)
        await sup.connect()
        heartbeat_task = sup._heartbeat_task

        await sup.stop()

        assert heartbeat_task.done()
        assert not fallback_store.is_sweeping
        assert sup.state is ConnectionState.DISCONNECTED
        mock_remote.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_during_reconnect_cancels_cycle(self, fallback_store):
        remote = CacheTestFactory.unreachable_remote()
        settings = fast_settings(RECONNECT_BASE_DELAY_MS=10_000, RECONNECT_MAX_DELAY_MS=10_000)
        sup = ConnectionSupervisor(remote, fallback_store, settings)

        await sup.connect()
        cycle = sup._cycle_task
        await sup.stop()

        assert cycle.done()
        assert remote.connect.await_count == 1
        assert sup.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, supervisor, mock_remote):
        await supervisor.stop()
        await supervisor.stop()

        assert supervisor.state is ConnectionState.DISCONNECTED


@pytest.mark.unit
class TestStatus:
    """Test the health status accessor."""

    @pytest.mark.asyncio
    async def test_status_when_ready(self, supervisor):
        await supervisor.connect()
        await supervisor.heartbeat()

        status = supervisor.status()

        assert status["connected"] is True
        assert status["state"] == "ready"
        assert status["backend"] == "redis"
        assert status["retry_attempts"] == 0
        assert status["last_heartbeat_at"] is not None
        assert status["last_error"] is None

    @pytest.mark.asyncio
    async def test_status_when_failed(self, supervisor, mock_remote):
        mock_remote.connect.side_effect = CacheConnectionError("Connection refused")
        await supervisor.connect()
        await supervisor.wait_until_settled()

        status = supervisor.status()

        assert status["connected"] is False
        assert status["state"] == "failed"
        assert status["backend"] == "fallback"
        assert status["retry_attempts"] == 3
        assert status["last_error"] == "Connection refused"

    def test_listener_receives_transitions(self):
        sup = ConnectionSupervisor(
            CacheTestFactory.remote_mock(), CacheTestFactory.fallback_store(), fast_settings()
        )
        listener = MagicMock()
        sup.add_state_listener(listener)

        sup._transition(ConnectionState.CONNECTING)

        listener.assert_called_once_with(ConnectionState.DISCONNECTED, ConnectionState.CONNECTING)
