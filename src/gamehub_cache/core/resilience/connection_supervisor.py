"""
Connection Supervisor for the Remote Cache.

MECHANISM OF ACTION:
-------------------
1.  **Single source of truth**:
    One ConnectionState, owned and mutated only here. The facade asks one
    question, ``is_remote_authoritative()``, and reads one field,
    ``current_backend``, which is swapped on every transition into or out
    of READY.

2.  **State Transitions**:
    - DISCONNECTED --connect()--> CONNECTING
    - CONNECTING   --success-->  READY          (reset retries, start heartbeat)
    - CONNECTING   --failure-->  RECONNECTING
    - READY        --transport error / heartbeat failure--> RECONNECTING
    - RECONNECTING --success-->  READY
    - RECONNECTING --failure, attempts < max--> RECONNECTING (backoff)
    - RECONNECTING --failure, attempts = max--> FAILED
    - FAILED       --connect()--> CONNECTING   (operator-triggered only)

    Transition methods are plain functions: they never await, so under the
    event loop each transition is atomic. A single connection-cycle task is
    the "reconnect in progress" flag; concurrent error reports while it runs
    are no-ops.

3.  **Connection cycle**:
    Tenacity drives the attempts: the first attempt runs immediately, later
    ones wait ``min(base * 2^n + random(0, jitter), max)`` where n is the
    number of failed attempts so far, so the first retry waits 2 * base.
    The cycle stops after RECONNECT_MAX_ATTEMPTS consecutive failures and
    parks the supervisor in FAILED.

4.  **Heartbeat**:
    While READY a background task PINGs every HEARTBEAT_INTERVAL_MS. A slow
    PING logs a warning; a failed or timed-out PING triggers RECONNECTING
    immediately.

5.  **Fallback sweeper**:
    Started whenever the fallback becomes authoritative and stopped on READY.
    Entries already in the fallback are kept until an explicit flush.
"""

import asyncio
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from gamehub_cache.core.config.constants import ConnectionState, Stage
from gamehub_cache.core.config.settings import Settings, get_settings
from gamehub_cache.core.exceptions import (
    CacheConnectionError,
    CacheTransportError,
    CacheUnavailableError,
)
from gamehub_cache.core.interfaces import CacheBackend, LocalCacheBackend, RemoteCacheBackend
from gamehub_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

StateListener = Callable[[ConnectionState, ConnectionState], None]


@dataclass
class RetryState:
    """Reconnect bookkeeping. Reset whenever the supervisor reaches READY."""

    attempts: int = 0
    last_error: str | None = None
    next_delay_ms: int = 0


@dataclass
class HeartbeatRecord:
    """Last successful heartbeat. Updated only while READY."""

    last_success_at: datetime | None = None
    last_latency_ms: float | None = None


class ConnectionSupervisor:
    """
    Owns the remote cache connection and decides which backend is authoritative.

    Usage:
        supervisor = ConnectionSupervisor(RemoteCacheClient(), FallbackStore())
        await supervisor.connect()          # returns after the first attempt
        backend = supervisor.current_backend
        ...
        await supervisor.stop()
    """

    def __init__(
        self,
        remote: RemoteCacheBackend,
        fallback: LocalCacheBackend,
        settings: Settings | None = None,
    ):
        self._settings = settings or get_settings()
        self._remote = remote
        self._fallback = fallback

        reconnect = self._settings.reconnect
        self._max_attempts = reconnect.RECONNECT_MAX_ATTEMPTS
        self._base_delay = reconnect.RECONNECT_BASE_DELAY_MS / 1000
        self._max_delay = reconnect.RECONNECT_MAX_DELAY_MS / 1000
        self._jitter = reconnect.RECONNECT_JITTER_MS / 1000

        heartbeat = self._settings.heartbeat
        self._heartbeat_interval = heartbeat.HEARTBEAT_INTERVAL_MS / 1000
        self._heartbeat_timeout = heartbeat.HEARTBEAT_TIMEOUT_MS / 1000
        self._heartbeat_warn_ms = heartbeat.HEARTBEAT_WARN_LATENCY_MS
        self._connect_timeout = self._settings.redis.REDIS_SOCKET_CONNECT_TIMEOUT

        self._state = ConnectionState.DISCONNECTED
        self._backend: CacheBackend = fallback
        self._retry = RetryState(next_delay_ms=reconnect.RECONNECT_BASE_DELAY_MS)
        self._heartbeat = HeartbeatRecord()
        self._listeners: list[StateListener] = []

        self._cycle_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._first_attempt: asyncio.Event | None = None

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    def is_remote_authoritative(self) -> bool:
        return self._state is ConnectionState.READY

    @property
    def current_backend(self) -> CacheBackend:
        """The backend every cache command should go to right now."""
        return self._backend

    def require_remote(self) -> RemoteCacheBackend:
        """
        Direct access to the remote backend.

        Raises:
            CacheUnavailableError: If the supervisor is not READY
        """
        if not self.is_remote_authoritative():
            raise CacheUnavailableError(
                message="Remote cache is not available",
                details={"state": self._state.value},
            )
        return self._remote

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> ConnectionState:
        """
        Start a connection cycle and wait for its first attempt.

        Restarts from CONNECTING with a fresh retry budget, including from
        FAILED. While a cycle is already running this only waits for its
        first attempt; when READY it is a no-op.

        Returns:
            The state after the first attempt (READY, RECONNECTING or FAILED)
        """
        if self._state is ConnectionState.READY:
            return self._state

        if not self._cycle_running():
            self._retry = RetryState(next_delay_ms=round(self._base_delay * 1000))
            self._transition(ConnectionState.CONNECTING)
            self._fallback.start()
            log_stage(logger, Stage.SUPERVISOR_CONNECT, "Connecting to remote cache",
                      max_attempts=self._max_attempts)
            self._start_cycle()

        if self._first_attempt is not None:
            await self._first_attempt.wait()
        return self._state

    async def wait_until_settled(self) -> ConnectionState:
        """
        Wait for the running connection cycle (if any) to end.

        Returns:
            READY or FAILED, or the current state when no cycle is running
        """
        task = self._cycle_task
        if task is not None and not task.done():
            await asyncio.shield(task)
        return self._state

    async def stop(self) -> None:
        """
        Stop timers, cancel any reconnect cycle and release the connection.

        Idempotent. Leaves the supervisor DISCONNECTED with the fallback
        authoritative, so a later connect() starts cleanly.
        """
        tasks = [t for t in (self._cycle_task, self._heartbeat_task) if t and not t.done()]
        self._cycle_task = None
        self._heartbeat_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._fallback.stop()
        await self._remote.disconnect()

        self._backend = self._fallback
        if self._state is not ConnectionState.DISCONNECTED:
            self._transition(ConnectionState.DISCONNECTED)
            log_stage(logger, Stage.SUPERVISOR_SHUTDOWN, "Cache supervisor stopped")

        # Release any connect() caller waiting on a cancelled cycle
        if self._first_attempt is not None:
            self._first_attempt.set()

    # -------------------------------------------------------------------------
    # Error channel
    # -------------------------------------------------------------------------

    def report_transport_error(self, error: Exception) -> None:
        """
        Report a transport failure seen while the remote was authoritative.

        Called by the facade and by the heartbeat. Only the first report
        after READY acts; later ones find the supervisor already recovering.
        """
        if self._state is not ConnectionState.READY:
            return

        self._retry.last_error = str(error)
        log_stage(logger, Stage.SUPERVISOR_RECONNECT,
                  "Remote cache transport error, switching to fallback",
                  level="warning", error=str(error))
        self._enter_degraded(ConnectionState.RECONNECTING)
        self._start_cycle()

    # -------------------------------------------------------------------------
    # Connection cycle
    # -------------------------------------------------------------------------

    def _cycle_running(self) -> bool:
        return self._cycle_task is not None and not self._cycle_task.done()

    def _start_cycle(self) -> None:
        if self._cycle_running():
            return
        self._first_attempt = asyncio.Event()
        self._cycle_task = asyncio.get_running_loop().create_task(
            self._connection_cycle(), name="cache-connection-cycle"
        )

    async def _connection_cycle(self) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._backoff_wait,
            retry=retry_if_exception_type(CacheTransportError),
            before_sleep=self._before_retry_sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self._attempt_connect()
        except CacheTransportError as exc:
            self._enter_failed(exc)
        except Exception as exc:
            logger.exception("Unexpected error in cache connection cycle")
            self._enter_failed(exc)
        finally:
            if self._first_attempt is not None:
                self._first_attempt.set()

    async def _attempt_connect(self) -> None:
        try:
            try:
                await asyncio.wait_for(self._remote.connect(), timeout=self._connect_timeout)
            except asyncio.TimeoutError as exc:
                raise CacheConnectionError(
                    message="Timed out connecting to remote cache",
                    details={"timeout_seconds": self._connect_timeout},
                ) from exc
        except CacheTransportError as exc:
            self._record_failure(exc)
            raise
        else:
            self._enter_ready()
        finally:
            if self._first_attempt is not None:
                self._first_attempt.set()

    def backoff_delay(self) -> float:
        """
        Seconds to wait before the next attempt.

        ``min(base * 2^attempts + random(0, jitter), max)``, attempts being the
        failures already recorded in this cycle.
        """
        delay = self._base_delay * 2 ** self._retry.attempts + random.uniform(0, self._jitter)
        return min(delay, self._max_delay)

    def _backoff_wait(self, retry_state: RetryCallState) -> float:
        return self.backoff_delay()

    def _before_retry_sleep(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._retry.next_delay_ms = round(delay * 1000)
        log_stage(
            logger,
            Stage.SUPERVISOR_RECONNECT,
            "Scheduling remote cache reconnect",
            level="warning",
            attempts=self._retry.attempts,
            max_attempts=self._max_attempts,
            delay_ms=self._retry.next_delay_ms,
            error=self._retry.last_error,
        )

    def _record_failure(self, error: Exception) -> None:
        self._retry.attempts += 1
        self._retry.last_error = str(error)
        if self._state is not ConnectionState.RECONNECTING:
            self._enter_degraded(ConnectionState.RECONNECTING)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _enter_ready(self) -> None:
        self._retry = RetryState(next_delay_ms=round(self._base_delay * 1000))
        self._backend = self._remote
        self._transition(ConnectionState.READY)
        self._fallback.stop()
        self._start_heartbeat()
        log_stage(logger, Stage.SUPERVISOR_READY, "Remote cache is authoritative")

    def _enter_degraded(self, state: ConnectionState) -> None:
        self._stop_heartbeat()
        self._backend = self._fallback
        self._transition(state)
        self._fallback.start()

    def _enter_failed(self, error: Exception) -> None:
        self._retry.last_error = str(error)
        self._enter_degraded(ConnectionState.FAILED)
        log_stage(
            logger,
            Stage.SUPERVISOR_FAILED,
            "Remote cache reconnect attempts exhausted, staying on fallback",
            level="error",
            attempts=self._retry.attempts,
            error=str(error),
        )

    def _transition(self, new_state: ConnectionState) -> None:
        old_state, self._state = self._state, new_state
        if old_state is new_state:
            return
        logger.debug("Cache connection state changed", old=old_state.value, new=new_state.value)
        for listener in list(self._listeners):
            listener(old_state, new_state)

    def add_state_listener(self, listener: StateListener) -> None:
        """Register a callback invoked as ``listener(old_state, new_state)``."""
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # Heartbeat
    # -------------------------------------------------------------------------

    def _start_heartbeat(self) -> None:
        if self._heartbeat_task is not None and not self._heartbeat_task.done():
            return
        self._heartbeat_task = asyncio.get_running_loop().create_task(
            self._heartbeat_loop(), name="cache-heartbeat"
        )

    def _stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is None or task.done():
            return
        # The heartbeat may be the one reporting the failure; it exits on its own
        if task is not asyncio.current_task():
            task.cancel()

    async def _heartbeat_loop(self) -> None:
        while self._state is ConnectionState.READY:
            await asyncio.sleep(self._heartbeat_interval)
            if self._state is not ConnectionState.READY:
                return
            await self.heartbeat()

    async def heartbeat(self) -> float | None:
        """
        Run one heartbeat PING.

        Returns:
            Latency in milliseconds, or None if the PING failed
        """
        try:
            latency_ms = await asyncio.wait_for(
                self._remote.ping(), timeout=self._heartbeat_timeout
            )
        except (CacheTransportError, asyncio.TimeoutError) as exc:
            error = exc if isinstance(exc, CacheTransportError) else CacheTransportError(
                message="Heartbeat PING timed out",
                details={"timeout_seconds": self._heartbeat_timeout},
            )
            log_stage(logger, Stage.SUPERVISOR_HEARTBEAT, "Remote cache heartbeat failed",
                      level="warning", error=str(error))
            self.report_transport_error(error)
            return None

        if self._state is ConnectionState.READY:
            self._heartbeat = HeartbeatRecord(
                last_success_at=datetime.now(timezone.utc),
                last_latency_ms=round(latency_ms, 2),
            )
        if latency_ms > self._heartbeat_warn_ms:
            log_stage(logger, Stage.SUPERVISOR_HEARTBEAT, "Remote cache heartbeat is slow",
                      level="warning", latency_ms=round(latency_ms, 2),
                      threshold_ms=self._heartbeat_warn_ms)
        return latency_ms

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry_state(self) -> RetryState:
        return replace(self._retry)

    @property
    def heartbeat_record(self) -> HeartbeatRecord:
        return replace(self._heartbeat)

    def status(self) -> dict[str, Any]:
        """
        Operational health snapshot.

        Returns:
            Dict with connected, retry_attempts, last_heartbeat_at and
            last_error, plus state, backend and timing details
        """
        last_success = self._heartbeat.last_success_at
        return {
            "connected": self.is_remote_authoritative(),
            "state": self._state.value,
            "backend": self._backend.name,
            "retry_attempts": self._retry.attempts,
            "next_retry_delay_ms": self._retry.next_delay_ms,
            "last_error": self._retry.last_error,
            "last_heartbeat_at": last_success.isoformat() if last_success else None,
            "last_heartbeat_latency_ms": self._heartbeat.last_latency_ms,
            "timestamp": time.time(),
        }
