"""
Blog Platform Backend — Connection Supervisor
=============================================

What:  Owns the lifecycle of the single outbound MongoDB connection.
Why:   On a serverless platform every cold instance starts disconnected and a
       burst of requests can arrive before the first connection is up. Without
       coordination each request would open its own client (a connection
       stampede) and each would retry independently.
How:   - A cached handle is returned while it reports itself alive
       - The first caller that finds no usable handle starts ONE establishment
         task; every caller that arrives meanwhile awaits that same task
       - The task retries a failing establishment a fixed number of times at a
         fixed interval (tenacity), then fails every waiter with the same error
       - A transport listener installed per handle clears the cached handle
         when the driver reports the server lost; reconnection stays pull-based
         (the next ensure_connected() call re-establishes)

State Machine:
    DISCONNECTED ──ensure_connected()──▶ CONNECTING ──success──▶ CONNECTED
         ▲                                   │                      │
         └─────────── terminal failure ──────┘                      │
         ▲                                                          │
         ├──────────────── transport lost (listener) ───────────────┤
         └──────── DISCONNECTING ◀────────── teardown() ────────────┘

Invariants:
    - state.in_flight is set if and only if state.stage is CONNECTING
    - state.attempt_count never exceeds max_attempts
    - Only this class writes ConnectionState; everything else reads it

Concurrency:
    Single event loop, no threads touch the state. Mutual exclusion on the
    in-flight attempt comes from creating the task synchronously (no await
    between "no task yet" and "task stored"). Waiters use asyncio.shield so a
    client that disconnects mid-request does not cancel the shared attempt.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from app.config import Settings
from app.database.driver import ConnectionOptions, DocumentStoreDriver, StoreHandle, redact_uri
from app.exceptions import ConfigurationError, ConnectivityError

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class LifecycleStage(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


@dataclass
class ConnectionState:
    """Process-wide connection state. Written only by ConnectionSupervisor."""

    handle: Optional[StoreHandle] = None
    stage: LifecycleStage = LifecycleStage.DISCONNECTED
    attempt_count: int = 0
    in_flight: Optional["asyncio.Task[StoreHandle]"] = None


class ConnectionSupervisor:
    """
    Reuse-or-establish access to the document store.

    Args:
        settings: Source of the URI, timeouts and retry policy.
        driver:   Opens new connections (MotorDriver in production).
        sleep:    Awaitable used between attempts; injectable so tests can
                  observe the backoff without waiting on a real clock.
    """

    def __init__(
        self,
        settings: Settings,
        driver: DocumentStoreDriver,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._settings = settings
        self._driver = driver
        self._sleep = sleep
        self._state = ConnectionState()
        # Handle demoted by the transport listener; closed on the next establishment
        self._retired: Optional[StoreHandle] = None

    # ── Read-only views ───────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        """A copy of the current state, for observers."""
        return dataclasses.replace(self._state)

    @property
    def stage(self) -> LifecycleStage:
        return self._state.stage

    @property
    def handle(self) -> Optional[StoreHandle]:
        return self._state.handle

    @property
    def attempt_count(self) -> int:
        return self._state.attempt_count

    @property
    def max_attempts(self) -> int:
        return self._settings.db_max_connect_attempts

    @property
    def retry_interval(self) -> float:
        return self._settings.db_retry_interval_seconds

    # ── Establishment ─────────────────────────────────────────────────────

    async def ensure_connected(self) -> StoreHandle:
        """
        Return a live handle, establishing one if needed.

        Raises:
            ConfigurationError: MONGODB_URI is not configured or malformed.
            ConnectivityError:  The store stayed unreachable for every attempt.
        """
        state = self._state
        handle = state.handle
        if state.stage is LifecycleStage.CONNECTED and handle is not None and handle.is_alive:
            return handle

        if state.in_flight is None:
            if state.stage is LifecycleStage.CONNECTED:
                logger.info("Cached database handle is no longer alive; reconnecting")
            self._begin_attempt()
        else:
            logger.debug("Joining in-flight database connection attempt")

        return await asyncio.shield(state.in_flight)

    def _begin_attempt(self) -> None:
        # Stage and task are set together with no await in between
        self._state.stage = LifecycleStage.CONNECTING
        task = asyncio.ensure_future(self._run_attempt())
        task.add_done_callback(_retrieve_outcome)
        self._state.in_flight = task

    async def _run_attempt(self) -> StoreHandle:
        state = self._state
        try:
            handle = await self._establish_with_retry()
        except BaseException:
            state.handle = None
            state.stage = LifecycleStage.DISCONNECTED
            state.attempt_count = 0
            state.in_flight = None
            raise

        state.handle = handle
        state.stage = LifecycleStage.CONNECTED
        state.attempt_count = 0
        state.in_flight = None
        logger.info("Database connected (db=%s, host=%s)", handle.database_name, handle.host)
        return handle

    async def _establish_with_retry(self) -> StoreHandle:
        handle: Optional[StoreHandle] = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.retry_interval),
            retry=retry_if_exception_type(ConnectivityError),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                try:
                    handle = await self._establish_once()
                except ConnectivityError as exc:
                    self._state.attempt_count += 1
                    exc.attempts = self._state.attempt_count
                    exc.context["attempts"] = self._state.attempt_count
                    if self._state.attempt_count >= self.max_attempts:
                        logger.error(
                            "Database connection failed after %d attempts: %s",
                            self._state.attempt_count,
                            exc.context.get("error", exc.message),
                        )
                    raise
        return handle

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Database connection attempt %d/%d failed (%s); retrying in %.1fs",
            retry_state.attempt_number,
            self.max_attempts,
            getattr(exc, "reason", type(exc).__name__),
            self.retry_interval,
        )

    async def _establish_once(self) -> StoreHandle:
        """One full establishment: cleanup, config check, connect, listen, ping."""
        await self._discard_handles()

        uri = self._settings.mongodb_uri
        if not uri:
            raise ConfigurationError(
                message="MONGODB_URI environment variable is not defined",
                setting="MONGODB_URI",
            )

        logger.info("Creating new database connection to %s", redact_uri(uri))
        handle = await self._driver.connect(uri, ConnectionOptions.from_settings(self._settings))
        try:
            handle.on_disconnect(partial(self._on_transport_lost, handle))
            await handle.ping()
        except BaseException:
            await self._close_handle(handle)
            raise
        return handle

    async def _discard_handles(self) -> None:
        stale, self._state.handle = self._state.handle, None
        retired, self._retired = self._retired, None
        for handle in (stale, retired):
            if handle is not None:
                await self._close_handle(handle)

    # ── Transport listener ────────────────────────────────────────────────

    def _on_transport_lost(self, handle: StoreHandle, reason: str) -> None:
        """
        Invoked by the driver (on the loop thread) when the server is lost.

        Only clears state. Reconnecting is left to the next ensure_connected().
        Events from handles that are no longer cached are ignored.
        """
        if self._state.handle is not handle:
            return
        logger.warning("Database connection lost: %s", reason)
        self._retired = handle
        self._state.handle = None
        if self._state.stage is LifecycleStage.CONNECTED:
            self._state.stage = LifecycleStage.DISCONNECTED

    # ── Teardown ──────────────────────────────────────────────────────────

    async def teardown(self) -> None:
        """
        Close the current connection, if any.

        An in-flight attempt is allowed to settle first (its outcome belongs to
        its own waiters). Used by the forced-reconnect route and on shutdown.
        """
        task = self._state.in_flight
        if task is not None:
            await asyncio.wait({task})

        handle = self._state.handle
        self._state.handle = None
        if handle is None and self._retired is None:
            return

        self._state.stage = LifecycleStage.DISCONNECTING
        try:
            await self._discard_handles()
            if handle is not None:
                logger.info("Closing database connection")
                await self._close_handle(handle)
        finally:
            # A new attempt may have started while we were closing
            if self._state.stage is LifecycleStage.DISCONNECTING:
                self._state.stage = LifecycleStage.DISCONNECTED

    async def _close_handle(self, handle: StoreHandle) -> None:
        try:
            await handle.close()
        except Exception as exc:
            # Closing a half-open client must not block establishing a new one
            logger.warning("Error while closing database handle: %s", exc)


def _retrieve_outcome(task: "asyncio.Task[StoreHandle]") -> None:
    # Marks the exception as retrieved when every waiter has gone away
    if not task.cancelled():
        task.exception()
