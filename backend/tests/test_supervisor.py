"""
Blog Platform Backend — Connection Supervisor Tests
===================================================

What:  Lifecycle tests for ConnectionSupervisor against a fake driver.
Why:   The supervisor is the one place where a serverless cold start can go
       wrong for every request at once (stampedes, retry storms, stale
       handles), so its guarantees are checked directly.

What we test:
    ✅ Concurrent callers share one establishment and one outcome
    ✅ A cached live handle is reused without touching the driver
    ✅ A failing store is tried exactly max_attempts times, at the fixed interval
    ✅ Missing configuration is never retried
    ✅ A disconnect signal makes the next call re-establish
    ✅ teardown() closes the handle and returns to disconnected
"""

import asyncio

import pytest

from app.database.supervisor import ConnectionSupervisor, LifecycleStage
from app.exceptions import ConfigurationError, ConnectivityError

from conftest import FakeDriver


@pytest.fixture
def supervisor(settings, fake_driver, recording_sleep):
    return ConnectionSupervisor(settings, fake_driver, sleep=recording_sleep)


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_establishment(self, supervisor, fake_driver):
        handles = await asyncio.gather(*(supervisor.ensure_connected() for _ in range(20)))

        assert fake_driver.connect_calls == 1
        assert all(handle is handles[0] for handle in handles)
        assert supervisor.stage is LifecycleStage.CONNECTED

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_failure(self, settings, recording_sleep, sleep_calls):
        driver = FakeDriver(always_fail=True)
        supervisor = ConnectionSupervisor(settings, driver, sleep=recording_sleep)

        results = await asyncio.gather(
            *(supervisor.ensure_connected() for _ in range(10)), return_exceptions=True
        )

        assert driver.connect_calls == settings.db_max_connect_attempts
        assert all(isinstance(result, ConnectivityError) for result in results)
        assert len({id(result) for result in results}) == 1

    @pytest.mark.asyncio
    async def test_in_flight_only_while_connecting(self, supervisor):
        task = asyncio.ensure_future(supervisor.ensure_connected())
        await asyncio.sleep(0)

        assert supervisor.stage is LifecycleStage.CONNECTING
        assert supervisor.state.in_flight is not None

        await task
        assert supervisor.state.in_flight is None


class TestCacheReuse:
    @pytest.mark.asyncio
    async def test_connected_handle_is_reused(self, supervisor, fake_driver):
        first = await supervisor.ensure_connected()
        for _ in range(5):
            assert await supervisor.ensure_connected() is first

        assert fake_driver.connect_calls == 1

    @pytest.mark.asyncio
    async def test_establishment_pings_once(self, supervisor):
        handle = await supervisor.ensure_connected()
        await supervisor.ensure_connected()
        assert handle.ping_calls == 1

    @pytest.mark.asyncio
    async def test_options_come_from_settings(self, supervisor, fake_driver, settings):
        await supervisor.ensure_connected()
        assert fake_driver.options.db_name == settings.db_name
        assert fake_driver.options.min_pool_size == 0
        assert fake_driver.options.max_pool_size == 10


class TestBoundedRetry:
    @pytest.mark.asyncio
    async def test_always_failing_store_is_tried_three_times(self, settings, recording_sleep, sleep_calls):
        driver = FakeDriver(always_fail=True)
        supervisor = ConnectionSupervisor(settings, driver, sleep=recording_sleep)

        with pytest.raises(ConnectivityError) as exc_info:
            await supervisor.ensure_connected()

        assert driver.connect_calls == 3
        # Fixed interval between attempts, none after the last
        assert sleep_calls == [2.0, 2.0]
        assert exc_info.value.attempts == 3
        assert supervisor.attempt_count == 0
        assert supervisor.stage is LifecycleStage.DISCONNECTED
        assert supervisor.handle is None

    @pytest.mark.asyncio
    async def test_recovers_before_attempts_run_out(self, settings, recording_sleep, sleep_calls):
        driver = FakeDriver(failures=2)
        supervisor = ConnectionSupervisor(settings, driver, sleep=recording_sleep)

        handle = await supervisor.ensure_connected()

        assert handle is driver.handles[0]
        assert driver.connect_calls == 3
        assert sleep_calls == [2.0, 2.0]
        assert supervisor.attempt_count == 0

    @pytest.mark.asyncio
    async def test_retry_policy_follows_settings(self, make_settings, recording_sleep, sleep_calls):
        settings = make_settings(db_max_connect_attempts=5, db_retry_interval_seconds=0.5)
        driver = FakeDriver(always_fail=True)
        supervisor = ConnectionSupervisor(settings, driver, sleep=recording_sleep)

        with pytest.raises(ConnectivityError):
            await supervisor.ensure_connected()

        assert driver.connect_calls == 5
        assert sleep_calls == [0.5] * 4

    @pytest.mark.asyncio
    async def test_next_call_after_terminal_failure_starts_fresh(self, settings, recording_sleep):
        driver = FakeDriver(failures=3)
        supervisor = ConnectionSupervisor(settings, driver, sleep=recording_sleep)

        with pytest.raises(ConnectivityError):
            await supervisor.ensure_connected()
        handle = await supervisor.ensure_connected()

        assert driver.connect_calls == 4
        assert handle.is_alive

    @pytest.mark.asyncio
    async def test_failed_ping_closes_the_new_handle(self, settings, recording_sleep):
        driver = FakeDriver()
        supervisor = ConnectionSupervisor(settings, driver, sleep=recording_sleep)
        original_connect = driver.connect

        async def connect_with_dead_ping(uri, options):
            handle = await original_connect(uri, options)
            handle.ping_error = ConnectivityError(reason="timeout")
            return handle

        driver.connect = connect_with_dead_ping

        with pytest.raises(ConnectivityError):
            await supervisor.ensure_connected()
        assert all(handle.closed for handle in driver.handles)


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_missing_uri_is_not_retried(self, make_settings, fake_driver, recording_sleep, sleep_calls):
        supervisor = ConnectionSupervisor(make_settings(mongodb_uri=None), fake_driver, sleep=recording_sleep)

        with pytest.raises(ConfigurationError, match="MONGODB_URI"):
            await supervisor.ensure_connected()

        assert fake_driver.connect_calls == 0
        assert sleep_calls == []
        assert supervisor.stage is LifecycleStage.DISCONNECTED

    @pytest.mark.asyncio
    async def test_driver_configuration_error_is_not_retried(self, settings, recording_sleep, sleep_calls):
        driver = FakeDriver(always_fail=True, error=lambda: ConfigurationError(setting="MONGODB_URI"))
        supervisor = ConnectionSupervisor(settings, driver, sleep=recording_sleep)

        with pytest.raises(ConfigurationError):
            await supervisor.ensure_connected()

        assert driver.connect_calls == 1
        assert sleep_calls == []


class TestSelfHealing:
    @pytest.mark.asyncio
    async def test_disconnect_signal_triggers_fresh_establishment(self, supervisor, fake_driver):
        stale = await supervisor.ensure_connected()

        stale.signal_disconnect()
        assert supervisor.stage is LifecycleStage.DISCONNECTED
        assert supervisor.handle is None
        # Listener only clears state; nothing reconnects until asked
        assert fake_driver.connect_calls == 1

        fresh = await supervisor.ensure_connected()
        assert fresh is not stale
        assert fake_driver.connect_calls == 2
        assert stale.closed

    @pytest.mark.asyncio
    async def test_dead_cached_handle_is_replaced(self, supervisor, fake_driver):
        stale = await supervisor.ensure_connected()
        stale.alive = False

        fresh = await supervisor.ensure_connected()
        assert fresh is not stale
        assert stale.closed
        assert fake_driver.connect_calls == 2

    @pytest.mark.asyncio
    async def test_signal_from_replaced_handle_is_ignored(self, supervisor):
        old = await supervisor.ensure_connected()
        old.alive = False
        current = await supervisor.ensure_connected()

        old.signal_disconnect()

        assert supervisor.handle is current
        assert supervisor.stage is LifecycleStage.CONNECTED


class TestTeardown:
    @pytest.mark.asyncio
    async def test_teardown_closes_connection(self, supervisor):
        handle = await supervisor.ensure_connected()

        await supervisor.teardown()

        assert handle.closed
        assert supervisor.handle is None
        assert supervisor.stage is LifecycleStage.DISCONNECTED

    @pytest.mark.asyncio
    async def test_teardown_when_disconnected_is_a_no_op(self, supervisor):
        await supervisor.teardown()
        assert supervisor.stage is LifecycleStage.DISCONNECTED

    @pytest.mark.asyncio
    async def test_reconnect_after_teardown(self, supervisor, fake_driver):
        await supervisor.ensure_connected()
        await supervisor.teardown()

        handle = await supervisor.ensure_connected()
        assert handle.is_alive
        assert fake_driver.connect_calls == 2
