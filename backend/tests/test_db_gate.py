"""
Blog Platform Backend — Database Gate Tests
===========================================

What:  Classification, the gate decision, path matching, and the full
       request path through the app with an unreachable store.
Why:   The gate is what a caller actually sees when the database is down;
       it must answer with a clean 503/500 body, never a raw driver error.
"""

from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.context import build_context
from app.exceptions import ConfigurationError, ConnectivityError
from app.middleware.db_gate import (
    CONFIGURATION_MESSAGE,
    GATE_MESSAGE,
    GENERIC_MESSAGE,
    DatabaseGate,
    DatabaseGateMiddleware,
    Proceed,
    Reject,
    classify,
)

from conftest import FakeDriver


def _request(path: str = "/api/blogs", method: str = "GET"):
    request = MagicMock()
    request.method = method
    request.url.path = path
    return request


class TestClassify:
    @pytest.mark.parametrize(
        "reason, fragment",
        [
            ("server_selection", "Unable to reach database server"),
            ("timeout", "timed out"),
            ("host_not_found", "host not found"),
        ],
    )
    def test_connectivity_reasons(self, reason, fragment):
        status_code, message = classify(ConnectivityError(reason=reason))
        assert status_code == 503
        assert fragment in message

    def test_unknown_reason_is_generic(self):
        assert classify(ConnectivityError(reason="network")) == (503, GENERIC_MESSAGE)

    def test_configuration_error_is_500(self):
        assert classify(ConfigurationError()) == (500, CONFIGURATION_MESSAGE)

    def test_unexpected_error_is_generic(self):
        assert classify(RuntimeError("driver exploded")) == (503, GENERIC_MESSAGE)


class TestDatabaseGate:
    @pytest.mark.asyncio
    async def test_connected_store_proceeds(self, context):
        decision = await DatabaseGate(context).before_handle(_request())
        assert isinstance(decision, Proceed)

    @pytest.mark.asyncio
    async def test_unreachable_store_rejects_without_details(self, settings, recording_sleep, media):
        context = build_context(settings, driver=FakeDriver(always_fail=True), sleep=recording_sleep, media=media)

        decision = await DatabaseGate(context).before_handle(_request())

        assert isinstance(decision, Reject)
        assert decision.status_code == 503
        assert decision.body["success"] is False
        assert decision.body["message"] == GATE_MESSAGE
        assert decision.body["error"].startswith("Unable to reach database server")
        assert "details" not in decision.body

    @pytest.mark.asyncio
    async def test_development_mode_includes_details(self, make_settings, recording_sleep, media):
        settings = make_settings(environment="development")
        context = build_context(settings, driver=FakeDriver(always_fail=True), sleep=recording_sleep, media=media)

        decision = await DatabaseGate(context).before_handle(_request())

        assert decision.body["details"] == "No servers found"

    @pytest.mark.asyncio
    async def test_missing_uri_rejects_with_500(self, make_settings, fake_driver, recording_sleep, media):
        context = build_context(make_settings(mongodb_uri=None), driver=fake_driver, sleep=recording_sleep, media=media)

        decision = await DatabaseGate(context).before_handle(_request())

        assert decision.status_code == 500
        assert decision.body["error"] == CONFIGURATION_MESSAGE


class TestGatePaths:
    def setup_method(self):
        self.middleware = DatabaseGateMiddleware(app=MagicMock())

    @pytest.mark.parametrize("path", ["/api", "/api/blogs", "/api/blogs/slug/x", "/api/users/me"])
    def test_api_paths_are_gated(self, path):
        assert self.middleware.applies_to(path) is True

    @pytest.mark.parametrize(
        "path",
        ["/health", "/db-health", "/api/diagnostic", "/api/diagnostic/status", "/apiary", "/docs"],
    )
    def test_other_paths_are_not_gated(self, path):
        assert self.middleware.applies_to(path) is False


class TestGateEndToEnd:
    @pytest.mark.asyncio
    async def test_unreachable_store_returns_503_after_full_retry(
        self, settings, recording_sleep, sleep_calls, media
    ):
        from app.main import create_app

        driver = FakeDriver(always_fail=True)
        app = create_app(build_context(settings, driver=driver, sleep=recording_sleep, media=media))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/categories")

        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["message"] == GATE_MESSAGE
        assert "No servers found" not in response.text
        # Rejected only after every attempt and every interval
        assert driver.connect_calls == settings.db_max_connect_attempts
        assert sum(sleep_calls) == pytest.approx(
            (settings.db_max_connect_attempts - 1) * settings.db_retry_interval_seconds
        )
        assert response.headers["X-Request-ID"] == body["request_id"]

    @pytest.mark.asyncio
    async def test_health_is_not_gated(self, settings, recording_sleep, media):
        from app.main import create_app

        driver = FakeDriver(always_fail=True)
        app = create_app(build_context(settings, driver=driver, sleep=recording_sleep, media=media))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert driver.connect_calls == 0

    @pytest.mark.asyncio
    async def test_preflight_is_not_gated(self, settings, recording_sleep, media):
        from app.main import create_app

        driver = FakeDriver(always_fail=True)
        app = create_app(build_context(settings, driver=driver, sleep=recording_sleep, media=media))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            await client.options(
                "/api/blogs",
                headers={"Origin": "https://blog.example", "Access-Control-Request-Method": "GET"},
            )

        assert driver.connect_calls == 0

    @pytest.mark.asyncio
    async def test_unset_node_env_hides_driver_details(self, monkeypatch, recording_sleep, media):
        from app.config import Settings
        from app.main import create_app

        monkeypatch.delenv("NODE_ENV", raising=False)
        monkeypatch.delenv("APP_ENV", raising=False)
        settings = Settings(_env_file=None, mongodb_uri="mongodb://db.internal.corp:27017", jwt_secret="x" * 32)
        driver = FakeDriver(
            always_fail=True,
            error=lambda: ConnectivityError(
                reason="server_selection",
                context={"error": "No servers found for db.internal.corp:27017"},
            ),
        )
        app = create_app(build_context(settings, driver=driver, sleep=recording_sleep, media=media))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/categories")

        assert settings.is_development is False
        assert response.status_code == 503
        assert "details" not in response.json()
        assert "db.internal.corp" not in response.text
