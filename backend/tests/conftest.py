"""
Blog Platform Backend — Test Configuration (conftest.py)
========================================================

What:  Shared pytest fixtures and fakes for the entire test suite.
Why:   Nothing here needs a real MongoDB cluster or Cloudinary account. The
       connection supervisor is driven through a fake driver, services run
       against fake collections, and the app is built around a test context.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── make_settings:   Settings factory that ignores any local .env
    ├── sleep_calls / recording_sleep: observe retry backoff without waiting
    ├── fake_driver:     FakeDriver that succeeds on the first attempt
    ├── fake_db:         FakeDatabase of FakeCollections for service tests
    ├── media:           MagicMock MediaService with async upload/delete
    ├── context / app:   AppContext and FastAPI app around the fakes
    └── test_client:     HTTPX AsyncClient for API endpoint testing
"""

import asyncio
import os
from typing import Any, Callable, Dict, Iterable, List, Optional
from unittest.mock import AsyncMock, MagicMock

# Override settings for testing BEFORE any app imports
# Why: Prevents tests from picking up a developer's real cluster or secrets
os.environ["MONGODB_URI"] = "mongodb://localhost:27017/blog-platform-test"
os.environ["JWT_SECRET"] = "test-secret-that-is-long-enough"
os.environ["NODE_ENV"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.context import build_context
from app.database.driver import ConnectionOptions, DocumentStoreDriver, StoreHandle
from app.exceptions import ConnectivityError
from app.services.media_service import MediaService, UploadedImage

TEST_URI = "mongodb://localhost:27017/blog-platform-test"
TEST_SECRET = "test-secret-that-is-long-enough"


# ══════════════════════════════════════════════════════════════════════════
# Fake document store
# ══════════════════════════════════════════════════════════════════════════


class FakeHandle(StoreHandle):
    """In-memory StoreHandle. `signal_disconnect()` plays the transport listener."""

    def __init__(self, database_name: str = "blog-platform", database: Any = None, host: str = "cluster0.test:27017"):
        self.database_name = database_name
        self._database = database if database is not None else MagicMock(name="database")
        self._host = host
        self.alive = True
        self.closed = False
        self.ping_error: Optional[BaseException] = None
        self.ping_delay = 0.0
        self.ping_calls = 0
        self._callbacks: List[Callable[[str], None]] = []

    @property
    def database(self) -> Any:
        return self._database

    @property
    def host(self) -> Optional[str]:
        return self._host

    @property
    def is_alive(self) -> bool:
        return self.alive and not self.closed

    async def ping(self) -> None:
        self.ping_calls += 1
        if self.ping_delay:
            await asyncio.sleep(self.ping_delay)
        if self.ping_error is not None:
            raise self.ping_error

    async def close(self) -> None:
        self.closed = True

    def on_disconnect(self, callback: Callable[[str], None]) -> None:
        self._callbacks.append(callback)

    def signal_disconnect(self, reason: str = "writable server lost") -> None:
        self.alive = False
        for callback in list(self._callbacks):
            callback(reason)


class FakeDriver(DocumentStoreDriver):
    """
    Counts establishments. The first `failures` calls raise `error()`;
    `always_fail=True` makes every call raise.
    """

    def __init__(
        self,
        failures: int = 0,
        always_fail: bool = False,
        error: Optional[Callable[[], BaseException]] = None,
        database: Any = None,
    ):
        self.failures = failures
        self.always_fail = always_fail
        self.error = error or (lambda: ConnectivityError(reason="server_selection", context={"error": "No servers found"}))
        self.database = database
        self.connect_calls = 0
        self.handles: List[FakeHandle] = []
        self.options: Optional[ConnectionOptions] = None

    async def connect(self, uri: str, options: ConnectionOptions) -> StoreHandle:
        self.connect_calls += 1
        self.options = options
        # Yield so concurrent callers can pile up behind the attempt
        await asyncio.sleep(0)
        if self.always_fail or self.connect_calls <= self.failures:
            raise self.error()
        handle = FakeHandle(database_name=options.db_name, database=self.database)
        self.handles.append(handle)
        return handle


# ══════════════════════════════════════════════════════════════════════════
# Fake Motor collections
# ══════════════════════════════════════════════════════════════════════════


class FakeCursor:
    """Chainable like an AsyncIOMotorCursor; records the chain for assertions."""

    def __init__(self, documents: Iterable[Dict[str, Any]]):
        self.documents = list(documents)
        self.calls: List[tuple] = []

    def sort(self, *args):
        self.calls.append(("sort", args))
        return self

    def skip(self, count: int):
        self.calls.append(("skip", count))
        return self

    def limit(self, count: int):
        self.calls.append(("limit", count))
        return self

    def max_time_ms(self, ms: int):
        self.calls.append(("max_time_ms", ms))
        return self

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        return list(self.documents)


class FakeCollection:
    def __init__(self, documents: Iterable[Dict[str, Any]] = ()):
        self.documents = list(documents)
        self.cursors: List[FakeCursor] = []
        self.find = MagicMock(side_effect=self._find)
        self.find_one = AsyncMock(return_value=None)
        self.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))
        self.count_documents = AsyncMock(side_effect=lambda *args, **kwargs: len(self.documents))
        self.update_one = AsyncMock(return_value=MagicMock(modified_count=1))
        self.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
        self.find_one_and_update = AsyncMock(return_value=None)

    def _find(self, *args, **kwargs) -> FakeCursor:
        cursor = FakeCursor(self.documents)
        self.cursors.append(cursor)
        return cursor


class FakeDatabase:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection()
        return self.collections[name]

    def seed(self, name: str, documents: Iterable[Dict[str, Any]]) -> FakeCollection:
        self[name].documents = list(documents)
        return self[name]


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def make_settings():
    """
    Build Settings without reading a local .env file.

    Usage:
        settings = make_settings(mongodb_uri=None)
    """

    def _make(**overrides) -> Settings:
        values = {"mongodb_uri": TEST_URI, "jwt_secret": TEST_SECRET, "environment": "test"}
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def sleep_calls() -> List[float]:
    return []


@pytest.fixture
def recording_sleep(sleep_calls):
    """Stand-in for asyncio.sleep that records the requested delays."""

    async def _sleep(seconds: float) -> None:
        sleep_calls.append(seconds)

    return _sleep


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def fake_driver(fake_db):
    return FakeDriver(database=fake_db)


@pytest.fixture
def media():
    """MediaService double: uploads succeed, deletes are recorded."""
    service = MagicMock(spec=MediaService)
    service.upload_blog_image = AsyncMock(
        return_value=UploadedImage(
            secure_url="https://res.cloudinary.com/demo/image/upload/v1712345678/blog_images/new.jpg",
            public_id="blog_images/new",
        )
    )
    service.delete = AsyncMock(return_value={"result": "ok"})
    service.delete_by_url = AsyncMock(return_value={"result": "ok"})
    return service


@pytest.fixture
def context(settings, fake_driver, recording_sleep, media):
    return build_context(settings, driver=fake_driver, sleep=recording_sleep, media=media)


@pytest.fixture
def app(context):
    from app.main import create_app

    return create_app(context)


@pytest_asyncio.fixture
async def test_client(app):
    """
    Provides an async HTTP test client for endpoint testing.

    What:    HTTPX AsyncClient configured to talk to a test app.
    How:     Uses ASGITransport to route requests directly to the app
             (lifespan is not run, so no logging reconfiguration happens).

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
