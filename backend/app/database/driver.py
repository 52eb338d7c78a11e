"""
Blog Platform Backend — Document Store Driver
=============================================

What:  The boundary between the connection supervisor and MongoDB.
Why:   The supervisor's lifecycle rules (single flight, bounded retry,
       demotion on transport loss) are independent of Motor. Putting Motor
       behind a small interface lets tests drive the supervisor with a fake
       store and lets the supervisor stay free of pymongo error types.
How:   `DocumentStoreDriver.connect()` returns a `StoreHandle`. The Motor
       implementation installs a pymongo topology listener per client and
       forwards "writable server lost" / "topology closed" events to
       subscribers on the event loop thread.

Threading Note:
    pymongo runs its server monitors on background threads, so listener
    callbacks arrive off the event loop. Every subscriber notification is
    marshalled with loop.call_soon_threadsafe(); the supervisor therefore only
    ever mutates connection state on the loop thread.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import monitoring
from starlette.concurrency import run_in_threadpool
from pymongo.errors import (
    ConfigurationError as PyMongoConfigurationError,
    ExecutionTimeout,
    InvalidURI,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from app.config import Settings
from app.exceptions import ConfigurationError, ConnectivityError

logger = logging.getLogger(__name__)

DisconnectCallback = Callable[[str], None]

# Substrings the resolver puts in DNS failures across platforms
DNS_FAILURE_MARKERS = (
    "ENOTFOUND",
    "getaddrinfo",
    "Name or service not known",
    "nodename nor servname",
    "DNS query name does not exist",
    "No address associated with hostname",
)


@dataclass(frozen=True)
class ConnectionOptions:
    """Driver options for one establishment, derived from Settings."""

    db_name: str
    server_selection_timeout_ms: int
    socket_timeout_ms: int
    connect_timeout_ms: int
    max_pool_size: int
    min_pool_size: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionOptions":
        return cls(
            db_name=settings.db_name,
            server_selection_timeout_ms=settings.db_server_selection_timeout_ms,
            socket_timeout_ms=settings.db_socket_timeout_ms,
            connect_timeout_ms=settings.db_connect_timeout_ms,
            max_pool_size=settings.db_max_pool_size,
            min_pool_size=settings.db_min_pool_size,
        )


# ══════════════════════════════════════════════════════════════════════════
# Interface
# ══════════════════════════════════════════════════════════════════════════


class StoreHandle(ABC):
    """
    A live connection (client + selected database) to the document store.

    Contract:
        - `ping()` is a cheap round-trip; raises ConnectivityError on failure
        - `close()` is idempotent and never notifies disconnect subscribers
        - `on_disconnect(cb)` subscribers are invoked on the event loop thread
          with a short human-readable reason
    """

    database_name: str

    @property
    @abstractmethod
    def database(self) -> Any:
        """The driver's database object used by the services."""
        ...

    @property
    @abstractmethod
    def host(self) -> Optional[str]:
        ...

    @property
    @abstractmethod
    def is_alive(self) -> bool:
        ...

    @abstractmethod
    async def ping(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    def on_disconnect(self, callback: DisconnectCallback) -> None:
        ...


class DocumentStoreDriver(ABC):
    """Factory for StoreHandles. One call to connect() is one establishment."""

    @abstractmethod
    async def connect(self, uri: str, options: ConnectionOptions) -> StoreHandle:
        """
        Open a new connection.

        Raises:
            ConfigurationError: The URI is malformed (not retryable).
            ConnectivityError:  The store could not be reached (retryable).
        """
        ...


# ══════════════════════════════════════════════════════════════════════════
# Error classification
# ══════════════════════════════════════════════════════════════════════════


def classify_driver_error(exc: BaseException) -> ConnectivityError:
    """
    Translate a pymongo (or socket) failure into a ConnectivityError.

    The `reason` drives the message the database gate returns:
        server_selection → "Unable to reach database server"
        timeout          → "Database connection timed out"
        host_not_found   → "Database host not found"
        network          → generic "Service temporarily unavailable"
    """
    text = str(exc)
    if isinstance(exc, ServerSelectionTimeoutError):
        reason = "server_selection"
    elif isinstance(exc, (NetworkTimeout, ExecutionTimeout, asyncio.TimeoutError)):
        reason = "timeout"
    elif any(marker in text for marker in DNS_FAILURE_MARKERS):
        reason = "host_not_found"
    elif "timed out" in text.lower():
        reason = "timeout"
    else:
        reason = "network"
    return ConnectivityError(
        reason=reason,
        context={"error": text or type(exc).__name__, "error_type": type(exc).__name__},
    )


def redact_uri(uri: str) -> str:
    """mongodb+srv://user:pw@cluster0.example.net/db?x=y → mongodb+srv://cluster0.example.net"""
    scheme, _, rest = uri.partition("://")
    hosts = rest.rsplit("@", 1)[-1].split("/", 1)[0].split("?", 1)[0]
    return f"{scheme}://{hosts}"


# ══════════════════════════════════════════════════════════════════════════
# Motor implementation
# ══════════════════════════════════════════════════════════════════════════


class TopologyMonitor(monitoring.TopologyListener):
    """
    pymongo topology listener bound to one client.

    Emits a disconnect when the topology goes from "has a writable server" to
    "has none" (primary lost, network partition, cluster paused) and when the
    topology is closed by anything other than our own close().
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._subscribers: List[DisconnectCallback] = []
        self.latest_description = None
        self.suppressed = False

    def subscribe(self, callback: DisconnectCallback) -> None:
        self._subscribers.append(callback)

    def _emit(self, reason: str) -> None:
        if self.suppressed or self._loop.is_closed():
            return
        for callback in list(self._subscribers):
            self._loop.call_soon_threadsafe(callback, reason)

    def opened(self, event) -> None:
        logger.debug("Topology opened: %s", event.topology_id)

    def description_changed(self, event) -> None:
        self.latest_description = event.new_description
        had_writable = event.previous_description.has_writable_server()
        if had_writable and not event.new_description.has_writable_server():
            self._emit("writable server lost")

    def closed(self, event) -> None:
        self._emit("topology closed")


class MotorStoreHandle(StoreHandle):
    """StoreHandle backed by an AsyncIOMotorClient."""

    def __init__(self, client: AsyncIOMotorClient, monitor: TopologyMonitor, database_name: str):
        self._client = client
        self._monitor = monitor
        self._closed = False
        self._lost = False
        self.database_name = database_name
        monitor.subscribe(self._mark_lost)

    def _mark_lost(self, reason: str) -> None:
        self._lost = True

    @property
    def client(self) -> AsyncIOMotorClient:
        return self._client

    @property
    def database(self):
        return self._client[self.database_name]

    @property
    def host(self) -> Optional[str]:
        # Read from the last topology event; client.address would block on
        # server selection inside the event loop
        description = self._monitor.latest_description
        if description is None:
            return None
        for address, server in description.server_descriptions().items():
            if server.is_writable:
                return f"{address[0]}:{address[1]}"
        return None

    @property
    def is_alive(self) -> bool:
        return not (self._closed or self._lost)

    async def ping(self) -> None:
        try:
            await self._client.admin.command("ping")
        except PyMongoError as exc:
            raise classify_driver_error(exc) from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._monitor.suppressed = True
        self._client.close()

    def on_disconnect(self, callback: DisconnectCallback) -> None:
        self._monitor.subscribe(callback)


class MotorDriver(DocumentStoreDriver):
    """
    Opens Motor clients tuned for a serverless runtime.

    Options applied (see Settings for defaults):
        serverSelectionTimeoutMS / socketTimeoutMS / connectTimeoutMS: 60s
        maxPoolSize=10, minPoolSize=0: small pool, nothing held while idle
        retryWrites: default on; appname identifies this backend in Atlas logs
    """

    appname = "blog-platform-backend"

    async def connect(self, uri: str, options: ConnectionOptions) -> StoreHandle:
        loop = asyncio.get_running_loop()
        monitor = TopologyMonitor(loop)

        try:
            # Built in a worker thread: mongodb+srv:// URIs resolve SRV/TXT
            # records inside the constructor on older pymongo releases
            client = await run_in_threadpool(
                AsyncIOMotorClient,
                uri,
                io_loop=loop,
                serverSelectionTimeoutMS=options.server_selection_timeout_ms,
                socketTimeoutMS=options.socket_timeout_ms,
                connectTimeoutMS=options.connect_timeout_ms,
                maxPoolSize=options.max_pool_size,
                minPoolSize=options.min_pool_size,
                appname=self.appname,
                event_listeners=[monitor],
            )
        except InvalidURI as exc:
            raise ConfigurationError(
                message="MONGODB_URI is malformed",
                setting="MONGODB_URI",
                context={"error": str(exc)},
            ) from exc
        except PyMongoConfigurationError as exc:
            # SRV lookups happen at construction time; a failed lookup is a
            # reachability problem, anything else is a bad option
            if any(marker in str(exc) for marker in DNS_FAILURE_MARKERS):
                raise classify_driver_error(exc) from exc
            raise ConfigurationError(
                message="MongoDB client configuration is invalid",
                setting="MONGODB_URI",
                context={"error": str(exc)},
            ) from exc

        handle = MotorStoreHandle(client, monitor, options.db_name)
        try:
            # Forces server selection so an unreachable cluster fails here
            await client.admin.command("hello")
        except PyMongoError as exc:
            await handle.close()
            raise classify_driver_error(exc) from exc

        logger.info("Opened MongoDB client for %s (db=%s)", redact_uri(uri), options.db_name)
        return handle
