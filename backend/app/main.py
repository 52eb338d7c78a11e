"""
Blog Platform Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, exception
       handling and lifecycle management in one place.
How:   create_app(context=None) builds (or accepts) the AppContext, stores it
       on app.state and wires everything around it.
Who:   uvicorn (uvicorn app.main:app) and the test suite (create_app(ctx)).

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         FastAPI App                          │
    │                                                              │
    │  Middleware: RequestID → Logging → CORS → GZip → DB Gate     │
    │                                                              │
    │  Routes:  /health  /db-health  /api/diagnostic/*             │
    │           /api/auth/*  /api/users/*  /api/categories/*       │
    │           /api/authors/*  /api/blogs/*                       │
    │                                                              │
    │  Exception Handlers:                                         │
    │    BlogPlatformError family → its status_code                │
    │    pymongo errors → 504 / 503 / 400 / 500                    │
    │    anything else → 500 (logged with traceback)               │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, log the environment validation report.
              No connection is opened here; the first gated request (or
              /db-health) establishes it.
    Shutdown: supervisor.teardown() closes the connection.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from app import __version__
from app.config import Settings, validate_environment
from app.context import AppContext, build_context
from app.exceptions import (
    BlogPlatformError,
    ConfigurationError,
    ConnectivityError,
    DatabaseError,
    OperationTimeoutError,
    ValidationError,
)
from app.middleware.db_gate import DatabaseGateMiddleware
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.request_id import RequestIDFilter, RequestIDMiddleware, request_id_var
from app.routes import auth, blogs, categories, diagnostic, health

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════


def setup_logging(settings: Settings) -> None:
    """
    Configure logging once for the whole process.

    Format: 2024-01-15T12:00:00 [INFO] app.database.supervisor [a1b2c3d4] message

    The request id comes from RequestIDFilter ("-" outside a request).
    Serverless platforms capture stdout, so that is the only handler.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDFilter())
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # pymongo logs every heartbeat at DEBUG and command details at INFO
    for noisy in ("uvicorn.access", "pymongo", "motor", "cloudinary", "urllib3", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    context: AppContext = app.state.context
    settings = context.settings

    setup_logging(settings)
    logger.info("=" * 60)
    logger.info("Blog Platform Backend %s starting (environment=%s)", __version__, settings.environment)

    # Report, don't exit: diagnostics must stay reachable to show the problem
    report = validate_environment(settings.as_environment())
    for entry in report.errors:
        if entry.startswith("Warning"):
            logger.warning(entry)
        else:
            logger.error(entry)
    if report.is_valid:
        logger.info("Environment validation passed")
    else:
        logger.error("Environment validation failed; /api requests will be rejected until fixed")

    if not settings.cloudinary_configured:
        logger.warning("Cloudinary is not configured; blog image uploads will fail")

    logger.info("Server ready on port %d", settings.port)
    logger.info("=" * 60)

    yield

    logger.info("Blog Platform Backend shutting down...")
    await context.supervisor.teardown()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════


def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
    **extra,
) -> JSONResponse:
    content = {
        "success": False,
        "error": error,
        "message": message,
        "request_id": request_id_var.get("") or None,
        **extra,
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """
    Map every failure to {success: false, error, message, request_id[, details]}.

    Handler hierarchy:
        ValidationError, AuthenticationError, PermissionDeniedError,
        NotFoundError           → 4xx, context returned as details
        ConfigurationError      → 500, generic message
        ConnectivityError       → 503
        OperationTimeoutError   → 504, with a `solution` hint
        MediaUploadError        → 502
        DatabaseError           → 500, generic message
        pymongo errors          → 504 / 503 / 400 / 500 (see below)
        RequestValidationError  → 422 (schema-level problems)
        Exception (fallback)    → 500, logged with traceback

    5xx details (the server-side context) are only returned in development.
    """
    dev = settings.is_development

    def server_details(exc: BaseException, context: Optional[dict] = None) -> Optional[dict]:
        if not dev:
            return None
        return {**(context or {}), "error": str(exc)}

    @app.exception_handler(BlogPlatformError)
    async def handle_application_error(request: Request, exc: BlogPlatformError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s | context=%s", type(exc).__name__, request.method, request.url.path, exc.message, exc.context)
            details = server_details(exc, exc.context)
        else:
            logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
            details = exc.context
        return _error_response(exc.status_code, exc.error_code, exc.message, details)

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError):
        logger.error("Configuration error: %s | context=%s", exc.message, exc.context)
        return _error_response(
            500,
            exc.error_code,
            "Server configuration error. Please contact support.",
            server_details(exc, exc.context),
        )

    @app.exception_handler(ConnectivityError)
    async def handle_connectivity_error(request: Request, exc: ConnectivityError):
        logger.error("Database unreachable (%s): %s", exc.reason, exc.context.get("error", exc.message))
        return _error_response(503, exc.error_code, exc.message, server_details(exc, exc.context))

    @app.exception_handler(OperationTimeoutError)
    async def handle_operation_timeout(request: Request, exc: OperationTimeoutError):
        logger.warning("Query timed out on %s %s", request.method, request.url.path)
        return _error_response(
            504, exc.error_code, exc.message, server_details(exc, exc.context), solution=exc.solution
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        # Driver text stays in the log
        logger.error("Database error: %s | context=%s", exc.message, exc.context)
        return _error_response(500, exc.error_code, exc.message, server_details(exc, exc.context))

    # ── Driver errors that escaped a service ──────────────────────────────

    async def handle_query_timeout(request: Request, exc: PyMongoError):
        return await handle_operation_timeout(request, OperationTimeoutError(context={"error": str(exc)}))

    async def handle_store_unreachable(request: Request, exc: PyMongoError):
        # The next request re-establishes through the supervisor
        return await handle_connectivity_error(
            request,
            ConnectivityError(
                reason="server_selection" if isinstance(exc, ServerSelectionTimeoutError) else "network",
                context={"error": str(exc), "error_type": type(exc).__name__},
            ),
        )

    async def handle_duplicate_key(request: Request, exc: DuplicateKeyError):
        fields = list((exc.details or {}).get("keyValue", {}) or {})
        logger.warning("Duplicate key on %s: %s", request.url.path, fields)
        return await handle_application_error(
            request,
            ValidationError(
                message=f"Duplicate value for {', '.join(fields) or 'a unique field'}",
                context={"fields": fields},
            ),
        )

    async def handle_driver_error(request: Request, exc: PyMongoError):
        return await handle_database_error(
            request, DatabaseError(context={"error": str(exc), "error_type": type(exc).__name__})
        )

    app.add_exception_handler(ExecutionTimeout, handle_query_timeout)
    app.add_exception_handler(NetworkTimeout, handle_query_timeout)
    app.add_exception_handler(ServerSelectionTimeoutError, handle_store_unreachable)
    app.add_exception_handler(AutoReconnect, handle_store_unreachable)
    app.add_exception_handler(ConnectionFailure, handle_store_unreachable)
    app.add_exception_handler(DuplicateKeyError, handle_duplicate_key)
    app.add_exception_handler(PyMongoError, handle_driver_error)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg")}
            for error in exc.errors()
        ]
        first = errors[0]["message"] if errors else "Invalid request"
        return _error_response(422, "validation_error", first, {"errors": errors})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
            server_details(exc),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        context: Pre-built collaborators (tests pass one around a fake
                 driver). Defaults to build_context() with production wiring.
    """
    context = context or build_context()
    settings = context.settings

    app = FastAPI(
        title="Blog Platform API",
        description="Blog CRUD backend with serverless-friendly MongoDB connection management.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context

    # ── Middleware ────────────────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → CORS → GZip → DB Gate
    app.add_middleware(DatabaseGateMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app, settings)

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(diagnostic.router)
    app.include_router(auth.router)
    app.include_router(auth.users_router)
    app.include_router(categories.router)
    app.include_router(categories.authors_router)
    app.include_router(blogs.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = app.state.context.settings
    uvicorn.run("app.main:app", host=_settings.host, port=_settings.port)
