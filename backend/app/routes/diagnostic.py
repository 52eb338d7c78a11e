"""
Blog Platform Backend — Diagnostic Routes
=========================================

What:  GET /api/diagnostic/status and GET /api/diagnostic/db-reconnect.
Why:   When a deployment misbehaves, the first questions are "is the
       configuration complete?" and "can we reach the database?". These
       routes answer both without needing log access.
How:   Excluded from the database gate, so they respond even when the
       database is down: /status degrades to "degraded" instead of failing,
       /db-reconnect tears the connection down and establishes a fresh one.

Security Note:
    The database host is never returned; /status reports "connected" in its
    place. Raw error text is only included in development mode.
"""

import logging
import platform
import sys
import time
from datetime import datetime, timezone
from importlib import metadata
from typing import Dict, Optional

import psutil
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app import __version__
from app.config import validate_environment
from app.context import AppContext, get_context
from app.middleware.db_gate import classify
from app.schemas.health import (
    ApplicationInfo,
    DiagnosticStatusResponse,
    EnvironmentSection,
    PlatformInfo,
    ReconnectResponse,
    RuntimeInfo,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/diagnostic", tags=["Diagnostic"])

APPLICATION_NAME = "blog-platform-backend"

# Distributions whose versions are reported by /status
REPORTED_DEPENDENCIES = ("fastapi", "motor", "pymongo", "pydantic")

# Process start, for uptime reporting
_start_time = time.monotonic()


def _dependency_versions() -> Dict[str, str]:
    versions = {"python": platform.python_version()}
    for name in REPORTED_DEPENDENCIES:
        try:
            versions[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            versions[name] = "unknown"
    return versions


def _memory_rss() -> Optional[int]:
    try:
        return psutil.Process().memory_info().rss
    except psutil.Error as exc:
        logger.debug("Could not read process memory: %s", exc)
        return None


@router.get("/status", response_model=DiagnosticStatusResponse, summary="System status")
async def system_status(ctx: AppContext = Depends(get_context)) -> DiagnosticStatusResponse:
    settings = ctx.settings
    report = validate_environment(settings.as_environment())
    database = await ctx.prober.probe()

    return DiagnosticStatusResponse(
        timestamp=datetime.now(timezone.utc),
        status="healthy" if database.is_connected else "degraded",
        # Mask the host; only its presence is reported
        database=database.model_copy(
            update={"host_descriptor": "connected" if database.host_descriptor else None}
        ),
        environment=EnvironmentSection(
            is_valid=report.is_valid,
            errors=report.errors,
            runtime=RuntimeInfo(
                python_version=sys.version.split()[0],
                environment=settings.environment,
                memory_rss_bytes=_memory_rss(),
                uptime_seconds=round(time.monotonic() - _start_time, 2),
            ),
        ),
        application=ApplicationInfo(
            name=APPLICATION_NAME,
            version=__version__,
            dependencies=_dependency_versions(),
        ),
        vercel=PlatformInfo(
            is_vercel=bool(settings.vercel),
            region=settings.vercel_region or "unknown",
            environment=settings.vercel_env or "unknown",
        ),
    )


@router.get(
    "/db-reconnect",
    response_model=ReconnectResponse,
    summary="Force a fresh database connection",
)
async def force_reconnect(ctx: AppContext = Depends(get_context)):
    logger.info("Forcing database reconnection")
    await ctx.supervisor.teardown()
    try:
        await ctx.supervisor.ensure_connected()
    except Exception as exc:
        status_code, message = classify(exc)
        logger.error("Database reconnection failed: %s", exc)
        body = {
            "success": False,
            "message": "Database reconnection failed",
            "error": message,
            "database": (await ctx.prober.probe()).model_dump(mode="json"),
        }
        if ctx.settings.is_development:
            body["details"] = getattr(exc, "message", None) or str(exc)
        return JSONResponse(status_code=status_code, content=body)

    return ReconnectResponse(
        success=True,
        message="Database reconnection attempt completed",
        database=await ctx.prober.probe(),
    )
