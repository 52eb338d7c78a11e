"""
Blog Platform Backend — Health Check Routes
===========================================

What:  GET /health (process liveness) and GET /db-health (database health
       with one reconnect attempt).
Why:   Uptime monitors need a dependency-free liveness check; operators need
       a URL that both reports and repairs the database connection.
How:   /health returns immediately. /db-health probes; if not connected it
       asks the supervisor for a connection once and probes again.

Status codes:
    /health:    always 200
    /db-health: 200 when connected (or reconnected), 503 when reconnect failed
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.context import AppContext, get_context
from app.schemas.health import DatabaseHealthResponse, LivenessResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=LivenessResponse, summary="Process liveness")
async def health_check() -> LivenessResponse:
    return LivenessResponse()


@router.get(
    "/db-health",
    response_model=DatabaseHealthResponse,
    responses={503: {"description": "Reconnect failed", "model": DatabaseHealthResponse}},
    summary="Database health with one reconnect attempt",
)
async def database_health(ctx: AppContext = Depends(get_context)):
    status = await ctx.prober.probe()
    if status.is_connected:
        return DatabaseHealthResponse(status="ok", database=status)

    logger.info("db-health: database not connected (%s); attempting reconnect", status.stage_name)
    try:
        await ctx.supervisor.ensure_connected()
    except Exception as exc:
        logger.warning("db-health: reconnect failed: %s", exc)
        body = DatabaseHealthResponse(
            status="error",
            database=await ctx.prober.probe(),
            error=getattr(exc, "message", None) or str(exc),
            message="Failed to reconnect to database",
        )
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))

    updated = await ctx.prober.probe()
    if not updated.is_connected:
        body = DatabaseHealthResponse(
            status="error", database=updated, message="Failed to reconnect to database"
        )
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))
    return DatabaseHealthResponse(
        status="ok", database=updated, message="Database reconnected successfully"
    )
