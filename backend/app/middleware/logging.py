"""
Blog Platform Backend — Access Logging Middleware
=================================================

What:  One log line per request: method, path, status, duration, request id.
Why:   On a serverless platform the function log is the only observability
       there is; slow requests usually mean a cold connection establishment.
How:   Measure around call_next and pick the level from the status code
       (5xx → ERROR, 4xx → WARNING, otherwise INFO).

Not logged: request bodies, Authorization headers, uploaded file contents.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var

logger = logging.getLogger("blog_platform.access")

# Liveness probes hit these every few seconds
QUIET_PATHS = {"/health", "/favicon.ico"}


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"
        status = response.status_code
        logger.log(
            level_for_status(status),
            "%s %s %d %.1fms from %s",
            request.method,
            path,
            status,
            duration_ms,
            client_ip,
            extra={
                "request_id": request_id_var.get("") or "-",
                "status": status,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
