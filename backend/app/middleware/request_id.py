"""
Blog Platform Backend — Request ID Middleware
=============================================

What:  Assigns a correlation id to each request and echoes it back.
Why:   Error bodies carry the id, so a user reporting "503 on login" can be
       matched to the supervisor's retry log lines for that exact request.
How:   Reuse the client's X-Request-ID when present, otherwise generate a
       short uuid4 prefix; store it in a ContextVar (for the log filter and
       exception handlers) and in request.state (for route handlers).
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local: concurrent requests on one thread each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def current_request_id() -> str:
    return request_id_var.get("")


class RequestIDFilter(logging.Filter):
    """Adds `request_id` to every log record so the format string can use it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("") or "-"
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request_id_var.set(rid)
        request.state.request_id = rid
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
