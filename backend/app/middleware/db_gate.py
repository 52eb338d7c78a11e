"""
Blog Platform Backend — Database Gate Middleware
================================================

What:  Ensures a database connection before any /api handler runs.
Why:   A serverless instance may start (or wake) with no connection. Handlers
       should never find out mid-query; requests are either admitted with a
       live connection or rejected up front with a clear, caller-safe error.
How:   DatabaseGate.before_handle() calls supervisor.ensure_connected().
       Success → Proceed. Failure → Reject(status_code, body), classified by
       the error's type and reason. DatabaseGateMiddleware applies the gate to
       /api/* except /api/diagnostic/* (diagnostics must degrade, not fail).

Classification:
    ConfigurationError              → 500 "Database configuration error. Please contact support."
    ConnectivityError/server_selection → 503 "Unable to reach database server. ..."
    ConnectivityError/timeout       → 503 "Database connection timed out. ..."
    ConnectivityError/host_not_found → 503 "Database host not found. ..."
    anything else                   → 503 "Service temporarily unavailable. ..."

Rejection body:
    {"success": false, "message": "Database connection failed",
     "error": "<classified message>", "request_id": "...",
     "details": "<raw error>"   # development only}
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.context import AppContext
from app.exceptions import ConfigurationError, ConnectivityError
from app.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

GATE_MESSAGE = "Database connection failed"
CONFIGURATION_MESSAGE = "Database configuration error. Please contact support."
GENERIC_MESSAGE = "Service temporarily unavailable. Please try again later."

REASON_MESSAGES = {
    "server_selection": "Unable to reach database server. Please try again later.",
    "timeout": "Database connection timed out. Please try again later.",
    "host_not_found": "Database host not found. Please try again later.",
}


@dataclass(frozen=True)
class Proceed:
    pass


@dataclass(frozen=True)
class Reject:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


GateDecision = Union[Proceed, Reject]


def classify(exc: BaseException) -> Tuple[int, str]:
    """Map an establishment failure to (HTTP status, caller-safe message)."""
    if isinstance(exc, ConfigurationError):
        return 500, CONFIGURATION_MESSAGE
    if isinstance(exc, ConnectivityError):
        return 503, REASON_MESSAGES.get(exc.reason, GENERIC_MESSAGE)
    return 503, GENERIC_MESSAGE


def _raw_error(exc: BaseException) -> str:
    context = getattr(exc, "context", None) or {}
    return str(context.get("error") or getattr(exc, "message", None) or exc)


class DatabaseGate:
    def __init__(self, context: AppContext):
        self._context = context

    async def before_handle(self, request: Request) -> GateDecision:
        try:
            await self._context.supervisor.ensure_connected()
        except Exception as exc:
            status_code, message = classify(exc)
            logger.error(
                "Database gate rejected %s %s: %s (%s)",
                request.method,
                request.url.path,
                message,
                _raw_error(exc),
            )
            body: Dict[str, Any] = {
                "success": False,
                "message": GATE_MESSAGE,
                "error": message,
                "request_id": request_id_var.get("") or None,
            }
            if self._context.settings.is_development:
                body["details"] = _raw_error(exc)
            return Reject(status_code=status_code, body=body)
        return Proceed()


class DatabaseGateMiddleware(BaseHTTPMiddleware):
    """
    Applies DatabaseGate to /api/* (minus exclusions).

    The context is read from app.state at dispatch time, so the middleware can
    be registered before create_app() attaches the context.
    """

    def __init__(self, app, prefix: str = "/api", exclude: Tuple[str, ...] = ("/api/diagnostic",)):
        super().__init__(app)
        self.prefix = prefix
        self.exclude = exclude

    def applies_to(self, path: str) -> bool:
        if not (path == self.prefix or path.startswith(self.prefix + "/")):
            return False
        return not any(path == ex or path.startswith(ex + "/") for ex in self.exclude)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # CORS preflight never touches the database
        if request.method == "OPTIONS" or not self.applies_to(request.url.path):
            return await call_next(request)

        gate = DatabaseGate(request.app.state.context)
        decision = await gate.before_handle(request)
        if isinstance(decision, Reject):
            return JSONResponse(status_code=decision.status_code, content=decision.body)
        return await call_next(request)
