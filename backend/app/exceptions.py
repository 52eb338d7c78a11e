"""
Blog Platform Backend — Custom Exception Hierarchy
==================================================

What:  Application-specific exceptions for the different failure scenarios.
Why:   Each exception maps to one HTTP status and one user-safe message, so no
       raw driver error or stack trace ever reaches the client.
How:   Each exception carries a `message` (safe to return) and a `context`
       dict (logged server-side, returned only in development mode).
Who:   Raised by the connection supervisor, services and security helpers;
       caught by the global handlers in main.py and by the database gate.

Exception Hierarchy:
    BlogPlatformError (base)
    ├── ConfigurationError       → 500 (required setting absent or malformed)
    ├── ConnectivityError        → 503 (store unreachable after bounded retry)
    ├── OperationTimeoutError    → 504 (a single query exceeded maxTimeMS)
    ├── DatabaseError            → 500 (any other store failure)
    ├── ValidationError          → 400 (client can fix the input)
    ├── AuthenticationError      → 401
    ├── PermissionDeniedError    → 403
    ├── NotFoundError            → 404
    └── MediaUploadError         → 502 (media host failed the upload)

Retry policy:
    ConnectivityError is the only exception the supervisor retries.
    ConfigurationError is never retried (retrying cannot fix a missing URI).
    OperationTimeoutError is left to the caller.
"""

from typing import Any, Dict, Optional


class BlogPlatformError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, NOT returned outside development)
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


# ══════════════════════════════════════════════════════════════════════════
# Connection lifecycle errors
# ══════════════════════════════════════════════════════════════════════════


class ConfigurationError(BlogPlatformError):
    """
    Raised when a required setting is absent or malformed.

    When:    MONGODB_URI missing at establishment time, media host credentials
             missing at upload time.
    HTTP:    500 with a generic "contact support" message.
    """

    status_code = 500
    error_code = "configuration_error"

    def __init__(
        self,
        message: str = "Required configuration is missing or invalid",
        setting: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if setting:
            ctx["setting"] = setting
        super().__init__(message=message, context=ctx)
        self.setting = setting


class ConnectivityError(BlogPlatformError):
    """
    Raised when the document store cannot be reached.

    What:    Network failure, server selection timeout, DNS failure, or a failed
             liveness ping during establishment.
    HTTP:    503 Service Unavailable.

    Attributes:
        reason:  Coarse classification used by the gate to pick its message:
                 "server_selection", "timeout", "host_not_found" or "network".
        attempts: Number of establishment attempts made before giving up.
    """

    status_code = 503
    error_code = "service_unavailable"

    def __init__(
        self,
        message: str = "Service temporarily unavailable. Please try again later.",
        reason: str = "network",
        attempts: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["reason"] = reason
        if attempts is not None:
            ctx["attempts"] = attempts
        super().__init__(message=message, context=ctx)
        self.reason = reason
        self.attempts = attempts


class OperationTimeoutError(BlogPlatformError):
    """
    Raised when an individual query exceeded its allotted time.

    HTTP:    504 Gateway Timeout, with guidance to paginate or narrow the query.
    """

    status_code = 504
    error_code = "operation_timeout"
    solution = (
        "Try adding pagination parameters (limit and page) or use more specific search terms."
    )

    def __init__(
        self,
        message: str = (
            "Database query timed out. Try using pagination or narrowing your search criteria."
        ),
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(BlogPlatformError):
    """
    Raised when a database operation fails for any other reason.

    Security Note:
        The message returned to the client is always generic. The driver's
        error text is kept in `context` and only logged.
    """

    status_code = 500
    error_code = "database_error"

    def __init__(
        self,
        message: str = "Database operation failed. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


# ══════════════════════════════════════════════════════════════════════════
# Request-level errors
# ══════════════════════════════════════════════════════════════════════════


class ValidationError(BlogPlatformError):
    """
    Raised when client input fails validation or a business rule.

    When:    Missing title, duplicate slug or email, wrong image type, etc.
    HTTP:    400 Bad Request (schema-level errors stay FastAPI's 422).
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(BlogPlatformError):
    """Missing, malformed, expired or forged credentials. HTTP 401."""

    status_code = 401
    error_code = "authentication_error"

    def __init__(
        self,
        message: str = "Not authorized, token failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(BlogPlatformError):
    """Authenticated but not allowed (admin-only routes). HTTP 403."""

    status_code = 403
    error_code = "permission_denied"

    def __init__(
        self,
        message: str = "Not authorized as an admin",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(BlogPlatformError):
    """
    Raised when a requested resource does not exist.

    Motor returns None for missing documents (not an exception); the service
    layer converts None into NotFoundError.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource


class MediaUploadError(BlogPlatformError):
    """
    Raised when the media host rejects or fails an image upload.

    HTTP:    502 Bad Gateway (the upstream service failed, not our server).
    """

    status_code = 502
    error_code = "media_upload_error"

    def __init__(
        self,
        message: str = "Failed to upload image. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
