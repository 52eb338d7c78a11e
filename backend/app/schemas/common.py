"""
Blog Platform Backend — Shared Response Schemas
===============================================

Every JSON body carries `success`. Errors always look like ErrorResponse, no
matter which layer produced them (gate, exception handler or validation).
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    What:  Standardized error body for all API errors.

    Example:
        {
            "success": false,
            "error": "service_unavailable",
            "message": "Database connection failed",
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """

    success: bool = False
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Extra context (development only)")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(BaseModel):
    success: bool = True
    message: str
