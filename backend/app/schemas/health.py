"""
Blog Platform Backend — Health and Diagnostic Schemas
=====================================================

What:  Response models for /health, /db-health and /api/diagnostic/*.
Why:   Monitoring tools and the admin dashboard parse these payloads; a fixed
       schema keeps them stable across deployments.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class HealthStatus(BaseModel):
    """
    What:  Point-in-time snapshot of the database connection.
    Who:   Produced by HealthProber.probe(); embedded in diagnostic responses.
    When:  Built fresh on every probe and never cached.

    `ping_succeeded` is None when no ping was attempted (not connected).
    A failed ping is advisory: it does not change the supervisor's stage.
    """

    is_connected: bool = Field(description="True when the supervisor holds a live handle")
    stage_name: str = Field(description="disconnected, connecting, connected or disconnecting")
    database_name: Optional[str] = Field(default=None)
    host_descriptor: Optional[str] = Field(default=None, description="host:port of the primary")
    ping_succeeded: Optional[bool] = Field(default=None)
    ping_error: Optional[str] = Field(default=None)
    observed_at: datetime = Field(description="When the snapshot was taken (UTC)")

    model_config = {"frozen": True}


class LivenessResponse(BaseModel):
    """GET /health — process is up. No dependencies are checked."""

    status: str = "ok"


class DatabaseHealthResponse(BaseModel):
    """GET /db-health."""

    status: str = Field(description="ok or error")
    database: HealthStatus
    message: Optional[str] = None
    error: Optional[str] = None


class RuntimeInfo(BaseModel):
    python_version: str
    environment: str
    memory_rss_bytes: Optional[int] = None
    uptime_seconds: float


class EnvironmentSection(BaseModel):
    is_valid: bool
    errors: List[str]
    runtime: RuntimeInfo


class ApplicationInfo(BaseModel):
    name: str
    version: str
    dependencies: Dict[str, str]


class PlatformInfo(BaseModel):
    is_vercel: bool
    region: str
    environment: str


class DiagnosticStatusResponse(BaseModel):
    """GET /api/diagnostic/status — always 200, degrades instead of failing."""

    success: bool = True
    timestamp: datetime
    status: str = Field(description="healthy when the database is connected, else degraded")
    database: HealthStatus
    environment: EnvironmentSection
    application: ApplicationInfo
    vercel: PlatformInfo


class ReconnectResponse(BaseModel):
    """GET /api/diagnostic/db-reconnect."""

    success: bool
    message: str
    database: HealthStatus
