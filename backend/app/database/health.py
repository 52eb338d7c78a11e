"""
Blog Platform Backend — Database Health Prober
==============================================

What:  Produces a HealthStatus snapshot of the supervisor's connection.
Why:   Diagnostic routes need to report the connection without being able to
       break it. The prober only reads supervisor state and issues at most
       one ping with its own short timeout.
How:   Read stage + handle metadata → if connected, ping under a timeout →
       fold every outcome (including unexpected exceptions) into the status.

Guarantees:
    - probe() never raises
    - probe() never changes the supervisor's stage; a failed ping is reported
      as ping_succeeded=False and left for the transport listener to judge
"""

import asyncio
import logging
from datetime import datetime, timezone

from app.database.supervisor import ConnectionSupervisor, LifecycleStage
from app.schemas.health import HealthStatus

logger = logging.getLogger(__name__)


class HealthProber:
    def __init__(self, supervisor: ConnectionSupervisor, timeout: float = 5.0):
        self._supervisor = supervisor
        self._timeout = timeout

    async def probe(self) -> HealthStatus:
        stage = self._supervisor.stage
        try:
            handle = self._supervisor.handle
            is_connected = (
                stage is LifecycleStage.CONNECTED and handle is not None and handle.is_alive
            )
            database_name = handle.database_name if handle is not None else None
            host = handle.host if handle is not None else None

            ping_succeeded = None
            ping_error = None
            if is_connected:
                try:
                    await asyncio.wait_for(handle.ping(), timeout=self._timeout)
                    ping_succeeded = True
                except asyncio.TimeoutError:
                    ping_succeeded = False
                    ping_error = f"Ping timed out after {self._timeout:g}s"
                except Exception as exc:
                    ping_succeeded = False
                    ping_error = getattr(exc, "message", None) or str(exc) or type(exc).__name__
                if not ping_succeeded:
                    logger.warning("Health probe ping failed: %s", ping_error)

            return HealthStatus(
                is_connected=is_connected,
                stage_name=stage.value,
                database_name=database_name,
                host_descriptor=host,
                ping_succeeded=ping_succeeded,
                ping_error=ping_error,
                observed_at=datetime.now(timezone.utc),
            )
        except Exception as exc:
            # Reading handle metadata failed; report rather than raise
            logger.error("Health probe failed: %s", exc, exc_info=True)
            return HealthStatus(
                is_connected=False,
                stage_name=stage.value,
                ping_error=str(exc) or type(exc).__name__,
                observed_at=datetime.now(timezone.utc),
            )
