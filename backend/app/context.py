"""
Blog Platform Backend — Application Context
===========================================

What:  The explicitly constructed object that holds every long-lived
       collaborator: settings, connection supervisor, health prober, media
       service and token service.
Why:   Connection state used to be module-global. Passing one context object
       to the gate, routes and services keeps the supervisor the single writer
       while letting tests build an isolated context around a fake store.
How:   create_app() builds a context with build_context() (or accepts one),
       stores it on app.state.context, and routes reach it via get_context().
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from app.config import Settings, settings as default_settings
from app.database.driver import DocumentStoreDriver, MotorDriver
from app.database.health import HealthProber
from app.database.supervisor import ConnectionSupervisor, SleepFn
from app.security import TokenService
from app.services.media_service import MediaService


@dataclass
class AppContext:
    settings: Settings
    supervisor: ConnectionSupervisor
    prober: HealthProber
    media: MediaService
    tokens: TokenService


def build_context(
    settings: Optional[Settings] = None,
    driver: Optional[DocumentStoreDriver] = None,
    sleep: SleepFn = asyncio.sleep,
    media: Optional[MediaService] = None,
) -> AppContext:
    """Wire the production collaborators; any of them can be replaced."""
    settings = settings or default_settings
    supervisor = ConnectionSupervisor(settings, driver or MotorDriver(), sleep=sleep)
    return AppContext(
        settings=settings,
        supervisor=supervisor,
        prober=HealthProber(supervisor, timeout=settings.db_probe_timeout_seconds),
        media=media or MediaService(settings),
        tokens=TokenService(settings),
    )


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the context attached by create_app()."""
    return request.app.state.context
