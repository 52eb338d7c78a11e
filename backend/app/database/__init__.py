# Database package init
"""
Blog Platform Backend — Database Package
========================================

What:  Everything that touches the MongoDB connection itself.

Module Inventory:
    - driver.py:     DocumentStoreDriver / StoreHandle interface + Motor implementation
    - supervisor.py: ConnectionSupervisor, the only writer of connection state
    - health.py:     HealthProber, a read-only observer used by diagnostic routes
"""

from app.database.driver import (
    ConnectionOptions,
    DocumentStoreDriver,
    MotorDriver,
    StoreHandle,
)
from app.database.health import HealthProber
from app.database.supervisor import ConnectionState, ConnectionSupervisor, LifecycleStage

__all__ = [
    "ConnectionOptions",
    "ConnectionState",
    "ConnectionSupervisor",
    "DocumentStoreDriver",
    "HealthProber",
    "LifecycleStage",
    "MotorDriver",
    "StoreHandle",
]
