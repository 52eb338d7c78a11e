"""
Blog Platform Backend — Database Connection Check
=================================================

What:  Standalone check that the configured MongoDB cluster is reachable.
Why:   Verifies MONGODB_URI (network access list, DNS, credentials) without
       starting the API or going through the request gate.
How:   Loads Settings (environment + .env), opens ONE connection with a short
       server-selection timeout, pings it and closes it. No retries: the
       answer should come back in seconds.

Usage:
    cd backend
    python -m scripts.check_db_connection

Exit codes:
    0 → connected and pinged
    1 → MONGODB_URI missing, connection failed, or ping failed
"""

import asyncio
import logging
import sys
from dataclasses import replace
from typing import Optional

from app.config import Settings
from app.database.driver import ConnectionOptions, DocumentStoreDriver, MotorDriver, redact_uri
from app.exceptions import BlogPlatformError

logger = logging.getLogger("check_db_connection")

# Fail fast; the API itself waits much longer before giving up
SERVER_SELECTION_TIMEOUT_MS = 5000


async def check_connection(settings: Settings, driver: Optional[DocumentStoreDriver] = None) -> int:
    """
    Run the check and return a process exit code.

    Args:
        settings: Where the URI and database name come from.
        driver:   Injected in tests; defaults to the Motor driver.
    """
    logger.info("Testing MongoDB connection...")
    if not settings.mongodb_uri:
        logger.error("MONGODB_URI environment variable is not defined")
        return 1

    driver = driver or MotorDriver()
    options = replace(
        ConnectionOptions.from_settings(settings),
        server_selection_timeout_ms=SERVER_SELECTION_TIMEOUT_MS,
    )
    logger.info("Connecting to: %s", redact_uri(settings.mongodb_uri))

    try:
        handle = await driver.connect(settings.mongodb_uri, options)
    except BlogPlatformError as exc:
        logger.error("Connection failed: %s (%s)", exc.message, exc.context.get("error", "no detail"))
        return 1

    try:
        logger.info("Connection successful (database=%s)", handle.database_name)
        await handle.ping()
        logger.info("Ping succeeded")
    except BlogPlatformError as exc:
        logger.error("Ping failed: %s (%s)", exc.message, exc.context.get("error", "no detail"))
        return 1
    finally:
        await handle.close()
        logger.info("Connection closed")

    return 0


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    return asyncio.run(check_connection(Settings()))


if __name__ == "__main__":
    sys.exit(main())
