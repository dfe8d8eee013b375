"""Process-wide handles, built once at start-up and passed explicitly."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from portal.common.config import Settings, get_settings
from portal.infra.db.session import DatabasePool
from portal.infra.storage import HealthStatus, StorageFacade

startup_logger = logging.getLogger("portal.startup")


@dataclass
class PortalContext:
    settings: Settings
    storage: StorageFacade
    db: DatabasePool

    def close(self) -> None:
        self.db.dispose()


def build_context(settings: Settings | None = None) -> PortalContext:
    settings = settings or get_settings()
    return PortalContext(
        settings=settings,
        storage=StorageFacade.from_settings(settings),
        db=DatabasePool(settings),
    )


def run_startup_checks(context: PortalContext) -> tuple[bool, HealthStatus]:
    """Probe the database and the bucket, logging the outcome of each.

    Failures are reported, not raised, so the process still starts.
    """
    db_ok = context.db.check()
    if db_ok:
        startup_logger.info("database pool connected [event=db_connected]")
    else:
        startup_logger.error("database pool connection failed [event=db_connect_failed]")

    health = context.storage.health_check()
    if health.healthy:
        startup_logger.info(
            "connected to bucket %s (%.0fms) [event=storage_connected]",
            health.bucket,
            health.response_time_ms or 0.0,
        )
    else:
        startup_logger.error(
            "bucket %s unreachable: %s [event=storage_connect_failed]",
            health.bucket,
            health.error,
        )
    return db_ok, health
