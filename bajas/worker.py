"""arq worker: scheduled route planning sync.

Start with ``arq bajas.worker.WorkerSettings``. The sync runs at the
configured hours (06:00 and 19:00 America/La_Paz by default) and can be
enqueued on demand as ``run_planning_sync``. arq keeps cron jobs unique, so
a run never starts while the previous one is still going.
"""

from __future__ import annotations

from typing import Any
from zoneinfo import ZoneInfo

import structlog
from arq.connections import RedisSettings
from arq.cron import cron

from bajas.config import get_config
from bajas.core.logging import configure_logging
from bajas.db.connection import close_db
from bajas.sync.feed import PlanningFeed
from bajas.sync.reconciler import SyncReconciler

config = get_config()
logger = structlog.get_logger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    configure_logging(config.log_level, config.log_format)
    ctx["reconciler"] = SyncReconciler()
    logger.info("worker_started", sync_hours=list(config.sync.schedule_hours))


async def shutdown(ctx: dict[str, Any]) -> None:
    await close_db()
    logger.info("worker_stopped")


async def run_planning_sync(ctx: dict[str, Any]) -> dict[str, Any]:
    """Fetch the planning feed and reconcile route_assignments."""
    reconciler: SyncReconciler = ctx.get("reconciler") or SyncReconciler()
    feed = PlanningFeed.from_config(config.sync)

    logger.info("planning_sync_started")
    result = await reconciler.sync_from(feed.fetch)
    logger.info(
        "planning_sync_finished",
        inserted=result.inserted,
        updated=result.updated,
        unchanged=result.unchanged,
        skipped=result.skipped,
    )

    return {
        "status": result.status.value,
        "inserted": result.inserted,
        "updated": result.updated,
        "unchanged": result.unchanged,
        "message": result.message,
    }


class WorkerSettings:
    functions = [run_planning_sync]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(config.redis_url)
    timezone = ZoneInfo(config.sync.timezone)
    cron_jobs = [
        cron(
            run_planning_sync,
            hour=set(config.sync.schedule_hours),
            minute=0,
            unique=True,
        )
    ]
