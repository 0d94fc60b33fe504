"""
Background maintenance jobs.

Runs the expired-lock sweep and publishes scheduled nodes whose time has
come. Both jobs are idempotent, so overlapping runs are harmless.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from content_engine.config import settings
from content_engine.database import AsyncSessionLocal
from content_engine.services.content_service import publish_due_nodes
from content_engine.services.lock_service import LockService
from content_engine.utils.logging import operation_context

scheduler = AsyncIOScheduler()

logger = logging.getLogger(__name__)


async def cleanup_expired_locks_job(session_factory=AsyncSessionLocal) -> int:
    with operation_context():
        async with session_factory() as db:
            count = await LockService(db).cleanup_expired_locks()
        if count:
            logger.info(f"[Scheduler] Cleared {count} expired locks")
    return count


async def publish_due_nodes_job(session_factory=AsyncSessionLocal) -> int:
    with operation_context():
        async with session_factory() as db:
            count = await publish_due_nodes(db)
        if count:
            logger.info(f"[Scheduler] Published {count} scheduled nodes")
    return count


def schedule_maintenance(interval_minutes: int | None = None) -> None:
    interval = IntervalTrigger(minutes=interval_minutes or settings.lock_cleanup_interval_minutes)
    scheduler.add_job(
        cleanup_expired_locks_job,
        trigger=interval,
        id="cleanup_expired_locks",
        replace_existing=True,
    )
    scheduler.add_job(
        publish_due_nodes_job,
        trigger=interval,
        id="publish_due_nodes",
        replace_existing=True,
    )
    logger.info(f"[Scheduler] Maintenance jobs scheduled every {interval.interval}")


def start_scheduler() -> None:
    schedule_maintenance()
    if not scheduler.running:
        scheduler.start()


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
