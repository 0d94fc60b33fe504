"""
Tests for the background maintenance jobs
"""

from datetime import timedelta

from content_engine.models.content_node import NodeStatus
from content_engine.scheduler import (
    cleanup_expired_locks_job,
    publish_due_nodes_job,
    schedule_maintenance,
    scheduler,
)
from content_engine.services.lock_service import LockService
from content_engine.utils.clock import utcnow


class TestMaintenanceJobs:
    """Test the jobs run by the scheduler"""

    async def test_cleanup_job_clears_expired_locks(self, test_db, session_factory, make_node, editor):
        node = await make_node("Home", "home")
        await LockService(test_db).lock(node, editor, duration_minutes=5, now=utcnow() - timedelta(hours=1))

        assert await cleanup_expired_locks_job(session_factory) == 1
        await test_db.refresh(node)
        assert node.locked_by is None

    async def test_publish_job(self, test_db, session_factory, make_node):
        node = await make_node(
            "Launch",
            "launch",
            status=NodeStatus.SCHEDULED.value,
            scheduled_at=utcnow() - timedelta(minutes=1),
        )

        assert await publish_due_nodes_job(session_factory) == 1
        await test_db.refresh(node)
        assert node.status == NodeStatus.PUBLISHED.value
        assert node.published_at is not None

    async def test_jobs_idle_when_nothing_to_do(self, session_factory, space):
        assert await cleanup_expired_locks_job(session_factory) == 0
        assert await publish_due_nodes_job(session_factory) == 0


class TestScheduleMaintenance:
    """Test job registration"""

    def test_jobs_registered(self):
        schedule_maintenance(interval_minutes=2)
        try:
            job_ids = {job.id for job in scheduler.get_jobs()}
            assert {"cleanup_expired_locks", "publish_due_nodes"} <= job_ids
            assert scheduler.get_job("cleanup_expired_locks").trigger.interval == timedelta(minutes=2)
        finally:
            scheduler.remove_all_jobs()
