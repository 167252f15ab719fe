"""Tests for the maintenance scheduler."""

from estudimen.scheduler import CLEANUP_JOB_ID, create_scheduler


class TestScheduler:
    def test_cleanup_job_registered(self, authority):
        scheduler = create_scheduler(authority, interval_minutes=30)

        job = scheduler.get_job(CLEANUP_JOB_ID)

        assert job is not None
        assert job.func == authority.cleanup_expired
        assert job.trigger.interval.total_seconds() == 30 * 60
        assert job.max_instances == 1
