"""Scheduler configuration using APScheduler.

Periodically purges refresh token records that expired without being used.
"""

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from estudimen.auth.session_authority import SessionAuthority

logger = structlog.get_logger()

CLEANUP_JOB_ID = "expired_token_cleanup"


def create_scheduler(
    authority: SessionAuthority,
    interval_minutes: int = 60,
) -> AsyncIOScheduler:
    """Create and configure the maintenance scheduler.

    Args:
        authority: Session authority whose expired records are purged.
        interval_minutes: Minutes between cleanup runs.

    Returns:
        Configured AsyncIOScheduler (not started).
    """
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        authority.cleanup_expired,
        trigger=IntervalTrigger(minutes=interval_minutes),
        id=CLEANUP_JOB_ID,
        name="Expired refresh token cleanup",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )

    logger.info(
        "Scheduler configured",
        job_id=CLEANUP_JOB_ID,
        interval_minutes=interval_minutes,
    )

    return scheduler
