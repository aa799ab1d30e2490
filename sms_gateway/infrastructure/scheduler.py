"""
APScheduler setup for periodic maintenance jobs.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.triggers.interval import IntervalTrigger

from sms_gateway.config.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

RETENTION_JOB_ID = "purge_expired_messages"

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global scheduler

    if scheduler is None:
        jobstores = {
            'default': SQLAlchemyJobStore(url=settings.jobstore_url)
        }

        scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            timezone=settings.timezone
        )

    return scheduler


async def start_scheduler() -> None:
    """Start the scheduler and register the retention job."""
    sched = get_scheduler()
    if not sched.running:
        sched.start()
        logger.info("Scheduler started")

    sched.add_job(
        purge_expired_messages,
        trigger=IntervalTrigger(hours=settings.retention_interval_hours),
        id=RETENTION_JOB_ID,
        replace_existing=True,
        kwargs={'days': settings.message_retention_days}
    )
    logger.info(
        f"Scheduled {RETENTION_JOB_ID} every {settings.retention_interval_hours}h "
        f"(retention {settings.message_retention_days} days)"
    )


async def stop_scheduler() -> None:
    """Stop the scheduler gracefully."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")


async def purge_expired_messages(days: int) -> int:
    """
    Delete stored SMS messages past the retention period.

    This function is called by the scheduler.

    Args:
        days: Number of days to retain messages

    Returns:
        Number of messages deleted
    """
    from sms_gateway.infrastructure.database import DatabaseSession
    from sms_gateway.infrastructure.sms_repository import SqlAlchemySmsRepository

    try:
        async with DatabaseSession() as session:
            deleted = await SqlAlchemySmsRepository(session).delete_older_than(days)
    except Exception as e:
        logger.exception(f"Error purging expired messages: {e}")
        return 0

    logger.info(f"Purged {deleted} SMS messages older than {days} days")
    return deleted
