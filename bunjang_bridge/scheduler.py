"""
Scheduled tasks for the bridge.

Cron triggers do not run the syncs themselves; they enqueue jobs so that the
work goes through the same worker, retries and locking as webhook traffic.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from bunjang_bridge.core.config import Settings
from bunjang_bridge.core.enums import JobType
from bunjang_bridge.core.utils import utcnow
from bunjang_bridge.services.job_queue import enqueue_job, purge_finished_jobs

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


async def enqueue_status_sync_task(
    settings: Settings,
    session_factory: Callable[[], AsyncSession],
    window_hours: int,
):
    """Queue a status sync covering the last ``window_hours``."""
    end = utcnow()
    start = end - timedelta(hours=window_hours)
    try:
        async with session_factory() as db:
            job = await enqueue_job(
                db,
                job_type=JobType.SYNC_ORDER_STATUSES,
                payload={"start": start.isoformat(), "end": end.isoformat()},
                max_attempts=settings.JOB_MAX_ATTEMPTS,
            )
            await db.commit()
        logger.info(f"Queued scheduled status sync job {job.id} ({window_hours}h window)")
    except Exception as e:
        logger.exception(f"Error queueing scheduled status sync: {str(e)}")


async def enqueue_full_inventory_sync_task(settings: Settings, session_factory: Callable[[], AsyncSession]):
    try:
        async with session_factory() as db:
            job = await enqueue_job(
                db,
                job_type=JobType.FULL_INVENTORY_SYNC,
                payload={"cap": settings.FULL_SYNC_PRODUCT_CAP},
                max_attempts=settings.JOB_MAX_ATTEMPTS,
            )
            await db.commit()
        logger.info(f"Queued scheduled full inventory sync job {job.id}")
    except Exception as e:
        logger.exception(f"Error queueing full inventory sync: {str(e)}")


async def cleanup_old_jobs_task(settings: Settings, session_factory: Callable[[], AsyncSession]):
    """Delete finished jobs past the retention window"""
    try:
        async with session_factory() as db:
            deleted = await purge_finished_jobs(db, utcnow() - timedelta(days=settings.JOB_RETENTION_DAYS))
            await db.commit()
        logger.info(f"Job cleanup completed: {deleted} finished jobs deleted")
    except Exception as e:
        logger.exception(f"Error in job cleanup task: {str(e)}")


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Scheduled job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Scheduled job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler(settings: Settings, session_factory: Callable[[], AsyncSession]) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    scheduler = AsyncIOScheduler(timezone=settings.CRON_TIMEZONE)
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    def cron(expression: str) -> CronTrigger:
        return CronTrigger.from_crontab(expression, timezone=settings.CRON_TIMEZONE)

    scheduler.add_job(
        enqueue_status_sync_task,
        cron(settings.ORDER_STATUS_SYNC_HOURLY_CRON),
        args=[settings, session_factory, 2],
        id="order_status_sync_hourly",
        name="Order Status Sync (hourly)",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=600
    )
    scheduler.add_job(
        enqueue_status_sync_task,
        cron(settings.ORDER_STATUS_SYNC_DAILY_CRON),
        args=[settings, session_factory, 24],
        id="order_status_sync_daily",
        name="Order Status Sync (daily)",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600
    )
    if settings.ORDER_STATUS_SYNC_FREQUENT_ENABLED:
        scheduler.add_job(
            enqueue_status_sync_task,
            cron(settings.ORDER_STATUS_SYNC_FREQUENT_CRON),
            args=[settings, session_factory, 1],
            id="order_status_sync_frequent",
            name="Order Status Sync (frequent)",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=300
        )
    scheduler.add_job(
        enqueue_full_inventory_sync_task,
        cron(settings.INVENTORY_FULL_SYNC_CRON),
        args=[settings, session_factory],
        id="inventory_full_sync",
        name="Full Inventory Sync",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600
    )
    scheduler.add_job(
        cleanup_old_jobs_task,
        CronTrigger(hour=3, minute=0, timezone=settings.CRON_TIMEZONE),
        args=[settings, session_factory],
        id="cleanup_jobs",
        name="Cleanup Finished Jobs",
        replace_existing=True,
        max_instances=1
    )
    return scheduler


async def start_scheduler(settings: Settings, session_factory: Callable[[], AsyncSession]):
    """Start the scheduler"""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler(settings, session_factory)

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started successfully")
        for job in scheduler.get_jobs():
            logger.info(f"  - {job.name}: {job.trigger}")


async def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped successfully")
    scheduler = None


def get_scheduler_status():
    """Get current scheduler status and job information"""
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs_info = []
    for job in scheduler.get_jobs():
        # Pending jobs have no next_run_time until the scheduler starts
        next_run = getattr(job, "next_run_time", None)
        jobs_info.append({
            "id": job.id,
            "name": job.name,
            "next_run": next_run.isoformat() if next_run else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs_info
    }
