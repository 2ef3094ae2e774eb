"""
Scheduled tasks for the inventory sync service.
Jobs run inside the FastAPI process on an AsyncIOScheduler.
"""

import logging
from datetime import timedelta
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from inventory_sync.core.config import Settings
from inventory_sync.core.enums import SyncFrequency
from inventory_sync.core.utils import utc_now
from inventory_sync.integrations.base import FlushCallback, FlushScheduler
from inventory_sync.integrations.setup import SyncComponents

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None

FLUSH_JOB_ID = "flush_notifications"


class ApschedulerFlushScheduler(FlushScheduler):
    """Runs the notification queue flush as a one-shot scheduler job."""

    def __init__(self, scheduler: AsyncIOScheduler):
        self.scheduler = scheduler

    def schedule(self, delay_seconds: float, callback: FlushCallback) -> None:
        run_date = utc_now() + timedelta(seconds=delay_seconds)
        self.scheduler.add_job(
            callback,
            DateTrigger(run_date=run_date),
            id=FLUSH_JOB_ID,
            name="Flush Notification Queue",
            replace_existing=True,
            max_instances=1
        )


def sync_trigger(frequency: SyncFrequency) -> CronTrigger:
    if SyncFrequency(frequency) is SyncFrequency.DAILY:
        return CronTrigger(hour=3, minute=0)
    return CronTrigger(minute=0)


def job_listener(event):
    """Log the outcome of every scheduled run."""
    if event.code == EVENT_JOB_MISSED:
        logger.warning(f"Scheduled job {event.job_id} missed its run time {event.scheduled_run_time}")
    elif event.exception:
        logger.error(f"Scheduled job {event.job_id} failed: {event.exception}")
    else:
        logger.info(f"Scheduled job {event.job_id} finished")


def create_scheduler() -> AsyncIOScheduler:
    """Create the scheduler without any jobs; register_jobs() adds them."""
    global scheduler

    if scheduler is not None:
        return scheduler

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED)
    return scheduler


def register_jobs(sched: AsyncIOScheduler, components: SyncComponents, settings: Settings) -> None:
    if not settings.SYNC_SCHEDULE_ENABLED:
        logger.info("Scheduled sync is disabled. Set SYNC_SCHEDULE_ENABLED=true to enable")
        return

    sched.add_job(
        components.run_sync_all,
        sync_trigger(settings.SYNC_FREQUENCY),
        id="sync_stock",
        name="Sync Stock From Zoho",
        replace_existing=True,
        max_instances=1,  # Only one sync at a time
        misfire_grace_time=3600
    )
    logger.info(f"Scheduled stock sync job added ({settings.SYNC_FREQUENCY.value})")

    sched.add_job(
        components.run_log_cleanup,
        CronTrigger(hour=2, minute=0),
        id="cleanup_logs",
        name="Cleanup Stock Change Log",
        replace_existing=True,
        max_instances=1
    )
    logger.info("Scheduled cleanup job added for 2:00 AM daily")


def _describe(job) -> dict:
    # Jobs added before the scheduler starts have no next_run_time yet
    next_run = getattr(job, "next_run_time", None)
    return {
        "id": job.id,
        "name": job.name,
        "trigger": str(job.trigger),
        "next_run": next_run.isoformat() if next_run else None,
    }


async def start_scheduler():
    """Start the process-wide scheduler if it is not already running."""
    sched = scheduler or create_scheduler()
    if sched.running:
        return

    sched.start()
    jobs = sched.get_jobs()
    logger.info(f"Scheduler started with {len(jobs)} job(s)")
    for job in jobs:
        logger.info(f"  {job.id}: next run {job.next_run_time}")


async def stop_scheduler():
    """Shut the scheduler down, waiting for running jobs, and forget it."""
    global scheduler

    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")
    scheduler = None


async def get_scheduler_status():
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs = [_describe(job) for job in scheduler.get_jobs()]
    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": [job for job in jobs if job["id"] != FLUSH_JOB_ID],
        "notification_flush_pending": any(job["id"] == FLUSH_JOB_ID for job in jobs),
    }
