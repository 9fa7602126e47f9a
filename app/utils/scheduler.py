"""
Scheduler Service
Runs housekeeping jobs in the background using APScheduler
"""
import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

RATE_LIMIT_CLEANUP_JOB_ID = "rate_limit_cleanup"

# Scheduler instance (exported for the status endpoint)
scheduler: Optional[BackgroundScheduler] = None


def rate_limit_cleanup_job(rate_limiter: RateLimiter) -> int:
    """Drop rate-limit windows that have already expired"""
    purged = rate_limiter.purge_expired()
    if purged:
        logger.info(f"Purged {purged} expired rate-limit entries, {len(rate_limiter)} still tracked")
    return purged


def start_scheduler(rate_limiter: RateLimiter, cleanup_interval_seconds: int):
    """Start the background scheduler with the rate-limit cleanup job"""
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler is already running")
        return

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        rate_limit_cleanup_job,
        args=[rate_limiter],
        trigger=IntervalTrigger(seconds=cleanup_interval_seconds),
        id=RATE_LIMIT_CLEANUP_JOB_ID,
        name="Rate Limit Cleanup",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Scheduler started, rate-limit cleanup every {cleanup_interval_seconds}s")


def stop_scheduler():
    """Stop the background scheduler"""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Scheduler stopped")


def get_scheduler_status():
    """Get current scheduler status"""
    if scheduler is None:
        return {"running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": str(job.next_run_time) if job.next_run_time else None
        })

    return {
        "running": scheduler.running,
        "jobs": jobs
    }
