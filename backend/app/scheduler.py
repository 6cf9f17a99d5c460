"""APScheduler integration for periodic report refresh."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from app.database import SessionLocal
from app.exceptions import PersistenceError
from app.services.report_service import build_report_service

log = logging.getLogger(__name__)

JOB_ID = "report_refresh_job"

# Global scheduler instance
scheduler = AsyncIOScheduler()

# Guard against overlapping polls
_poll_running = False


async def scheduled_refresh_job():
    """Refresh every auto-refresh report whose next refresh time has passed."""
    global _poll_running

    if _poll_running:
        log.warning("Scheduled refresh skipped: previous poll still active")
        return

    _poll_running = True
    db = SessionLocal()
    try:
        service = build_report_service(db)
        stats = await service.refresh_due_reports()
        if any(stats.values()):
            log.info(f"Scheduled refresh completed: {stats}")
        else:
            log.debug("Scheduled refresh: no reports due")
    except PersistenceError as e:
        log.error(f"Scheduled refresh failed: {e}")
    except Exception as e:
        log.error(f"Scheduled refresh failed: {e}", exc_info=True)
    finally:
        _poll_running = False
        db.close()


def start_scheduler(poll_minutes: int = None):
    """Start the APScheduler with the due-report polling job."""
    poll_minutes = poll_minutes or settings.scheduler_poll_minutes
    scheduler.add_job(
        scheduled_refresh_job,
        trigger=IntervalTrigger(minutes=poll_minutes),
        id=JOB_ID,
        replace_existing=True,
    )
    if not scheduler.running:
        scheduler.start()
        log.info(f"APScheduler started: polling for due reports every {poll_minutes} minutes")


def shutdown_scheduler():
    """Shutdown the APScheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        log.info("APScheduler shut down successfully")
