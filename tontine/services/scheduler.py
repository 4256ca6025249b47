"""Background scheduler for automatic payment reminders."""

import logging
from datetime import datetime
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from tontine.core.config import settings
from tontine.db.base import SessionLocal
from tontine.models.cycle import Cycle, CycleStatus
from tontine.services.cycle import remind_pending_members, to_naive_utc

logger = logging.getLogger(__name__)

scheduler: AsyncIOScheduler | None = None


def send_due_reminders(db, now: Optional[datetime] = None) -> List[dict]:
    """Send the first and second reminder of every active cycle once their date has passed.

    Returns a list of dicts describing each reminder round sent.
    """
    now = to_naive_utc(now) or datetime.utcnow()
    active_cycles = db.query(Cycle).filter(Cycle.status == CycleStatus.ACTIVE).all()

    sent: List[dict] = []
    for cycle in active_cycles:
        for date_attr, sent_attr, label in (
            ("first_reminder_date", "first_reminder_sent_at", "first"),
            ("second_reminder_date", "second_reminder_sent_at", "second"),
        ):
            due = getattr(cycle, date_attr)
            if due is None or due > now or getattr(cycle, sent_attr) is not None:
                continue
            count = remind_pending_members(db, cycle)
            setattr(cycle, sent_attr, now)
            sent.append({
                "cycle_id": cycle.id,
                "group_id": cycle.group_id,
                "reminder": label,
                "members": count,
            })
            # The second date may also have passed; one round per run is enough
            break

    if sent:
        db.commit()
        logger.info("Scheduler sent %d reminder round(s)", len(sent))
    return sent


def run_scheduled_tasks() -> None:
    """Execute the reminder job in its own session."""
    db = SessionLocal()
    try:
        send_due_reminders(db)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error in scheduled tasks")
    finally:
        db.close()


def start_scheduler() -> None:
    """Create and start the background scheduler."""
    global scheduler
    interval = settings.SCHEDULER_INTERVAL_MINUTES

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_scheduled_tasks,
        trigger=IntervalTrigger(minutes=interval),
        id="send_due_reminders",
        name="Send payment reminders for active cycles",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Background scheduler started with interval=%d minutes", interval)


def stop_scheduler() -> None:
    """Shut down the background scheduler gracefully."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
        scheduler = None


def get_scheduler_status() -> dict:
    """Return current scheduler state for the status API."""
    if not scheduler or not scheduler.running:
        return {"running": False, "interval_minutes": None, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        })

    return {
        "running": True,
        "interval_minutes": settings.SCHEDULER_INTERVAL_MINUTES,
        "jobs": jobs,
    }
