"""
Notification Background Jobs

Scheduled tasks:
1. Class reminders - every 10 minutes, teachers whose class starts within
   the next 10 minutes get an in-app "Class Starting Soon" notification

Design Principles:
- Jobs handle their own database sessions
- Jobs log all operations for auditing
- Jobs can also be triggered manually via the debug endpoints
"""

import logging
from datetime import datetime
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from portal.core.database import async_session_maker
from portal.core.scheduler import register_job
from portal.modules.notifications.service import create_class_reminders

logger = logging.getLogger(__name__)

# Job IDs for registration and manual triggering
JOB_ID_CLASS_REMINDERS = "notifications_send_class_reminders"

CLASS_REMINDER_INTERVAL_MINUTES = 10


async def send_class_reminders(now: datetime | None = None) -> dict[str, Any]:
    """
    Write class reminders for classes starting in the next 10 minutes.

    Args:
        now: Reference time (defaults to the current school-local time)

    Returns:
        Dict with notifications_sent, checked_time and target_time
    """
    logger.info("Starting job: send_class_reminders")

    async with async_session_maker() as db:
        result = await create_class_reminders(db, now)

    logger.info(
        f"Job send_class_reminders complete: {result.notifications_sent} reminders "
        f"for {result.checked_time}-{result.target_time}"
    )
    return result.model_dump()


def register_notification_jobs() -> None:
    """
    Register notification background jobs with the scheduler.

    Called during application startup.
    """
    register_job(
        job_id=JOB_ID_CLASS_REMINDERS,
        func=send_class_reminders,
        trigger=IntervalTrigger(minutes=CLASS_REMINDER_INTERVAL_MINUTES),
    )
    logger.info(
        f"Registered job: {JOB_ID_CLASS_REMINDERS} "
        f"(interval: {CLASS_REMINDER_INTERVAL_MINUTES} minutes)"
    )
