"""Celery tasks for the appointments app."""

from datetime import timedelta
from typing import Optional

from celery import shared_task

from appointments.services import dispatch_activity_reminders


@shared_task(name="appointments.tasks.send_activity_reminders_task")
def send_activity_reminders_task(window_minutes: Optional[float] = None):
    """Schedule-friendly wrapper around ``dispatch_activity_reminders``."""

    window = None
    if window_minutes is not None:
        window = timedelta(minutes=float(window_minutes))
    summary = dispatch_activity_reminders(window=window)
    # timedelta is not JSON serializable for the result backend
    summary["window"] = summary["window"].total_seconds() / 60
    return summary


__all__ = ["send_activity_reminders_task"]
