"""Utility services for the appointments app."""

from .reminders import dispatch_activity_reminders, send_reminder

__all__ = [
    "dispatch_activity_reminders",
    "send_reminder",
]
