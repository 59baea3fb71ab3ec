"""Service helpers for sending activity reminders."""

import logging
import os
from datetime import timedelta
from typing import Any, Dict, Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from appointments.models import Appointment
from notifications.models import Notification
from notifications.utils import send_notification

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=1)


def _resolve_default_window() -> timedelta:
    """Determine the default reminder window from settings or the environment."""

    configured = getattr(settings, "ACTIVITY_REMINDER_WINDOW", None)
    if isinstance(configured, timedelta):
        return configured
    if configured not in (None, ""):
        try:
            return timedelta(minutes=float(configured))
        except (TypeError, ValueError):
            logger.warning(
                "Invalid ACTIVITY_REMINDER_WINDOW %r in settings; using fallback.",
                configured,
            )

    env_value = os.getenv("ACTIVITY_REMINDER_WINDOW")
    if env_value not in (None, ""):
        try:
            return timedelta(minutes=float(env_value))
        except (TypeError, ValueError):
            logger.warning(
                "Invalid ACTIVITY_REMINDER_WINDOW %r in environment; using fallback.",
                env_value,
            )

    return DEFAULT_WINDOW


def _format_start_time(appointment: Appointment) -> str:
    return timezone.localtime(appointment.scheduled_for).strftime("%Y-%m-%d %H:%M")


def _get_upcoming_appointments(*, window: timedelta) -> Iterable[Appointment]:
    now = timezone.now()
    return (
        Appointment.objects.filter(
            completed=False,
            is_reminder_sent=False,
            scheduled_for__gte=now,
            scheduled_for__lte=now + window,
        )
        .select_related("user", "plan")
        .order_by("scheduled_for")
    )


def send_reminder(appointment: Appointment) -> Notification:
    amount = f"{appointment.amount} {appointment.measure_unit}".strip()
    return send_notification(
        appointment.user,
        title="Upcoming activity",
        message=(
            f"{appointment.details} ({amount}) from your {appointment.plan.name} plan "
            f"starts at {_format_start_time(appointment)}."
        ),
        type=Notification.Type.ACTIVITY_REMINDER,
    )


def dispatch_activity_reminders(*, window: Optional[timedelta] = None) -> Dict[str, Any]:
    """Notify owners of unfinished activities starting within ``window``.

    Each appointment is reminded at most once; ``is_reminder_sent`` is set
    after its notification is stored.
    """

    if window is None:
        window = _resolve_default_window()

    summary = {"processed_appointments": 0, "failed": 0, "errors": [], "window": window}

    for appointment in list(_get_upcoming_appointments(window=window)):
        try:
            send_reminder(appointment)
        except Exception as exc:
            summary["failed"] += 1
            summary["errors"].append({"appointment_id": appointment.id, "error": str(exc)})
            logger.exception("Failed to send reminder for appointment %s", appointment.id)
            continue

        with transaction.atomic():
            appointment.is_reminder_sent = True
            appointment.save(update_fields=["is_reminder_sent"])

        logger.info("Sent reminder for appointment %s to user %s", appointment.id, appointment.user_id)
        summary["processed_appointments"] += 1

    return summary


__all__ = ["dispatch_activity_reminders", "send_reminder"]
