"""Pure mappings from appointments to Google Calendar events and Google Tasks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict

EVENT_DURATION = timedelta(hours=1)
TASK_STATUS_COMPLETED = "completed"
TASK_STATUS_NEEDS_ACTION = "needsAction"


@dataclass(frozen=True)
class ExportOptions:
    export_as_task: bool = False
    include_amount: bool = True
    include_measure_unit: bool = True
    add_reminders: bool = True
    reminder_minutes: int = 30
    time_zone: str = "UTC"

    @classmethod
    def from_integration(cls, integration, time_zone: str = "UTC", **overrides) -> "ExportOptions":
        values = {
            "export_as_task": integration.export_as_task,
            "include_amount": integration.include_amount,
            "include_measure_unit": integration.include_measure_unit,
            "add_reminders": integration.add_reminders,
            "reminder_minutes": integration.reminder_minutes,
            "time_zone": time_zone,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


def _rfc3339(value: datetime) -> str:
    return value.astimezone(dt_timezone.utc).isoformat().replace("+00:00", "Z")


def build_title(details: str, amount, measure_unit: str, options: ExportOptions) -> str:
    if options.include_amount and options.include_measure_unit:
        return f"{details} ({amount} {measure_unit})"
    if options.include_amount:
        return f"{details} ({amount})"
    if options.include_measure_unit:
        return f"{details} ({measure_unit})"
    return details


def build_notes(appointment) -> str:
    plan = getattr(appointment, "plan", None)
    plan_name = getattr(plan, "name", None) or "Unknown"
    return f"Goal: {plan_name}\nAmount: {appointment.amount} {appointment.measure_unit}"


def appointment_to_event(appointment, options: ExportOptions) -> Dict[str, Any]:
    """Map ``appointment`` to a Google Calendar event body (one hour long)."""

    start = appointment.scheduled_for
    end = start + EVENT_DURATION
    event: Dict[str, Any] = {
        "summary": build_title(appointment.details, appointment.amount, appointment.measure_unit, options),
        "description": build_notes(appointment),
        "start": {"dateTime": _rfc3339(start), "timeZone": options.time_zone},
        "end": {"dateTime": _rfc3339(end), "timeZone": options.time_zone},
    }
    if options.add_reminders:
        event["reminders"] = {
            "useDefault": False,
            "overrides": [{"method": "popup", "minutes": options.reminder_minutes}],
        }
    return event


def appointment_to_task(appointment, options: ExportOptions) -> Dict[str, Any]:
    """Map ``appointment`` to a Google Tasks item. Tasks have no end time or reminders."""

    return {
        "title": build_title(appointment.details, appointment.amount, appointment.measure_unit, options),
        "notes": build_notes(appointment),
        "due": _rfc3339(appointment.scheduled_for),
        "status": TASK_STATUS_COMPLETED if appointment.completed else TASK_STATUS_NEEDS_ACTION,
    }


__all__ = [
    "ExportOptions",
    "build_title",
    "appointment_to_event",
    "appointment_to_task",
]
