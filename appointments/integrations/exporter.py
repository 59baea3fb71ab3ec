"""Export a batch of appointments to Google Calendar or Google Tasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from django.utils import timezone

from appointments.models import Appointment, CalendarIntegration
from notifications.models import Notification
from notifications.utils import send_notification

from .calendar import CalendarService
from .converters import ExportOptions, appointment_to_event, appointment_to_task
from .exceptions import NotConnected, NothingToExport, ProviderRequestFailed, RefreshFailed
from .tokens import ensure_valid_access_token, get_connected_token

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    appointment_id: int
    success: bool
    type: str
    external_id: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        data = {"appointment_id": self.appointment_id, "success": self.success, "type": self.type}
        if self.success:
            data["external_id"] = self.external_id
        else:
            data["error"] = self.error
        return data


@dataclass
class ExportSummary:
    results: List[ExportResult] = field(default_factory=list)
    message: str = ""

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded


def _export_one(appointment, options: ExportOptions, service: CalendarService, user) -> ExportResult:
    item_type = "task" if options.export_as_task else "event"
    try:
        if options.export_as_task:
            created = service.create_task(user, appointment_to_task(appointment, options))
        else:
            created = service.create_event(user, appointment_to_event(appointment, options))
    except ProviderRequestFailed as exc:
        logger.error("Error exporting appointment %s: %s", appointment.pk, exc)
        return ExportResult(appointment_id=appointment.pk, success=False, type=item_type, error=str(exc))
    return ExportResult(appointment_id=appointment.pk, success=True, type=item_type, external_id=created.get("id"))


def export_appointments(
    user,
    appointment_ids: Iterable[int],
    options: ExportOptions,
    *,
    service: Optional[CalendarService] = None,
) -> ExportSummary:
    """Export the user's appointments and report a result per item.

    Raises ``NotConnected`` before any network call when the user has no
    credential, ``NothingToExport`` when none of the ids belong to them and
    ``RefreshFailed`` when the credential cannot be refreshed up front.
    Items are attempted one after another and a provider failure is recorded
    before the loop moves on. Losing the credential part way through marks
    that item and every remaining one as failed.
    Repeating a call creates duplicates on Google's side.
    """

    token = get_connected_token(user)

    appointments = list(
        Appointment.objects.filter(user=user, pk__in=list(appointment_ids))
        .select_related("plan")
        .order_by("scheduled_for")
    )
    if not appointments:
        raise NothingToExport()

    service = service or CalendarService()
    ensure_valid_access_token(user, token.provider)

    item_type = "task" if options.export_as_task else "event"
    summary = ExportSummary()
    for index, appointment in enumerate(appointments):
        try:
            summary.results.append(_export_one(appointment, options, service, user))
        except (NotConnected, RefreshFailed) as exc:
            logger.error("User %s lost the Google credential during export: %s", user.pk, exc)
            summary.results.extend(
                ExportResult(appointment_id=remaining.pk, success=False, type=item_type, error=str(exc))
                for remaining in appointments[index:]
            )
            break

    integration, _ = CalendarIntegration.objects.get_or_create(user=user)
    integration.touch_synced(timezone.now())

    target = "Tasks" if options.export_as_task else "Calendar"
    send_notification(
        user,
        title="Calendar Export Complete",
        message=f"Successfully exported {summary.succeeded} of {summary.total} appointments to Google {target}.",
        type=Notification.Type.CALENDAR_EXPORT,
    )
    summary.message = f"Exported {summary.succeeded} of {summary.total} appointments"
    logger.info("User %s export finished: %s", user.pk, summary.message)
    return summary


__all__ = ["ExportResult", "ExportSummary", "export_appointments"]
