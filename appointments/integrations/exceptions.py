"""Error taxonomy for the calendar integration.

Each error carries the HTTP status and a stable ``code`` that the API
views hand back to the client.
"""

from rest_framework import status


class CalendarIntegrationError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "calendar_error"
    default_message = "Calendar integration failed."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    def as_response_data(self):
        return {"detail": str(self), "code": self.code}


class NotConnected(CalendarIntegrationError):
    """The user has no stored Google credential; they must (re)connect."""

    code = "not_connected"
    default_message = "Google Calendar not connected. Please connect your account first."


class RefreshFailed(CalendarIntegrationError):
    """The provider rejected the refresh grant; the user must reconnect."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "refresh_failed"
    default_message = "Failed to refresh Google token. Please reconnect your account."


class ProviderRequestFailed(CalendarIntegrationError):
    """A create-event or create-task call returned a non-success response."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "provider_request_failed"
    default_message = "Google API request failed."


class NothingToExport(CalendarIntegrationError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "nothing_to_export"
    default_message = "No appointments found to export"


__all__ = [
    "CalendarIntegrationError",
    "NotConnected",
    "RefreshFailed",
    "ProviderRequestFailed",
    "NothingToExport",
]
