"""Integration helpers for external calendar providers."""

from .calendar import CalendarService
from .converters import ExportOptions, appointment_to_event, appointment_to_task, build_title
from .exceptions import (
    CalendarIntegrationError,
    NothingToExport,
    NotConnected,
    ProviderRequestFailed,
    RefreshFailed,
)
from .oauth import (
    BaseOAuthClient,
    GoogleOAuthClient,
    OAuthIntegrationError,
    build_state_for_user,
    extract_expiry,
    get_oauth_client,
    resolve_state,
)
from .tokens import ensure_valid_access_token, get_connected_token, refresh_access_token

__all__ = [
    "CalendarService",
    "ExportOptions",
    "appointment_to_event",
    "appointment_to_task",
    "build_title",
    "CalendarIntegrationError",
    "NothingToExport",
    "NotConnected",
    "ProviderRequestFailed",
    "RefreshFailed",
    "BaseOAuthClient",
    "GoogleOAuthClient",
    "OAuthIntegrationError",
    "build_state_for_user",
    "extract_expiry",
    "get_oauth_client",
    "resolve_state",
    "ensure_valid_access_token",
    "get_connected_token",
    "refresh_access_token",
]
