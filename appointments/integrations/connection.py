"""Connect and disconnect a user's Google account."""

from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction

from appointments.models import CalendarIntegration
from notifications.models import Notification
from notifications.utils import send_notification
from users.models import OAuthToken

from .oauth import BaseOAuthClient, OAuthIntegrationError, extract_expiry, get_oauth_client, resolve_state

logger = logging.getLogger(__name__)


def _token_defaults(client: BaseOAuthClient, payload) -> dict:
    if not payload.get("access_token"):
        raise OAuthIntegrationError("OAuth response has no access_token.", code="token_exchange")
    if not payload.get("refresh_token"):
        raise OAuthIntegrationError("OAuth response has no refresh_token.", code="token_exchange")
    return {
        "access_token": payload["access_token"],
        "refresh_token": payload["refresh_token"],
        "scope": payload.get("scope") or " ".join(client.scope),
        "token_type": payload.get("token_type", "Bearer"),
        "expires_at": extract_expiry(payload),
    }


def complete_authorization(
    provider: str,
    *,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str] = None,
    client: Optional[BaseOAuthClient] = None,
) -> OAuthToken:
    """Handle the provider's redirect back to us.

    Any failure raises ``OAuthIntegrationError`` and leaves the stored
    credential untouched. A provider-reported ``error`` wins over a code.
    """

    if error:
        logger.warning("Google OAuth returned an error: %s", error)
        raise OAuthIntegrationError(f"Authorization was not granted: {error}", code=error)
    if not code or not state:
        raise OAuthIntegrationError("Required parameters were not provided.", code="missing_params")

    user = resolve_state(state, provider)
    client = client or get_oauth_client(provider)
    defaults = _token_defaults(client, client.exchange_code(code))

    with transaction.atomic():
        token, _ = OAuthToken.objects.update_or_create(user=user, provider=provider, defaults=defaults)
        CalendarIntegration.objects.get_or_create(user=user)

    send_notification(
        user,
        title="Google Calendar Connected",
        message="Your Google Calendar has been successfully connected. You can now export your appointments.",
        type=Notification.Type.CALENDAR_CONNECTED,
    )
    logger.info("User %s connected %s", user.pk, provider)
    return token


def disconnect_account(user, provider: str = "google") -> bool:
    """Null the stored credential. Returns ``False`` when nothing was connected."""

    token = OAuthToken.objects.filter(user=user, provider=provider).first()
    was_connected = bool(token and token.is_connected)
    if token:
        token.disconnect()

    send_notification(
        user,
        title="Google Calendar Disconnected",
        message="Your Google Calendar has been disconnected from the app.",
        type=Notification.Type.CALENDAR_DISCONNECTED,
    )
    logger.info("User %s disconnected %s", user.pk, provider)
    return was_connected


__all__ = ["complete_authorization", "disconnect_account"]
