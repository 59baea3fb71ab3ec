"""Keeps a user's stored Google credential usable for outbound API calls."""

from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from users.models import OAuthToken

from .exceptions import NotConnected, RefreshFailed
from .oauth import BaseOAuthClient, OAuthIntegrationError, get_oauth_client

logger = logging.getLogger(__name__)


def get_connected_token(user, provider: str = "google") -> OAuthToken:
    """Return the user's credential, raising ``NotConnected`` when there is none."""

    token = OAuthToken.objects.filter(user=user, provider=provider).first()
    if token is None or not token.is_connected:
        raise NotConnected()
    return token


def refresh_access_token(token: OAuthToken, *, client: Optional[BaseOAuthClient] = None, now=None) -> str:
    """Run the refresh grant for ``token`` and persist the result.

    The access token and its expiry are written in a single update, so a
    response without a usable ``expires_in`` is rejected. The refresh token
    only changes when Google sends a new one.
    """

    logger.info("Refreshing %s access token for user %s", token.provider, token.user_id)
    try:
        client = client or get_oauth_client(token.provider)
        payload = client.refresh_token(token.refresh_token)
    except OAuthIntegrationError as exc:
        logger.warning("Token refresh failed for user %s: %s", token.user_id, exc)
        raise RefreshFailed() from exc

    access_token = payload.get("access_token")
    if not access_token:
        raise RefreshFailed("Google did not return an access token.")

    try:
        expires_in = int(payload.get("expires_in"))
    except (TypeError, ValueError):
        raise RefreshFailed("Google did not return a valid token lifetime.")
    if expires_in <= 0:
        raise RefreshFailed("Google did not return a valid token lifetime.")

    with transaction.atomic():
        token.mark_refreshed(
            expires_in=expires_in,
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            scope=payload.get("scope"),
            token_type=payload.get("token_type"),
            now=now,
        )
    return access_token


def ensure_valid_access_token(
    user,
    provider: str = "google",
    *,
    client: Optional[BaseOAuthClient] = None,
    now=None,
) -> str:
    """Return an access token that stays valid for at least five more minutes.

    An expired (or nearly expired) token is exchanged through the refresh
    grant before it is returned. There is no retry: a rejected refresh
    surfaces as ``RefreshFailed``.
    """

    now = now or timezone.now()
    token = get_connected_token(user, provider)
    if not token.needs_refresh(now=now):
        return token.access_token
    return refresh_access_token(token, client=client, now=now)


__all__ = ["get_connected_token", "refresh_access_token", "ensure_valid_access_token"]
