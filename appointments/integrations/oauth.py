"""OAuth helpers for calendar integrations."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, Optional
from urllib.parse import urlencode

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core import signing
from django.core.cache import cache
from django.utils import timezone
from django.utils.crypto import get_random_string

logger = logging.getLogger(__name__)


class OAuthIntegrationError(Exception):
    """Raised when an OAuth operation fails."""

    def __init__(self, message: str, code: str = "oauth_error", status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


STATE_SALT = "appointments.calendar.oauth"
STATE_CACHE_PREFIX = "calendar-oauth-state"
DEFAULT_REDIRECT_URI = "http://localhost:8000/appointments/calendar/oauth/google/callback/"
REQUEST_TIMEOUT = 10


def _state_ttl() -> int:
    return int(getattr(settings, "CALENDAR_OAUTH_STATE_TTL", 300))


class BaseOAuthClient:
    authorization_base_url: str
    token_url: str
    scope: tuple[str, ...]

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    def build_authorization_url(self, state: str) -> str:
        raise NotImplementedError

    def exchange_code(self, code: str) -> Dict[str, str]:
        raise NotImplementedError

    def refresh_token(self, refresh_token: str) -> Dict[str, str]:
        raise NotImplementedError


class GoogleOAuthClient(BaseOAuthClient):
    authorization_base_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    scope = (
        "https://www.googleapis.com/auth/calendar",
        "https://www.googleapis.com/auth/tasks",
        "profile",
        "email",
    )

    def build_authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scope),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{self.authorization_base_url}?{urlencode(params)}"

    def exchange_code(self, code: str) -> Dict[str, str]:
        data = {
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        return self._request_token(data, failure_code="token_exchange")

    def refresh_token(self, refresh_token: str) -> Dict[str, str]:
        data = {
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "refresh_token",
        }
        return self._request_token(data, failure_code="refresh_failed")

    def _request_token(self, data: Dict[str, str], failure_code: str) -> Dict[str, str]:
        try:
            response = requests.post(self.token_url, data=data, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            logger.warning("OAuth token endpoint unreachable: %s", exc)
            raise OAuthIntegrationError(
                "Could not reach the Google OAuth service.", code=failure_code
            ) from exc
        try:
            payload = response.json() if response.content else {}
        except ValueError as exc:
            raise OAuthIntegrationError(
                "Invalid OAuth response.", code=failure_code, status_code=response.status_code
            ) from exc
        if response.status_code != 200:
            description = payload.get("error_description") or payload.get("error") or "OAuth exchange failed"
            logger.warning("OAuth %s failed with status %s: %s", data["grant_type"], response.status_code, description)
            raise OAuthIntegrationError(description, code=failure_code, status_code=response.status_code)
        return payload


def get_oauth_client(provider: str) -> BaseOAuthClient:
    provider = provider.lower()
    if provider != "google":
        raise OAuthIntegrationError(f"Unknown OAuth provider: {provider}", code="unknown_provider")

    client_id = getattr(settings, "GOOGLE_OAUTH_CLIENT_ID", "")
    client_secret = getattr(settings, "GOOGLE_OAUTH_CLIENT_SECRET", "")
    redirect_uri = getattr(settings, "GOOGLE_OAUTH_REDIRECT_URI", "") or DEFAULT_REDIRECT_URI

    if not client_id or not client_secret:
        raise OAuthIntegrationError("Google OAuth credentials are not configured.", code="not_configured")

    return GoogleOAuthClient(client_id=client_id, client_secret=client_secret, redirect_uri=redirect_uri)


def _state_cache_key(nonce: str) -> str:
    return f"{STATE_CACHE_PREFIX}:{nonce}"


def build_state_for_user(user, provider: str) -> str:
    """Issue a signed ``state`` bound to a pending authorization request.

    The nonce is remembered server side so a state can be redeemed once.
    """

    nonce = get_random_string(32)
    payload = {
        "user_id": user.pk,
        "provider": provider,
        "nonce": nonce,
        "issued_at": timezone.now().timestamp(),
    }
    cache.set(_state_cache_key(nonce), user.pk, timeout=_state_ttl())
    return signing.dumps(payload, salt=STATE_SALT)


def resolve_state(state: str, provider: str):
    """Verify ``state`` and return the user who started the authorization."""

    try:
        payload = signing.loads(state, salt=STATE_SALT, max_age=_state_ttl())
    except signing.BadSignature as exc:
        raise OAuthIntegrationError("The state parameter is invalid or has expired.", code="invalid_state") from exc

    if payload.get("provider") != provider:
        raise OAuthIntegrationError("OAuth provider does not match the state.", code="invalid_state")

    user_id = payload.get("user_id")
    cache_key = _state_cache_key(payload.get("nonce", ""))
    if cache.get(cache_key) != user_id:
        raise OAuthIntegrationError("The state parameter was already used.", code="invalid_state")
    cache.delete(cache_key)

    User = get_user_model()
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist as exc:
        raise OAuthIntegrationError("User for this state was not found.", code="invalid_state") from exc


def extract_expiry(token_payload: Dict[str, str], now=None):
    expires_in = token_payload.get("expires_in")
    if expires_in is None:
        return None
    try:
        expires_in = int(expires_in)
    except (TypeError, ValueError):
        return None
    return (now or timezone.now()) + timedelta(seconds=expires_in)


__all__ = [
    "OAuthIntegrationError",
    "BaseOAuthClient",
    "GoogleOAuthClient",
    "get_oauth_client",
    "build_state_for_user",
    "resolve_state",
    "extract_expiry",
]
