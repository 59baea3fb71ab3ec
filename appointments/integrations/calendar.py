"""Thin client for the Google Calendar and Google Tasks REST APIs."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

from .exceptions import ProviderRequestFailed
from .tokens import ensure_valid_access_token

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_TASKS_API = "https://tasks.googleapis.com/tasks/v1"
REQUEST_TIMEOUT = 10


class CalendarService:
    """Creates events and tasks on behalf of a user.

    Every call first obtains a fresh access token, so a long export never
    sends an expired credential.
    """

    default_provider = "google"

    def __init__(self, provider: Optional[str] = None):
        self.provider = provider or self.default_provider
        self._task_list_ids: Dict[int, str] = {}

    # --- public API ---------------------------------------------------
    def create_event(self, user, event: Dict[str, Any]) -> Dict[str, Any]:
        access_token = ensure_valid_access_token(user, self.provider)
        return self._request(
            "post",
            f"{GOOGLE_CALENDAR_API}/calendars/primary/events",
            access_token,
            payload=event,
            action="create calendar event",
        )

    def create_task(self, user, task: Dict[str, Any]) -> Dict[str, Any]:
        access_token = ensure_valid_access_token(user, self.provider)
        task_list_id = self._default_task_list_id(user, access_token)
        return self._request(
            "post",
            f"{GOOGLE_TASKS_API}/lists/{task_list_id}/tasks",
            access_token,
            payload=task,
            action="create task",
        )

    # --- internal helpers ---------------------------------------------
    def _default_task_list_id(self, user, access_token: str) -> str:
        cached = self._task_list_ids.get(user.pk)
        if cached:
            return cached
        data = self._request(
            "get",
            f"{GOOGLE_TASKS_API}/users/@me/lists",
            access_token,
            action="fetch task lists",
        )
        items = data.get("items") or []
        if not items or not items[0].get("id"):
            raise ProviderRequestFailed("No task list found")
        self._task_list_ids[user.pk] = items[0]["id"]
        return items[0]["id"]

    def _request(
        self,
        method: str,
        url: str,
        access_token: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        action: str,
    ) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            if method == "post":
                response = requests.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
            else:
                response = requests.get(url, headers=headers, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            logger.warning("Google API unreachable while trying to %s: %s", action, exc)
            raise ProviderRequestFailed(f"Failed to {action}: {exc}") from exc

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}

        if not response.ok:
            logger.warning("Google API returned %s while trying to %s", response.status_code, action)
            raise ProviderRequestFailed(f"Failed to {action}: {json.dumps(data)}")
        return data


__all__ = ["CalendarService", "GOOGLE_CALENDAR_API", "GOOGLE_TASKS_API"]
