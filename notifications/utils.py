"""Helpers for creating notifications and pushing them to connected clients."""

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from .models import Notification
from .serializers import NotificationSerializer

logger = logging.getLogger(__name__)


def notification_group_name(user_id) -> str:
    return f"notifications_{user_id}"


def push_notification(notification: Notification) -> bool:
    """Send ``notification`` to the owner's websocket group.

    Returns ``False`` when no channel layer is configured or the push fails;
    the stored notification is unaffected either way.
    """

    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False
    try:
        async_to_sync(channel_layer.group_send)(
            notification_group_name(notification.user_id),
            {
                "type": "send_notification",
                "message": NotificationSerializer(notification).data,
            },
        )
    except Exception as exc:
        logger.warning("WebSocket push failed for notification %s: %s", notification.pk, exc)
        return False
    return True


def send_notification(
    user,
    title: str,
    message: str,
    *,
    type: str = Notification.Type.GENERAL,
    link: str | None = None,
) -> Notification:
    """Create a notification entry for ``user`` and push it live."""

    notification = Notification.objects.create(
        user=user,
        title=title,
        message=message,
        type=type,
        link=link,
    )
    push_notification(notification)
    return notification
