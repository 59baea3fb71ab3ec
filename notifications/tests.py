from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import TestCase, TransactionTestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from notifications.consumers import NotificationConsumer
from notifications.models import Notification
from notifications.utils import notification_group_name, push_notification, send_notification
from users.models import User


class SendNotificationTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="owner@example.com", password="StrongPass123!")

    @patch("notifications.utils.get_channel_layer")
    def test_send_notification_persists_and_pushes(self, mock_get_layer):
        layer = Mock()
        layer.group_send = AsyncMock()
        mock_get_layer.return_value = layer

        notification = send_notification(
            self.user,
            "Plan ready",
            "Your plan is ready to go.",
            type=Notification.Type.PLAN_CREATED,
        )

        self.assertEqual(notification.status, Notification.Status.UNREAD)
        self.assertEqual(Notification.objects.filter(user=self.user).count(), 1)
        group, event = layer.group_send.call_args.args
        self.assertEqual(group, notification_group_name(self.user.id))
        self.assertEqual(event["type"], "send_notification")
        self.assertEqual(event["message"]["title"], "Plan ready")

    @patch("notifications.utils.get_channel_layer")
    def test_push_failure_does_not_fail_caller(self, mock_get_layer):
        layer = Mock()
        layer.group_send = AsyncMock(side_effect=RuntimeError("redis down"))
        mock_get_layer.return_value = layer

        with self.assertLogs("notifications.utils", level="WARNING"):
            notification = send_notification(self.user, "Plan ready", "Your plan is ready to go.")

        self.assertTrue(Notification.objects.filter(pk=notification.pk).exists())
        self.assertFalse(push_notification(notification))

    @patch("notifications.utils.get_channel_layer", return_value=None)
    def test_push_without_channel_layer(self, mock_get_layer):
        notification = send_notification(self.user, "Plan ready", "Your plan is ready to go.")
        self.assertFalse(push_notification(notification))

    def test_set_read(self):
        notification = send_notification(self.user, "Plan ready", "Your plan is ready to go.")

        notification.set_read()
        self.assertTrue(notification.is_read)
        notification.set_read(False)
        notification.refresh_from_db()
        self.assertEqual(notification.status, Notification.Status.UNREAD)


class NotificationApiTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="owner@example.com", password="StrongPass123!")
        self.stranger = User.objects.create_user(email="stranger@example.com", password="StrongPass123!")
        self.client.force_authenticate(user=self.user)
        self.own = Notification.objects.create(user=self.user, title="Hello", message="Welcome aboard!")
        self.foreign = Notification.objects.create(user=self.stranger, title="Hello", message="Not for you.")

    def test_list_only_own(self):
        Notification.objects.create(
            user=self.user, title="Done", message="Already seen it.", status=Notification.Status.READ
        )

        response = self.client.get(reverse("notifications:notifications-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

        unread = self.client.get(reverse("notifications:notifications-list"), {"status": "unread"})
        self.assertEqual([item["id"] for item in unread.data], [self.own.pk])
        self.assertFalse(unread.data[0]["read"])

    @patch("notifications.views.push_notification")
    def test_create_pushes(self, mock_push):
        response = self.client.post(
            reverse("notifications:notifications-create"),
            {"title": "Note", "message": "Remember to stretch."},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        created = Notification.objects.get(pk=response.data["id"])
        self.assertEqual(created.user, self.user)
        mock_push.assert_called_once_with(created)

    def test_create_validates_lengths(self):
        response = self.client.post(
            reverse("notifications:notifications-create"),
            {"title": "N", "message": "Hi"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("title", response.data)
        self.assertIn("message", response.data)

    def test_mark_read_defaults_to_true_and_can_unset(self):
        url = reverse("notifications:notifications-mark-read", args=[self.own.pk])

        response = self.client.patch(url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["read"])

        response = self.client.patch(url, {"read": False}, format="json")
        self.assertFalse(response.data["read"])
        self.own.refresh_from_db()
        self.assertEqual(self.own.status, Notification.Status.UNREAD)

    def test_foreign_notification_is_hidden(self):
        for name in ("notifications-retrieve", "notifications-mark-read", "notifications-delete"):
            url = reverse(f"notifications:{name}", args=[self.foreign.pk])
            method = {"notifications-retrieve": self.client.get,
                      "notifications-mark-read": self.client.patch,
                      "notifications-delete": self.client.delete}[name]
            self.assertEqual(method(url).status_code, status.HTTP_404_NOT_FOUND, name)

    def test_delete(self):
        response = self.client.delete(reverse("notifications:notifications-delete", args=[self.own.pk]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Notification.objects.filter(pk=self.own.pk).exists())


class NotificationConsumerTests(TransactionTestCase):
    def test_authenticated_socket_receives_group_messages(self):
        async def scenario():
            communicator = WebsocketCommunicator(NotificationConsumer.as_asgi(), "/ws/notifications/")
            communicator.scope["user"] = SimpleNamespace(id=42, is_anonymous=False)
            connected, _ = await communicator.connect()
            self.assertTrue(connected)

            await get_channel_layer().group_send(
                notification_group_name(42),
                {"type": "send_notification", "message": {"title": "Upcoming activity"}},
            )
            payload = await communicator.receive_json_from()
            await communicator.disconnect()
            return payload

        self.assertEqual(async_to_sync(scenario)(), {"title": "Upcoming activity"})

    def test_anonymous_socket_is_rejected(self):
        async def scenario():
            communicator = WebsocketCommunicator(NotificationConsumer.as_asgi(), "/ws/notifications/")
            communicator.scope["user"] = AnonymousUser()
            connected, _ = await communicator.connect()
            return connected

        self.assertFalse(async_to_sync(scenario)())
