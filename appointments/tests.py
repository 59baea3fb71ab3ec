from datetime import datetime, timedelta, timezone as dt_timezone
from types import SimpleNamespace
from unittest.mock import Mock, patch

from django.core.exceptions import ValidationError
from django.db import connection
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from rest_framework.test import APIClient

from appointments.integrations import (
    CalendarService,
    ExportOptions,
    NothingToExport,
    NotConnected,
    ProviderRequestFailed,
    RefreshFailed,
    appointment_to_event,
    appointment_to_task,
    build_title,
    ensure_valid_access_token,
)
from appointments.integrations.exporter import export_appointments
from appointments.models import Appointment, CalendarIntegration
from appointments.services.reminders import dispatch_activity_reminders
from appointments.tasks import send_activity_reminders_task
from notifications.models import Notification
from plans.models import Plan
from users.models import OAuthToken, User

GOOGLE_SETTINGS = {
    "GOOGLE_OAUTH_CLIENT_ID": "client-id",
    "GOOGLE_OAUTH_CLIENT_SECRET": "client-secret",
    "GOOGLE_OAUTH_REDIRECT_URI": "http://testserver/appointments/calendar/oauth/google/callback/",
    "CALENDAR_OAUTH_COMPLETE_URL": "",
}


def mock_response(status_code=200, data=None):
    response = Mock(status_code=status_code, ok=status_code < 400, content=b"{}")
    response.json.return_value = data if data is not None else {}
    return response


def make_user(email="owner@example.com"):
    return User.objects.create_user(email=email, password="Str0ng-pass!", name="Owner")


def make_plan(user, name="Run a 5k"):
    return Plan.objects.create(
        user=user,
        name=name,
        goal="Run five kilometres without stopping",
        category="fitness",
        current_level="Can jog for ten minutes",
    )


def make_appointment(user, plan, **overrides):
    values = {
        "user": user,
        "plan": plan,
        "scheduled_for": timezone.now() + timedelta(days=1),
        "details": "Easy run",
        "amount": 20,
        "measure_unit": "minutes",
    }
    values.update(overrides)
    return Appointment.objects.create(**values)


def connect_google(user, expires_in=timedelta(hours=1), **overrides):
    values = {
        "user": user,
        "provider": "google",
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "scope": "calendar",
        "token_type": "Bearer",
        "expires_at": timezone.now() + expires_in,
    }
    values.update(overrides)
    return OAuthToken.objects.create(**values)


class ConverterTests(SimpleTestCase):
    def setUp(self):
        self.appointment = SimpleNamespace(
            details="Morning run",
            amount=5,
            measure_unit="km",
            scheduled_for=datetime(2026, 3, 1, 9, 0, tzinfo=dt_timezone.utc),
            completed=False,
            plan=SimpleNamespace(name="Run a 5k"),
        )

    def test_title_follows_amount_and_unit_flags(self):
        cases = [
            ((True, True), "Morning run (5 km)"),
            ((True, False), "Morning run (5)"),
            ((False, True), "Morning run (km)"),
            ((False, False), "Morning run"),
        ]
        for (include_amount, include_unit), expected in cases:
            options = ExportOptions(include_amount=include_amount, include_measure_unit=include_unit)
            self.assertEqual(build_title("Morning run", 5, "km", options), expected)

    def test_event_lasts_one_hour_and_carries_popup_reminder(self):
        event = appointment_to_event(self.appointment, ExportOptions(reminder_minutes=15))

        self.assertEqual(event["summary"], "Morning run (5 km)")
        self.assertEqual(event["start"]["dateTime"], "2026-03-01T09:00:00Z")
        self.assertEqual(event["end"]["dateTime"], "2026-03-01T10:00:00Z")
        self.assertEqual(event["start"]["timeZone"], "UTC")
        self.assertEqual(
            event["reminders"],
            {"useDefault": False, "overrides": [{"method": "popup", "minutes": 15}]},
        )
        self.assertIn("Goal: Run a 5k", event["description"])
        self.assertIn("Amount: 5 km", event["description"])

    def test_event_without_reminders(self):
        event = appointment_to_event(self.appointment, ExportOptions(add_reminders=False))
        self.assertNotIn("reminders", event)

    def test_task_has_no_end_or_reminders_and_maps_status(self):
        task = appointment_to_task(self.appointment, ExportOptions(export_as_task=True))

        self.assertEqual(task["title"], "Morning run (5 km)")
        self.assertEqual(task["due"], "2026-03-01T09:00:00Z")
        self.assertEqual(task["status"], "needsAction")
        self.assertNotIn("end", task)
        self.assertNotIn("reminders", task)

        self.appointment.completed = True
        self.assertEqual(appointment_to_task(self.appointment, ExportOptions())["status"], "completed")

    def test_conversion_is_pure(self):
        options = ExportOptions()
        self.assertEqual(
            appointment_to_event(self.appointment, options),
            appointment_to_event(self.appointment, options),
        )
        self.assertEqual(
            appointment_to_task(self.appointment, options),
            appointment_to_task(self.appointment, options),
        )

    def test_notes_fall_back_when_plan_is_missing(self):
        self.appointment.plan = None
        event = appointment_to_event(self.appointment, ExportOptions())
        self.assertTrue(event["description"].startswith("Goal: Unknown"))

    def test_options_from_integration_ignore_missing_overrides(self):
        integration = CalendarIntegration(export_as_task=True, include_amount=False, reminder_minutes=45)
        options = ExportOptions.from_integration(
            integration,
            time_zone="Europe/Berlin",
            include_amount=None,
            add_reminders=False,
        )

        self.assertTrue(options.export_as_task)
        self.assertFalse(options.include_amount)
        self.assertFalse(options.add_reminders)
        self.assertEqual(options.reminder_minutes, 45)
        self.assertEqual(options.time_zone, "Europe/Berlin")


class TokenRefreshTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.now = timezone.now()

    def _client(self, payload):
        client = Mock()
        client.refresh_token.return_value = payload
        return client

    def test_token_expiring_in_four_minutes_is_refreshed(self):
        connect_google(self.user, expires_at=self.now + timedelta(minutes=4))
        client = self._client({"access_token": "access-2", "expires_in": 3600})

        access_token = ensure_valid_access_token(self.user, client=client, now=self.now)

        self.assertEqual(access_token, "access-2")
        client.refresh_token.assert_called_once_with("refresh-1")
        token = OAuthToken.objects.get(user=self.user)
        self.assertEqual(token.access_token, "access-2")
        self.assertEqual(token.refresh_token, "refresh-1")
        self.assertEqual(token.expires_at, self.now + timedelta(seconds=3600))

    def test_token_expiring_in_six_minutes_is_used_as_is(self):
        connect_google(self.user, expires_at=self.now + timedelta(minutes=6))
        client = self._client({"access_token": "access-2", "expires_in": 3600})

        self.assertEqual(ensure_valid_access_token(self.user, client=client, now=self.now), "access-1")
        client.refresh_token.assert_not_called()

    def test_unknown_expiry_is_refreshed(self):
        connect_google(self.user, expires_at=None)
        client = self._client({"access_token": "access-2", "expires_in": 3600})

        self.assertEqual(ensure_valid_access_token(self.user, client=client, now=self.now), "access-2")

    def test_new_refresh_token_replaces_the_stored_one(self):
        connect_google(self.user, expires_at=self.now - timedelta(minutes=1))
        client = self._client({"access_token": "access-2", "refresh_token": "refresh-2", "expires_in": 3600})

        ensure_valid_access_token(self.user, client=client, now=self.now)

        self.assertEqual(OAuthToken.objects.get(user=self.user).refresh_token, "refresh-2")

    def test_missing_credential_raises_not_connected(self):
        with self.assertRaises(NotConnected):
            ensure_valid_access_token(self.user)

        connect_google(self.user, access_token=None, refresh_token=None)
        with self.assertRaises(NotConnected):
            ensure_valid_access_token(self.user)

    @override_settings(**GOOGLE_SETTINGS)
    @patch("appointments.integrations.oauth.requests.post")
    def test_rejected_refresh_raises_refresh_failed_and_keeps_token(self, mock_post):
        connect_google(self.user, expires_at=self.now - timedelta(minutes=1))
        mock_post.return_value = mock_response(400, {"error": "invalid_grant"})

        with self.assertRaises(RefreshFailed):
            ensure_valid_access_token(self.user, now=self.now)

        mock_post.assert_called_once()
        token = OAuthToken.objects.get(user=self.user)
        self.assertEqual(token.access_token, "access-1")
        self.assertEqual(token.refresh_token, "refresh-1")

    def test_refresh_without_access_token_fails(self):
        connect_google(self.user, expires_at=self.now - timedelta(minutes=1))
        client = self._client({"expires_in": 3600})

        with self.assertRaises(RefreshFailed):
            ensure_valid_access_token(self.user, client=client, now=self.now)

    def test_refresh_without_valid_lifetime_fails_and_keeps_token(self):
        expired_at = self.now - timedelta(minutes=1)
        connect_google(self.user, expires_at=expired_at)

        for payload in (
            {"access_token": "access-2"},
            {"access_token": "access-2", "expires_in": "soon"},
            {"access_token": "access-2", "expires_in": 0},
        ):
            with self.assertRaises(RefreshFailed, msg=payload):
                ensure_valid_access_token(self.user, client=self._client(payload), now=self.now)

        token = OAuthToken.objects.get(user=self.user)
        self.assertEqual(token.access_token, "access-1")
        self.assertEqual(token.expires_at, expired_at)


class CalendarServiceTests(TestCase):
    def setUp(self):
        self.user = make_user()
        connect_google(self.user)
        self.service = CalendarService()

    @patch("appointments.integrations.calendar.requests.post")
    def test_create_event_posts_to_primary_calendar(self, mock_post):
        mock_post.return_value = mock_response(200, {"id": "event-1"})

        created = self.service.create_event(self.user, {"summary": "Run"})

        self.assertEqual(created["id"], "event-1")
        url = mock_post.call_args.args[0]
        self.assertTrue(url.endswith("/calendars/primary/events"))
        self.assertEqual(mock_post.call_args.kwargs["headers"], {"Authorization": "Bearer access-1"})
        self.assertEqual(mock_post.call_args.kwargs["json"], {"summary": "Run"})

    @patch("appointments.integrations.calendar.requests.get")
    @patch("appointments.integrations.calendar.requests.post")
    def test_create_task_uses_first_task_list_once(self, mock_post, mock_get):
        mock_get.return_value = mock_response(200, {"items": [{"id": "list-1"}, {"id": "list-2"}]})
        mock_post.return_value = mock_response(200, {"id": "task-1"})

        self.service.create_task(self.user, {"title": "Run"})
        self.service.create_task(self.user, {"title": "Run again"})

        mock_get.assert_called_once()
        self.assertIn("/lists/list-1/tasks", mock_post.call_args.args[0])

    @patch("appointments.integrations.calendar.requests.get")
    def test_missing_task_list_fails(self, mock_get):
        mock_get.return_value = mock_response(200, {"items": []})

        with self.assertRaisesMessage(ProviderRequestFailed, "No task list found"):
            self.service.create_task(self.user, {"title": "Run"})

    @patch("appointments.integrations.calendar.requests.post")
    def test_provider_error_raises(self, mock_post):
        mock_post.return_value = mock_response(403, {"error": {"message": "forbidden"}})

        with self.assertRaisesMessage(ProviderRequestFailed, "Failed to create calendar event"):
            self.service.create_event(self.user, {"summary": "Run"})


class ExportAppointmentsTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.plan = make_plan(self.user)
        connect_google(self.user)
        self.appointments = [
            make_appointment(self.user, self.plan, scheduled_for=timezone.now() + timedelta(days=day))
            for day in (1, 2, 3)
        ]
        self.ids = [appointment.pk for appointment in self.appointments]

    def test_failures_are_reported_per_item(self):
        service = Mock()
        service.create_event.side_effect = [
            {"id": "event-1"},
            ProviderRequestFailed("Failed to create calendar event: boom"),
            {"id": "event-3"},
        ]

        summary = export_appointments(self.user, self.ids, ExportOptions(), service=service)

        self.assertEqual(summary.total, 3)
        self.assertEqual(summary.failed, 1)
        self.assertEqual(summary.message, "Exported 2 of 3 appointments")
        results = [result.as_dict() for result in summary.results]
        self.assertEqual([result["appointment_id"] for result in results], self.ids)
        self.assertEqual(results[0]["external_id"], "event-1")
        self.assertFalse(results[1]["success"])
        self.assertIn("boom", results[1]["error"])

        integration = CalendarIntegration.objects.get(user=self.user)
        self.assertIsNotNone(integration.last_synced_at)
        notification = Notification.objects.get(user=self.user, type=Notification.Type.CALENDAR_EXPORT)
        self.assertEqual(notification.title, "Calendar Export Complete")
        self.assertEqual(notification.message, "Successfully exported 2 of 3 appointments to Google Calendar.")

    def test_tasks_export_uses_task_api(self):
        service = Mock()
        service.create_task.return_value = {"id": "task-1"}

        summary = export_appointments(self.user, self.ids[:1], ExportOptions(export_as_task=True), service=service)

        service.create_event.assert_not_called()
        self.assertEqual(summary.results[0].type, "task")
        self.assertTrue(
            Notification.objects.filter(
                user=self.user,
                message="Successfully exported 1 of 1 appointments to Google Tasks.",
            ).exists()
        )

    def test_other_users_appointments_are_excluded(self):
        stranger = make_user("stranger@example.com")
        foreign = make_appointment(stranger, make_plan(stranger))
        service = Mock()
        service.create_event.return_value = {"id": "event"}

        summary = export_appointments(self.user, [self.ids[0], foreign.pk], ExportOptions(), service=service)

        self.assertEqual(summary.total, 1)
        self.assertEqual(service.create_event.call_count, 1)

    def test_no_matching_appointments(self):
        with self.assertRaises(NothingToExport):
            export_appointments(self.user, [999999], ExportOptions(), service=Mock())

    @patch("appointments.integrations.oauth.requests.post")
    @patch("appointments.integrations.calendar.requests.post")
    def test_disconnected_user_makes_no_requests(self, mock_calendar_post, mock_oauth_post):
        OAuthToken.objects.get(user=self.user).disconnect()

        with self.assertRaises(NotConnected):
            export_appointments(self.user, self.ids, ExportOptions())

        mock_calendar_post.assert_not_called()
        mock_oauth_post.assert_not_called()

    @override_settings(**GOOGLE_SETTINGS)
    @patch("appointments.integrations.oauth.requests.post")
    def test_refresh_failure_before_export_makes_no_provider_calls(self, mock_oauth_post):
        OAuthToken.objects.filter(user=self.user).update(expires_at=timezone.now() - timedelta(minutes=1))
        mock_oauth_post.return_value = mock_response(400, {"error": "invalid_grant"})
        service = Mock()

        with self.assertRaises(RefreshFailed):
            export_appointments(self.user, self.ids, ExportOptions(), service=service)

        service.create_event.assert_not_called()
        self.assertFalse(CalendarIntegration.objects.filter(user=self.user, last_synced_at__isnull=False).exists())
        self.assertFalse(Notification.objects.filter(type=Notification.Type.CALENDAR_EXPORT).exists())

    def test_losing_credential_mid_export_fails_remaining_items(self):
        extra = make_appointment(self.user, self.plan, scheduled_for=timezone.now() + timedelta(days=4))
        service = Mock()
        service.create_event.side_effect = [{"id": "event-1"}, {"id": "event-2"}, RefreshFailed()]

        summary = export_appointments(self.user, self.ids + [extra.pk], ExportOptions(), service=service)

        self.assertEqual(service.create_event.call_count, 3)
        self.assertEqual(summary.total, 4)
        self.assertEqual(summary.succeeded, 2)
        results = [result.as_dict() for result in summary.results]
        self.assertEqual([result["appointment_id"] for result in results], self.ids + [extra.pk])
        self.assertEqual([result["success"] for result in results], [True, True, False, False])
        self.assertEqual(results[2]["error"], RefreshFailed.default_message)
        self.assertEqual(summary.message, "Exported 2 of 4 appointments")

        self.assertIsNotNone(CalendarIntegration.objects.get(user=self.user).last_synced_at)
        notification = Notification.objects.get(user=self.user, type=Notification.Type.CALENDAR_EXPORT)
        self.assertEqual(notification.message, "Successfully exported 2 of 4 appointments to Google Calendar.")


class CalendarExportViewTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.plan = make_plan(self.user)
        self.appointment = make_appointment(self.user, self.plan)
        self.api_client = APIClient()
        self.api_client.force_authenticate(user=self.user)
        self.url = reverse("appointments:calendar-export")

    def test_not_connected(self):
        response = self.api_client.post(self.url, {"appointment_ids": [self.appointment.pk]}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "not_connected")

    def test_nothing_to_export(self):
        connect_google(self.user)
        response = self.api_client.post(self.url, {"appointment_ids": [999999]}, format="json")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["detail"], "No appointments found to export")

    def test_empty_ids_are_rejected(self):
        response = self.api_client.post(self.url, {"appointment_ids": []}, format="json")
        self.assertEqual(response.status_code, 400)

    @patch("appointments.integrations.exporter.CalendarService")
    def test_saved_settings_apply_unless_overridden(self, mock_service_cls):
        connect_google(self.user)
        CalendarIntegration.objects.create(user=self.user, include_amount=False, add_reminders=False)
        service = mock_service_cls.return_value
        service.create_event.return_value = {"id": "event-1"}

        response = self.api_client.post(
            self.url,
            {"appointment_ids": [self.appointment.pk, self.appointment.pk], "include_measure_unit": False},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["message"], "Exported 1 of 1 appointments")
        self.assertEqual(response.data["results"][0]["external_id"], "event-1")
        event = service.create_event.call_args.args[1]
        self.assertEqual(event["summary"], "Easy run")
        self.assertNotIn("reminders", event)


@override_settings(**GOOGLE_SETTINGS)
class CalendarOAuthFlowTests(TestCase):
    def setUp(self):
        self.api_client = APIClient()
        self.user = make_user()
        self.api_client.force_authenticate(user=self.user)
        self.callback_url = reverse("appointments:calendar-oauth-callback", args=["google"])

    def _start(self):
        response = self.api_client.get(reverse("appointments:calendar-oauth-start", args=["google"]))
        self.assertEqual(response.status_code, 200)
        return response.data

    def _token_payload(self, **overrides):
        payload = {
            "access_token": "google-access-token",
            "refresh_token": "google-refresh-token",
            "expires_in": 3600,
            "scope": "https://www.googleapis.com/auth/calendar",
            "token_type": "Bearer",
        }
        payload.update(overrides)
        return payload

    def test_start_returns_offline_consent_url(self):
        data = self._start()

        self.assertIn("access_type=offline", data["authorization_url"])
        self.assertIn("prompt=consent", data["authorization_url"])
        self.assertIn("tasks", data["authorization_url"])
        self.assertTrue(data["state"])
        self.assertEqual(data["redirect_uri"], GOOGLE_SETTINGS["GOOGLE_OAUTH_REDIRECT_URI"])

    @override_settings(GOOGLE_OAUTH_CLIENT_ID="")
    def test_start_without_credentials(self):
        response = self.api_client.get(reverse("appointments:calendar-oauth-start", args=["google"]))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "not_configured")

    @patch("appointments.integrations.oauth.requests.post")
    def test_callback_stores_encrypted_token_and_creates_settings(self, mock_post):
        state = self._start()["state"]
        mock_post.return_value = mock_response(200, self._token_payload())

        response = self.api_client.get(self.callback_url, {"code": "auth-code", "state": state})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertEqual(mock_post.call_args.kwargs["data"]["grant_type"], "authorization_code")

        token = OAuthToken.objects.get(user=self.user, provider="google")
        self.assertEqual(token.access_token, "google-access-token")
        self.assertTrue(token.is_connected)
        with connection.cursor() as cursor:
            cursor.execute("SELECT access_token FROM users_oauthtoken WHERE id = %s", [token.pk])
            raw_value = cursor.fetchone()[0]
        self.assertTrue(raw_value.startswith("enc::"))
        self.assertNotIn("google-access-token", raw_value)

        self.assertTrue(CalendarIntegration.objects.filter(user=self.user).exists())
        self.assertTrue(
            Notification.objects.filter(user=self.user, title="Google Calendar Connected").exists()
        )

    @patch("appointments.integrations.oauth.requests.post")
    def test_provider_error_wins_over_code(self, mock_post):
        state = self._start()["state"]

        response = self.api_client.get(
            self.callback_url,
            {"error": "access_denied", "code": "auth-code", "state": state},
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "access_denied")
        mock_post.assert_not_called()
        self.assertFalse(OAuthToken.objects.filter(user=self.user).exists())

    def test_missing_params(self):
        response = self.api_client.get(self.callback_url, {"code": "auth-code"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "missing_params")

    @patch("appointments.integrations.oauth.requests.post")
    def test_tampered_state_is_rejected(self, mock_post):
        response = self.api_client.get(self.callback_url, {"code": "auth-code", "state": f"{self.user.pk}"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_state")
        mock_post.assert_not_called()

    @patch("appointments.integrations.oauth.requests.post")
    def test_state_can_only_be_used_once(self, mock_post):
        state = self._start()["state"]
        mock_post.return_value = mock_response(200, self._token_payload())

        first = self.api_client.get(self.callback_url, {"code": "auth-code", "state": state})
        second = self.api_client.get(self.callback_url, {"code": "auth-code", "state": state})

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 400)
        self.assertEqual(second.data["code"], "invalid_state")
        self.assertEqual(mock_post.call_count, 1)

    @patch("appointments.integrations.oauth.requests.post")
    def test_exchange_without_refresh_token_stores_nothing(self, mock_post):
        state = self._start()["state"]
        mock_post.return_value = mock_response(200, self._token_payload(refresh_token=None))

        response = self.api_client.get(self.callback_url, {"code": "auth-code", "state": state})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "token_exchange")
        self.assertFalse(OAuthToken.objects.filter(user=self.user).exists())

    @override_settings(CALENDAR_OAUTH_COMPLETE_URL="http://frontend.test/settings")
    def test_callback_redirects_to_frontend_when_configured(self):
        response = self.api_client.get(self.callback_url, {"error": "access_denied"})

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response["Location"], "http://frontend.test/settings?error=access_denied")

    @patch("appointments.integrations.tokens.get_oauth_client")
    def test_manual_refresh_endpoint_updates_token(self, mock_get_client):
        token = connect_google(self.user, expires_in=timedelta(minutes=-1))
        client_mock = Mock()
        client_mock.refresh_token.return_value = {"access_token": "refreshed-access", "expires_in": 7200}
        mock_get_client.return_value = client_mock

        response = self.api_client.post(reverse("appointments:calendar-oauth-refresh", args=["google"]))

        self.assertEqual(response.status_code, 200)
        token.refresh_from_db()
        self.assertEqual(token.access_token, "refreshed-access")
        self.assertEqual(token.refresh_token, "refresh-1")
        self.assertFalse(token.is_expired)

    @patch("appointments.integrations.oauth.requests.post")
    def test_manual_refresh_failure(self, mock_post):
        connect_google(self.user)
        mock_post.return_value = mock_response(400, {"error": "invalid_grant"})

        response = self.api_client.post(reverse("appointments:calendar-oauth-refresh", args=["google"]))

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data["code"], "refresh_failed")

    def test_status_endpoint(self):
        url = reverse("appointments:calendar-oauth-status", args=["google"])
        self.assertFalse(self.api_client.get(url).data["connected"])

        connect_google(self.user)
        data = self.api_client.get(url).data
        self.assertTrue(data["connected"])
        self.assertFalse(data["needs_refresh"])
        self.assertNotIn("access_token", data)


class CalendarSettingsViewTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.api_client = APIClient()
        self.api_client.force_authenticate(user=self.user)
        self.url = reverse("appointments:calendar-settings")

    def test_get_without_integration(self):
        response = self.api_client.get(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["connected"])
        self.assertIsNone(response.data["settings"])

    def test_put_upserts_settings(self):
        response = self.api_client.put(self.url, {"export_as_task": True, "reminder_minutes": 45}, format="json")

        self.assertEqual(response.status_code, 200)
        integration = CalendarIntegration.objects.get(user=self.user)
        self.assertTrue(integration.export_as_task)
        self.assertEqual(integration.reminder_minutes, 45)

    def test_reminder_minutes_are_bounded(self):
        response = self.api_client.put(self.url, {"reminder_minutes": 200}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_delete_disconnects(self):
        connect_google(self.user)

        response = self.api_client.delete(self.url)

        self.assertEqual(response.status_code, 200)
        token = OAuthToken.objects.get(user=self.user)
        self.assertIsNone(token.access_token)
        self.assertIsNone(token.refresh_token)
        self.assertIsNone(token.expires_at)
        self.assertFalse(token.is_connected)
        self.assertTrue(
            Notification.objects.filter(user=self.user, type=Notification.Type.CALENDAR_DISCONNECTED).exists()
        )


class AppointmentApiTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.plan = make_plan(self.user)
        self.other_plan = make_plan(self.user, name="Read more")
        self.api_client = APIClient()
        self.api_client.force_authenticate(user=self.user)
        self.list_url = reverse("appointments:appointment-list-create")

    def test_create_appointment(self):
        response = self.api_client.post(
            self.list_url,
            {
                "plan": self.plan.pk,
                "scheduled_for": (timezone.now() + timedelta(days=2)).isoformat(),
                "details": "Tempo run",
                "amount": 3,
                "measure_unit": "km",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["plan_name"], "Run a 5k")
        self.assertEqual(Appointment.objects.get(pk=response.data["id"]).user, self.user)

    def test_create_validates_input(self):
        base = {
            "plan": self.plan.pk,
            "scheduled_for": timezone.now().isoformat(),
            "details": "Tempo run",
            "amount": 3,
            "measure_unit": "km",
        }
        for field, value in (("details", "ab"), ("amount", 0), ("measure_unit", "")):
            payload = dict(base, **{field: value})
            response = self.api_client.post(self.list_url, payload, format="json")
            self.assertEqual(response.status_code, 400, field)
            self.assertIn(field, response.data)

    def test_create_rejects_foreign_plan(self):
        stranger = make_user("stranger@example.com")
        response = self.api_client.post(
            self.list_url,
            {
                "plan": make_plan(stranger).pk,
                "scheduled_for": timezone.now().isoformat(),
                "details": "Tempo run",
                "amount": 3,
                "measure_unit": "km",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("plan", response.data)

    def test_list_filters(self):
        now = timezone.now()
        first = make_appointment(self.user, self.plan, scheduled_for=now + timedelta(days=1))
        done = make_appointment(self.user, self.plan, scheduled_for=now + timedelta(days=5), completed=True)
        other = make_appointment(self.user, self.other_plan, scheduled_for=now + timedelta(days=2))
        stranger = make_user("stranger@example.com")
        make_appointment(stranger, make_plan(stranger), scheduled_for=now)

        def ids(params):
            response = self.api_client.get(self.list_url, params)
            self.assertEqual(response.status_code, 200)
            return [item["id"] for item in response.data]

        self.assertEqual(ids({}), [first.pk, other.pk, done.pk])
        self.assertEqual(ids({"plan": self.plan.pk}), [first.pk, done.pk])
        self.assertEqual(ids({"completed": "true"}), [done.pk])
        self.assertEqual(ids({"completed": "false"}), [first.pk, other.pk])
        end_date = timezone.localdate(now + timedelta(days=2)).isoformat()
        self.assertEqual(ids({"end_date": end_date}), [first.pk, other.pk])

    def test_invalid_filters(self):
        for params in ({"start_date": "03/01/2026"}, {"completed": "maybe"}, {"plan": "abc"},
                       {"start_date": "2026-03-02", "end_date": "2026-03-01"}):
            self.assertEqual(self.api_client.get(self.list_url, params).status_code, 400, params)

    def test_toggle_completed(self):
        appointment = make_appointment(self.user, self.plan)
        url = reverse("appointments:appointment-detail", args=[appointment.pk])

        response = self.api_client.patch(url, {"completed": True}, format="json")

        self.assertEqual(response.status_code, 200)
        appointment.refresh_from_db()
        self.assertTrue(appointment.completed)

    def test_other_users_appointment_is_hidden(self):
        stranger = make_user("stranger@example.com")
        foreign = make_appointment(stranger, make_plan(stranger))

        response = self.api_client.get(reverse("appointments:appointment-detail", args=[foreign.pk]))

        self.assertEqual(response.status_code, 404)

    def test_model_rejects_plan_of_another_user(self):
        stranger = make_user("stranger@example.com")
        appointment = Appointment(
            user=stranger,
            plan=self.plan,
            scheduled_for=timezone.now(),
            details="Run",
            amount=1,
            measure_unit="km",
        )
        with self.assertRaises(ValidationError):
            appointment.clean()


class ActivityReminderTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.plan = make_plan(self.user)
        now = timezone.now()
        self.soon = make_appointment(self.user, self.plan, scheduled_for=now + timedelta(minutes=30))
        self.later = make_appointment(self.user, self.plan, scheduled_for=now + timedelta(hours=3))
        self.done = make_appointment(
            self.user, self.plan, scheduled_for=now + timedelta(minutes=20), completed=True
        )

    def test_task_reminds_upcoming_activities_once(self):
        with self.assertLogs("appointments.services.reminders", level="INFO") as captured:
            result = send_activity_reminders_task()

        self.assertEqual(result["processed_appointments"], 1)
        self.assertEqual(result["window"], 60)
        self.assertTrue(any("Sent reminder" in message for message in captured.output))
        self.soon.refresh_from_db()
        self.assertTrue(self.soon.is_reminder_sent)

        notification = Notification.objects.get(user=self.user, type=Notification.Type.ACTIVITY_REMINDER)
        self.assertEqual(notification.title, "Upcoming activity")
        expected_time = timezone.localtime(self.soon.scheduled_for).strftime("%Y-%m-%d %H:%M")
        self.assertIn(expected_time, notification.message)
        self.assertIn("Run a 5k", notification.message)

        self.assertEqual(send_activity_reminders_task()["processed_appointments"], 0)

    def test_window_argument_widens_selection(self):
        result = send_activity_reminders_task(window_minutes=240)

        self.assertEqual(result["processed_appointments"], 2)
        self.done.refresh_from_db()
        self.assertFalse(self.done.is_reminder_sent)

    @override_settings(ACTIVITY_REMINDER_WINDOW="240")
    def test_window_from_settings(self):
        result = dispatch_activity_reminders()

        self.assertEqual(result["window"], timedelta(minutes=240))
        self.assertEqual(result["processed_appointments"], 2)

    @patch("appointments.services.reminders.send_notification", side_effect=RuntimeError("db down"))
    def test_failed_reminder_is_retried_next_run(self, mock_send):
        result = dispatch_activity_reminders()

        self.assertEqual(result["failed"], 1)
        self.assertEqual(result["processed_appointments"], 0)
        self.soon.refresh_from_db()
        self.assertFalse(self.soon.is_reminder_sent)
