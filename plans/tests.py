import json
from datetime import date, time
from unittest.mock import Mock, patch

from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from openai import OpenAIError

from rest_framework.test import APIClient

from appointments.models import Appointment
from notifications.models import Notification
from plans.models import Plan
from plans.planner import (
    GENERIC_ERROR_MESSAGE,
    PlanGenerationError,
    _get_openai_client,
    build_plan_prompt,
    generate_plan,
    parse_plan_response,
)
from plans.serializers import PlanInputSerializer
from users.models import User

PLAN_INPUT = {
    "name": "Run a 5k",
    "goal": "Run five kilometres without stopping",
    "category": "fitness",
    "current_level": "Can jog for ten minutes",
    "experience": "beginner",
    "frequency": 3,
    "preferred_days": ["monday", "wednesday", "friday"],
    "constraints": "Bad left knee",
    "preferences": "Outdoor runs",
    "duration": 4,
    "specific_details": {"targetDistance": "5km"},
}

ENTRIES = {
    "entries": [
        {"date_start": "2026-03-02", "details": "Walk-run intervals", "amount": 2.6, "measure_unit": "km"},
        {"date_start": "2026-03-04", "details": "Easy jog", "amount": 0.2, "measure_unit": "km"},
    ]
}


def completion(content):
    client = Mock()
    message = Mock(content=content)
    client.chat.completions.create.return_value = Mock(choices=[Mock(message=message)])
    return client


class PlanInputSerializerTests(SimpleTestCase):
    def test_valid_input(self):
        serializer = PlanInputSerializer(data=PLAN_INPUT)
        self.assertTrue(serializer.is_valid(), serializer.errors)

    def test_field_bounds(self):
        invalid = {
            "name": "R",
            "goal": "Run",
            "current_level": "None",
            "experience": "expert",
            "frequency": 8,
            "preferred_days": ["someday"],
            "duration": 0,
        }
        for field, value in invalid.items():
            serializer = PlanInputSerializer(data=dict(PLAN_INPUT, **{field: value}))
            self.assertFalse(serializer.is_valid(), field)
            self.assertIn(field, serializer.errors)

    def test_custom_category_is_accepted(self):
        serializer = PlanInputSerializer(data=dict(PLAN_INPUT, category="music"))
        self.assertTrue(serializer.is_valid(), serializer.errors)
        self.assertEqual(serializer.validated_data["category"], "music")

        prompt = build_plan_prompt(serializer.validated_data, today=date(2026, 3, 1))
        self.assertIn("Category: music", prompt)
        self.assertNotIn("Progressive overload", prompt)

    def test_constraints_are_optional(self):
        data = dict(PLAN_INPUT)
        data.pop("constraints")
        data.pop("specific_details")
        self.assertTrue(PlanInputSerializer(data=data).is_valid())


class PlannerTests(SimpleTestCase):
    def test_prompt_contains_input_and_guidance(self):
        prompt = build_plan_prompt(PLAN_INPUT, today=date(2026, 3, 1))

        self.assertIn("Name: Run a 5k", prompt)
        self.assertIn("Preferred Frequency: 3 days per week", prompt)
        self.assertIn("Preferred Days: monday, wednesday, friday", prompt)
        self.assertIn("Constraints or Limitations: Bad left knee", prompt)
        self.assertIn("Duration: 4 weeks", prompt)
        self.assertIn("Progressive overload", prompt)
        self.assertIn("Today's date is 2026-03-01", prompt)
        self.assertIn('Additional Details: {"targetDistance": "5km"}', prompt)

    def test_prompt_uses_default_guidance_for_other_category(self):
        prompt = build_plan_prompt(dict(PLAN_INPUT, category="other", constraints=""), today=date(2026, 3, 1))

        self.assertNotIn("Progressive overload", prompt)
        self.assertIn("Constraints or Limitations: None", prompt)

    def test_parse_rounds_amounts(self):
        entries = parse_plan_response(json.dumps(ENTRIES))

        self.assertEqual([entry.amount for entry in entries], [3, 1])
        self.assertEqual(entries[0].date_start, date(2026, 3, 2))
        self.assertEqual(entries[1].as_dict()["date_start"], "2026-03-04")

    def test_parse_accepts_bare_list(self):
        self.assertEqual(len(parse_plan_response(json.dumps(ENTRIES["entries"]))), 2)

    def test_parse_rejects_bad_shapes(self):
        bad_payloads = [
            "not json",
            json.dumps({"plan": []}),
            json.dumps({"entries": [{"date_start": "tomorrow", "details": "x", "amount": 1, "measure_unit": "km"}]}),
            json.dumps({"entries": [{"date_start": "2026-03-02", "details": "x", "measure_unit": "km"}]}),
            json.dumps({"entries": [{"date_start": "2026-03-02", "details": "x", "amount": -1, "measure_unit": "km"}]}),
        ]
        for payload in bad_payloads:
            with self.assertRaises(PlanGenerationError, msg=payload):
                parse_plan_response(payload)

    @patch("plans.planner._get_openai_client")
    def test_generate_plan_requests_json_mode(self, mock_get_client):
        client = completion(json.dumps(ENTRIES))
        mock_get_client.return_value = client

        entries = generate_plan(PLAN_INPUT, today=date(2026, 3, 1))

        self.assertEqual(len(entries), 2)
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["response_format"], {"type": "json_object"})
        self.assertIn("Today's date is 2026-03-01", kwargs["messages"][-1]["content"])

    @patch("plans.planner._get_openai_client")
    def test_transport_failure_is_generic(self, mock_get_client):
        client = Mock()
        client.chat.completions.create.side_effect = OpenAIError("connection reset")
        mock_get_client.return_value = client

        with self.assertRaisesMessage(PlanGenerationError, GENERIC_ERROR_MESSAGE):
            generate_plan(PLAN_INPUT)

    @patch("plans.planner._get_openai_client")
    def test_empty_plan_is_an_error(self, mock_get_client):
        mock_get_client.return_value = completion(json.dumps({"entries": []}))

        with self.assertRaises(PlanGenerationError):
            generate_plan(PLAN_INPUT)

    @override_settings(OPENAI_API_KEY="")
    def test_missing_api_key(self):
        with self.assertRaises(PlanGenerationError):
            _get_openai_client()


class PlanApiTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="owner@example.com", password="Str0ng-pass!")
        self.api_client = APIClient()
        self.api_client.force_authenticate(user=self.user)
        self.list_url = reverse("plans:plan-list-create")

    @patch("plans.planner._get_openai_client")
    def test_create_plan_persists_appointments_and_notifies(self, mock_get_client):
        mock_get_client.return_value = completion(json.dumps(ENTRIES))

        response = self.api_client.post(self.list_url, PLAN_INPUT, format="json")

        self.assertEqual(response.status_code, 201)
        plan = Plan.objects.get(pk=response.data["id"])
        self.assertEqual(plan.user, self.user)
        self.assertEqual(len(response.data["appointments"]), 2)

        appointments = list(Appointment.objects.filter(plan=plan).order_by("scheduled_for"))
        self.assertEqual([appointment.amount for appointment in appointments], [3, 1])
        first_start = timezone.localtime(appointments[0].scheduled_for)
        self.assertEqual(first_start.date(), date(2026, 3, 2))
        self.assertEqual(first_start.time(), time(9, 0))
        self.assertTrue(all(appointment.user == self.user for appointment in appointments))

        notification = Notification.objects.get(user=self.user, type=Notification.Type.PLAN_CREATED)
        self.assertEqual(notification.title, "New Plan Created")
        self.assertEqual(notification.message, "Your Run a 5k plan has been created with 2 scheduled activities.")

    @patch("plans.planner._get_openai_client")
    def test_planner_failure_saves_nothing(self, mock_get_client):
        mock_get_client.return_value = completion("{}")

        response = self.api_client.post(self.list_url, PLAN_INPUT, format="json")

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data["code"], "plan_generation_failed")
        self.assertFalse(Plan.objects.exists())

    @patch("plans.views.generate_plan")
    def test_invalid_input_never_reaches_planner(self, mock_generate):
        response = self.api_client.post(self.list_url, dict(PLAN_INPUT, frequency=0), format="json")

        self.assertEqual(response.status_code, 400)
        mock_generate.assert_not_called()

    @patch("plans.planner._get_openai_client")
    def test_preview_does_not_persist(self, mock_get_client):
        mock_get_client.return_value = completion(json.dumps(ENTRIES))

        response = self.api_client.post(reverse("plans:plan-preview"), PLAN_INPUT, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["entries"][0]["amount"], 3)
        self.assertFalse(Plan.objects.exists())
        self.assertFalse(Appointment.objects.exists())

    def test_list_and_detail_are_scoped_to_owner(self):
        own = Plan.objects.create(user=self.user, name="Read more", goal="Read twelve books", category="learning")
        stranger = User.objects.create_user(email="stranger@example.com", password="Str0ng-pass!")
        foreign = Plan.objects.create(user=stranger, name="Paint", goal="Paint every week", category="creative")

        response = self.api_client.get(self.list_url)
        self.assertEqual([item["id"] for item in response.data], [own.pk])

        self.assertEqual(self.api_client.get(reverse("plans:plan-detail", args=[own.pk])).status_code, 200)
        self.assertEqual(self.api_client.get(reverse("plans:plan-detail", args=[foreign.pk])).status_code, 404)

    def test_delete_removes_appointments(self):
        plan = Plan.objects.create(user=self.user, name="Read more", goal="Read twelve books", category="learning")
        Appointment.objects.create(
            user=self.user,
            plan=plan,
            scheduled_for=timezone.now(),
            details="Read chapter one",
            amount=20,
            measure_unit="pages",
        )

        response = self.api_client.delete(reverse("plans:plan-detail", args=[plan.pk]))

        self.assertEqual(response.status_code, 204)
        self.assertFalse(Appointment.objects.exists())
