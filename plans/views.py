import logging
from datetime import datetime, time

from django.db import transaction
from django.utils import timezone

from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from appointments.models import Appointment
from notifications.models import Notification
from notifications.utils import send_notification

from .models import Plan
from .planner import PlanGenerationError, generate_plan
from .serializers import PlanInputSerializer, PlanSerializer

logger = logging.getLogger(__name__)

# Planner entries carry a date only; activities are placed at this local time.
DEFAULT_ACTIVITY_TIME = time(9, 0)


def _scheduled_for(entry_date):
    return timezone.make_aware(datetime.combine(entry_date, DEFAULT_ACTIVITY_TIME))


def _planner_error_response(exc: PlanGenerationError) -> Response:
    return Response({"detail": str(exc), "code": "plan_generation_failed"}, status=status.HTTP_502_BAD_GATEWAY)


class PlanListCreateView(generics.ListCreateAPIView):
    """List the user's plans or generate and persist a new one."""

    serializer_class = PlanSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return Plan.objects.filter(user=self.request.user).prefetch_related("appointments")

    def create(self, request, *args, **kwargs):
        input_serializer = PlanInputSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        plan_input = input_serializer.validated_data

        try:
            entries = generate_plan(plan_input)
        except PlanGenerationError as exc:
            return _planner_error_response(exc)

        with transaction.atomic():
            plan = Plan.objects.create(
                user=request.user,
                name=plan_input["name"],
                goal=plan_input["goal"],
                category=plan_input["category"],
                current_level=plan_input["current_level"],
            )
            Appointment.objects.bulk_create(
                [
                    Appointment(
                        user=request.user,
                        plan=plan,
                        scheduled_for=_scheduled_for(entry.date_start),
                        details=entry.details,
                        amount=entry.amount,
                        measure_unit=entry.measure_unit,
                    )
                    for entry in entries
                ]
            )

        send_notification(
            request.user,
            title="New Plan Created",
            message=f"Your {plan.name} plan has been created with {len(entries)} scheduled activities.",
            type=Notification.Type.PLAN_CREATED,
        )
        logger.info("User %s created plan %s with %s activities", request.user.pk, plan.pk, len(entries))
        return Response(PlanSerializer(plan).data, status=status.HTTP_201_CREATED)


class PlanPreviewView(APIView):
    """Run the planner without saving anything."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = PlanInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            entries = generate_plan(serializer.validated_data)
        except PlanGenerationError as exc:
            return _planner_error_response(exc)
        return Response({"entries": [entry.as_dict() for entry in entries]})


class PlanDetailView(generics.RetrieveDestroyAPIView):
    serializer_class = PlanSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return Plan.objects.filter(user=self.request.user).prefetch_related("appointments")
