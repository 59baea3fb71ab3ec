from rest_framework import serializers

from appointments.serializers import AppointmentSerializer
from common.choices import ExperienceLevel, Weekday

from .models import Plan


class PlanInputSerializer(serializers.Serializer):
    """Validates the goal description submitted from the habit form."""

    name = serializers.CharField(min_length=2, max_length=150)
    goal = serializers.CharField(min_length=5)
    category = serializers.CharField(max_length=30)
    current_level = serializers.CharField(min_length=5)
    experience = serializers.ChoiceField(choices=ExperienceLevel.choices)
    frequency = serializers.IntegerField(min_value=1, max_value=7)
    preferred_days = serializers.ListField(
        child=serializers.ChoiceField(choices=Weekday.choices),
        allow_empty=True,
    )
    constraints = serializers.CharField(required=False, allow_blank=True, default="")
    preferences = serializers.CharField(allow_blank=True)
    duration = serializers.IntegerField(min_value=1, max_value=52, help_text="Plan length in weeks")
    specific_details = serializers.DictField(
        child=serializers.CharField(allow_blank=True),
        required=False,
    )


class PlanEntrySerializer(serializers.Serializer):
    """Shape of a single entry returned by the planner model."""

    date_start = serializers.DateField(input_formats=["%Y-%m-%d", "iso-8601"])
    details = serializers.CharField(min_length=1)
    amount = serializers.FloatField(min_value=0)
    measure_unit = serializers.CharField(min_length=1)


class PlanSerializer(serializers.ModelSerializer):
    appointments = AppointmentSerializer(many=True, read_only=True)

    class Meta:
        model = Plan
        fields = [
            "id",
            "name",
            "goal",
            "category",
            "current_level",
            "created_at",
            "updated_at",
            "appointments",
        ]
        read_only_fields = fields
