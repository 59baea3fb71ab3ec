from rest_framework import serializers

from appointments.models import CalendarIntegration
from common.validators import REMINDER_MINUTES_MAX, REMINDER_MINUTES_MIN


class CalendarIntegrationSerializer(serializers.ModelSerializer):
    reminder_minutes = serializers.IntegerField(
        min_value=REMINDER_MINUTES_MIN,
        max_value=REMINDER_MINUTES_MAX,
        required=False,
    )

    class Meta:
        model = CalendarIntegration
        fields = [
            "export_as_task",
            "include_amount",
            "include_measure_unit",
            "add_reminders",
            "reminder_minutes",
            "last_synced_at",
        ]
        read_only_fields = ["last_synced_at"]


class CalendarExportSerializer(serializers.Serializer):
    """Export request. Formatting flags left out fall back to the saved settings."""

    appointment_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        min_length=1,
        max_length=500,
    )
    export_as_task = serializers.BooleanField(required=False)
    include_amount = serializers.BooleanField(required=False)
    include_measure_unit = serializers.BooleanField(required=False)
    add_reminders = serializers.BooleanField(required=False)
    reminder_minutes = serializers.IntegerField(
        min_value=REMINDER_MINUTES_MIN,
        max_value=REMINDER_MINUTES_MAX,
        required=False,
    )

    def validate_appointment_ids(self, value):
        return list(dict.fromkeys(value))

