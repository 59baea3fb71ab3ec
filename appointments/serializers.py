from rest_framework import serializers

from plans.models import Plan

from .models import Appointment


class AppointmentSerializer(serializers.ModelSerializer):
    plan = serializers.PrimaryKeyRelatedField(queryset=Plan.objects.all())
    plan_name = serializers.CharField(source="plan.name", read_only=True)
    details = serializers.CharField(min_length=3)
    amount = serializers.IntegerField(min_value=1)
    measure_unit = serializers.CharField(min_length=1, max_length=50)

    class Meta:
        model = Appointment
        fields = [
            "id",
            "plan",
            "plan_name",
            "scheduled_for",
            "details",
            "amount",
            "measure_unit",
            "completed",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["plan_name", "created_at", "updated_at"]

    def validate_plan(self, plan):
        request = self.context.get("request")
        if request is not None and plan.user_id != request.user.id:
            raise serializers.ValidationError("Plan not found.")
        return plan
