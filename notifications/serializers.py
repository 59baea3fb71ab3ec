from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    read = serializers.BooleanField(source="is_read", read_only=True)

    class Meta:
        model = Notification
        fields = [
            "id",
            "user",
            "title",
            "message",
            "type",
            "status",
            "read",
            "link",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "user", "status", "read", "created_at", "updated_at"]

    def validate_title(self, value):
        if len(value.strip()) < 2:
            raise serializers.ValidationError("Title must be at least 2 characters.")
        return value

    def validate_message(self, value):
        if len(value.strip()) < 5:
            raise serializers.ValidationError("Message must be at least 5 characters.")
        return value


class NotificationReadSerializer(serializers.Serializer):
    read = serializers.BooleanField(default=True)
