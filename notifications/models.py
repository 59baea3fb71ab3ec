from django.conf import settings
from django.db import models


class Notification(models.Model):
    """In-app message shown in the user's notification tab."""

    class Type(models.TextChoices):
        GENERAL = "general", "General"
        PLAN_CREATED = "plan_created", "Plan Created"
        ACTIVITY_REMINDER = "activity_reminder", "Activity Reminder"
        CALENDAR_CONNECTED = "calendar_connected", "Calendar Connected"
        CALENDAR_DISCONNECTED = "calendar_disconnected", "Calendar Disconnected"
        CALENDAR_EXPORT = "calendar_export", "Calendar Export"

    class Status(models.TextChoices):
        UNREAD = "unread", "Unread"
        READ = "read", "Read"

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    title = models.CharField(max_length=200)
    message = models.TextField()
    type = models.CharField(max_length=50, choices=Type.choices, default=Type.GENERAL)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.UNREAD)
    link = models.URLField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.user.get_full_name()} - {self.title}"

    @property
    def is_read(self):
        return self.status == self.Status.READ

    def set_read(self, read=True):
        self.status = self.Status.READ if read else self.Status.UNREAD
        self.save(update_fields=["status", "updated_at"])
