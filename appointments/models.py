from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from common.models import BaseModel
from common.validators import validate_reminder_minutes


class Appointment(BaseModel):
    """A single scheduled activity belonging to a plan."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='appointments')
    plan = models.ForeignKey('plans.Plan', on_delete=models.CASCADE, related_name='appointments')
    scheduled_for = models.DateTimeField(db_index=True)
    details = models.TextField()
    amount = models.PositiveIntegerField(default=1)
    measure_unit = models.CharField(max_length=50)
    completed = models.BooleanField(default=False)
    is_reminder_sent = models.BooleanField(default=False)

    class Meta:
        ordering = ['scheduled_for']

    def __str__(self):
        start_time = timezone.localtime(self.scheduled_for)
        return f"{self.details} | {start_time:%Y-%m-%d %H:%M} | done: {self.completed}"

    def clean(self):
        if self.plan_id and self.user_id and self.plan.user_id != self.user_id:
            raise ValidationError("Appointment and plan must belong to the same user.")


class CalendarIntegration(BaseModel):
    """Per-user export preferences for the calendar integration."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='calendar_integration',
    )
    export_as_task = models.BooleanField(default=False)
    include_amount = models.BooleanField(default=True)
    include_measure_unit = models.BooleanField(default=True)
    add_reminders = models.BooleanField(default=True)
    reminder_minutes = models.PositiveIntegerField(default=30, validators=[validate_reminder_minutes])
    last_synced_at = models.DateTimeField(blank=True, null=True)

    def __str__(self):
        target = "tasks" if self.export_as_task else "calendar"
        return f"{self.user} -> {target} | last sync: {self.last_synced_at}"

    def touch_synced(self, when=None):
        self.last_synced_at = when or timezone.now()
        self.save(update_fields=['last_synced_at', 'updated_at'])
