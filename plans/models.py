from django.conf import settings
from django.db import models

from common.choices import PlanCategory
from common.models import BaseModel


class Plan(BaseModel):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="plans")
    name = models.CharField(max_length=150)
    goal = models.TextField()
    category = models.CharField(max_length=30, default=PlanCategory.OTHER)
    current_level = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} ({self.user})"
