from django.db import models
from django.utils.translation import gettext_lazy as _


class PlanCategory(models.TextChoices):
    FITNESS = 'fitness', _('Fitness')
    LEARNING = 'learning', _('Learning')
    PRODUCTIVITY = 'productivity', _('Productivity')
    MINDFULNESS = 'mindfulness', _('Mindfulness')
    CREATIVE = 'creative', _('Creative')
    OTHER = 'other', _('Other')


class ExperienceLevel(models.TextChoices):
    BEGINNER = 'beginner', _('Beginner')
    INTERMEDIATE = 'intermediate', _('Intermediate')
    ADVANCED = 'advanced', _('Advanced')


class Weekday(models.TextChoices):
    MONDAY = 'monday', _('Monday')
    TUESDAY = 'tuesday', _('Tuesday')
    WEDNESDAY = 'wednesday', _('Wednesday')
    THURSDAY = 'thursday', _('Thursday')
    FRIDAY = 'friday', _('Friday')
    SATURDAY = 'saturday', _('Saturday')
    SUNDAY = 'sunday', _('Sunday')


class CalendarProvider(models.TextChoices):
    GOOGLE = 'google', _('Google')
