from django.core.exceptions import ValidationError

REMINDER_MINUTES_MIN = 5
REMINDER_MINUTES_MAX = 120


def validate_reminder_minutes(value):
    if value < REMINDER_MINUTES_MIN or value > REMINDER_MINUTES_MAX:
        raise ValidationError(
            f"reminder_minutes must be between {REMINDER_MINUTES_MIN} and {REMINDER_MINUTES_MAX}."
        )
