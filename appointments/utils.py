from datetime import datetime
from typing import Mapping

from django.db.models import QuerySet

from rest_framework.exceptions import ValidationError

TRUE_VALUES = {"1", "true", "yes"}
FALSE_VALUES = {"0", "false", "no"}


def _parse_date(value: str):
    return datetime.strptime(value, "%Y-%m-%d").date()


def filter_appointments(queryset: QuerySet, params: Mapping[str, str]) -> QuerySet:
    """Apply Appointment list filters based on query parameters.

    Supported filters:
        - plan: plan id
        - start_date / end_date: ISO format YYYY-MM-DD, inclusive, on scheduled_for
        - completed: true/false
    """

    errors = {}

    plan_id = None
    plan_value = params.get("plan")
    if plan_value not in (None, ""):
        try:
            plan_id = int(plan_value)
        except (TypeError, ValueError):
            errors["plan"] = "Plan must be a numeric id."

    start_date = None
    start_value = params.get("start_date")
    if start_value:
        try:
            start_date = _parse_date(start_value)
        except ValueError:
            errors["start_date"] = "Invalid date format. Use YYYY-MM-DD."

    end_date = None
    end_value = params.get("end_date")
    if end_value:
        try:
            end_date = _parse_date(end_value)
        except ValueError:
            errors["end_date"] = "Invalid date format. Use YYYY-MM-DD."

    if start_date and end_date and start_date > end_date:
        errors["date_range"] = "start_date cannot be after end_date."

    completed = None
    completed_value = params.get("completed")
    if completed_value not in (None, ""):
        lowered = str(completed_value).lower()
        if lowered in TRUE_VALUES:
            completed = True
        elif lowered in FALSE_VALUES:
            completed = False
        else:
            errors["completed"] = "completed must be true or false."

    if errors:
        raise ValidationError(errors)

    if plan_id is not None:
        queryset = queryset.filter(plan_id=plan_id)
    if start_date:
        queryset = queryset.filter(scheduled_for__date__gte=start_date)
    if end_date:
        queryset = queryset.filter(scheduled_for__date__lte=end_date)
    if completed is not None:
        queryset = queryset.filter(completed=completed)

    return queryset
