"""Prompt construction and response parsing around the hosted planning model."""

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from django.conf import settings
from django.utils import timezone
from openai import OpenAI, OpenAIError

from .serializers import PlanEntrySerializer

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
GENERIC_ERROR_MESSAGE = "Failed to generate plan. Please try again."

_client: Optional[OpenAI] = None


class PlanGenerationError(Exception):
    """Raised when the planner cannot produce a usable plan."""


@dataclass(frozen=True)
class PlanEntry:
    date_start: date
    details: str
    amount: int
    measure_unit: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "date_start": self.date_start.isoformat(),
            "details": self.details,
            "amount": self.amount,
            "measure_unit": self.measure_unit,
        }


def _get_openai_client() -> OpenAI:
    """Lazily create an OpenAI client when the API key is configured."""

    api_key = getattr(settings, "OPENAI_API_KEY", "")
    if not api_key:
        raise PlanGenerationError("OpenAI API key is not configured. Set OPENAI_API_KEY to enable planning.")
    global _client
    if _client is None:
        _client = OpenAI(api_key=api_key)
    return _client


CATEGORY_GUIDANCE = {
    "fitness": (
        "This is a fitness-related goal. Consider:\n"
        "- Progressive overload principles\n"
        "- Rest and recovery days\n"
        "- Variety in exercise types\n"
        "- Appropriate intensity based on experience level ({experience})"
    ),
    "learning": (
        "This is a learning-related goal. Consider:\n"
        "- Spaced repetition for knowledge retention\n"
        "- Mix of theory and practical application\n"
        "- Increasing complexity over time\n"
        "- Resources needed for each learning session"
    ),
    "productivity": (
        "This is a productivity-related goal. Consider:\n"
        "- Time blocking techniques\n"
        "- Task prioritization methods\n"
        "- Accountability measures\n"
        "- Balancing focus work with breaks"
    ),
    "mindfulness": (
        "This is a mindfulness-related goal. Consider:\n"
        "- Gradual increase in meditation duration\n"
        "- Variety of mindfulness practices\n"
        "- Integration into daily routine\n"
        "- Progress indicators beyond time spent"
    ),
    "creative": (
        "This is a creative goal. Consider:\n"
        "- Skill-building exercises\n"
        "- Project milestones\n"
        "- Inspiration sources\n"
        "- Feedback opportunities"
    ),
}

DEFAULT_GUIDANCE = (
    "Consider the specific nature of this goal and create appropriate activities "
    "that will help the user progress steadily toward their objective."
)

SYSTEM_INSTRUCTION = (
    "You are a planning assistant. Reply with a JSON object of the form "
    '{"entries": [{"date_start": "YYYY-MM-DD", "details": string, '
    '"amount": number, "measure_unit": string}]} and nothing else.'
)


def build_plan_prompt(plan_input: Mapping[str, Any], today: Optional[date] = None) -> str:
    """Render the planning prompt for validated ``plan_input``."""

    today = today or timezone.localdate()
    category = str(plan_input.get("category", "")).lower()
    guidance = CATEGORY_GUIDANCE.get(category, DEFAULT_GUIDANCE).format(
        experience=plan_input.get("experience", "")
    )
    preferred_days = ", ".join(plan_input.get("preferred_days") or []) or "Any"

    lines = [
        "Create a personalized plan based on the following information:",
        "",
        f"Name: {plan_input['name']}",
        f"Goal: {plan_input['goal']}",
        f"Category: {plan_input['category']}",
        f"Current Level: {plan_input['current_level']}",
        f"Experience Level: {plan_input['experience']}",
        f"Preferred Frequency: {plan_input['frequency']} days per week",
        f"Preferred Days: {preferred_days}",
        f"Constraints or Limitations: {plan_input.get('constraints') or 'None'}",
        f"Preferences: {plan_input.get('preferences', '')}",
        f"Duration: {plan_input['duration']} weeks",
        "",
        guidance,
    ]
    specific_details = plan_input.get("specific_details")
    if specific_details:
        lines += ["", f"Additional Details: {json.dumps(specific_details, sort_keys=True)}"]
    lines += [
        "",
        f"Today's date is {today.isoformat()}. Generate a structured plan with calendar entries "
        f"starting from today and extending for {plan_input['duration']} weeks. Each entry should "
        "include a start date, details of the activity, an amount (numeric value), and a "
        "measurement unit appropriate for the category and activity.",
        "",
        "The plan should be progressive, realistic, and tailored to the user's current level. "
        f"Prioritize scheduling activities on the user's preferred days ({preferred_days}) when possible.",
    ]
    return "\n".join(lines)


def parse_plan_response(content: str) -> List[PlanEntry]:
    """Shape-validate the model's JSON answer and return the entries."""

    try:
        payload = json.loads(content)
    except (TypeError, ValueError) as exc:
        raise PlanGenerationError("Planner returned invalid JSON.") from exc

    entries = payload.get("entries") if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        raise PlanGenerationError("Planner response has no entries list.")

    serializer = PlanEntrySerializer(data=entries, many=True)
    if not serializer.is_valid():
        logger.warning("Planner response failed validation: %s", serializer.errors)
        raise PlanGenerationError("Planner response has an unexpected shape.")

    return [
        PlanEntry(
            date_start=item["date_start"],
            details=item["details"],
            amount=max(1, round(item["amount"])),
            measure_unit=item["measure_unit"],
        )
        for item in serializer.validated_data
    ]


def generate_plan(plan_input: Mapping[str, Any], today: Optional[date] = None) -> List[PlanEntry]:
    """Ask the planning model for a schedule. One request, no retries."""

    prompt = build_plan_prompt(plan_input, today=today)
    model = getattr(settings, "OPENAI_PLANNER_MODEL", "") or DEFAULT_MODEL
    logger.info("Requesting plan | Category: %s | Duration: %s weeks", plan_input.get("category"), plan_input.get("duration"))

    try:
        client = _get_openai_client()
        response = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.7,
        )
        content = response.choices[0].message.content
    except OpenAIError as exc:
        logger.error("Planner request failed: %s", exc)
        raise PlanGenerationError(GENERIC_ERROR_MESSAGE) from exc

    entries = parse_plan_response(content)
    if not entries:
        raise PlanGenerationError("Planner returned an empty plan.")
    logger.info("Received plan with %s entries", len(entries))
    return entries
