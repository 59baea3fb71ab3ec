import os
from collections import defaultdict
from typing import Dict, Iterable, List

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = "Report presence of environment variables for the database, Google export and the planner."

    def handle(self, *args, **options):
        grouped: Dict[str, List[str]] = defaultdict(list)
        missing_required = False

        for requirement in self._build_requirements():
            group = requirement["group"]
            key = requirement["key"]
            note = requirement["note"]
            value = os.environ.get(key)

            if self._is_required(requirement) and not value:
                missing_required = True
                grouped[group].append(self.style.ERROR(f"✗ {key}: missing ({note})"))
            elif value:
                grouped[group].append(self.style.SUCCESS(f"✓ {key}: set"))
            else:
                grouped[group].append(self.style.WARNING(f"• {key}: optional ({note})"))

        for group, lines in grouped.items():
            self.stdout.write("")
            self.stdout.write(self.style.MIGRATE_HEADING(group))
            for line in lines:
                self.stdout.write(f"  {line}")

        if missing_required:
            raise CommandError("Missing required environment variables. See messages above.")

        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS("All required environment variables are set."))

    def _build_requirements(self) -> Iterable[Dict[str, object]]:
        return [
            {"group": "Core", "key": "SECRET_KEY", "note": "Django crypto key, also derives the token encryption key", "required": True},
            {"group": "Core", "key": "FIELD_ENCRYPTION_KEY", "note": "Separate key for stored OAuth tokens", "required": False},
            {"group": "Database", "key": "DB_NAME", "note": "PostgreSQL database name; SQLite is used when unset", "required": False},
            {"group": "Database", "key": "DB_USER", "note": "Database username", "required": self._database_required},
            {"group": "Database", "key": "DB_PASSWORD", "note": "Database password", "required": self._database_required},
            {"group": "Google", "key": "GOOGLE_OAUTH_CLIENT_ID", "note": "OAuth client for Calendar/Tasks export", "required": False},
            {
                "group": "Google",
                "key": "GOOGLE_OAUTH_CLIENT_SECRET",
                "note": "OAuth client secret",
                "required": self._google_secret_required,
            },
            {"group": "Google", "key": "GOOGLE_OAUTH_REDIRECT_URI", "note": "Callback URL registered with Google", "required": False},
            {"group": "Google", "key": "CALENDAR_OAUTH_COMPLETE_URL", "note": "Frontend page to land on after the callback", "required": False},
            {"group": "AI", "key": "OPENAI_API_KEY", "note": "API key for plan generation", "required": False},
            {"group": "AI", "key": "OPENAI_PLANNER_MODEL", "note": "Chat model used by the planner", "required": False},
            {"group": "Caching", "key": "REDIS_URL", "note": "Redis URL for cache, channel layer & Celery broker", "required": False},
        ]

    def _is_required(self, requirement: Dict[str, object]) -> bool:
        flag = requirement.get("required", False)
        if callable(flag):
            return bool(flag())
        return bool(flag)

    def _database_required(self) -> bool:
        return bool(os.environ.get("DB_NAME"))

    def _google_secret_required(self) -> bool:
        return bool(getattr(settings, "GOOGLE_OAUTH_CLIENT_ID", ""))
