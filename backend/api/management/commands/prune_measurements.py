"""Management command deleting measurements older than a cutoff day."""
from __future__ import annotations

from typing import Any

from django.core.management.base import BaseCommand, CommandError

from backend.api.views import get_recorder
from backend.core.models import PersistenceError
from backend.core.validator import parse_calendar_date


class Command(BaseCommand):
    help = "Delete stored measurements dated before the given day"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--before", required=True, help="Cutoff day (YYYY-MM-DD), exclusive")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        cutoff = parse_calendar_date(options["before"])
        if cutoff is None:
            raise CommandError("Invalid --before date")

        recorder = get_recorder()
        if recorder is None:
            raise CommandError("MEASUREMENTS_DATABASE_URL is not configured")

        try:
            deleted = recorder.delete_older_than(cutoff)
        except PersistenceError as exc:
            raise CommandError(str(exc)) from exc
        self.stdout.write(f"Deleted {deleted} measurements")
