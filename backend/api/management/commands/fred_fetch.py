"""Management command to run a job using the same stack as the API."""
from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

from django.core.management.base import BaseCommand, CommandError

from backend.api.views import get_adapter_service


class Command(BaseCommand):
    help = "Fetch the latest observation of a FRED series"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--series-id", required=True, help="FRED series identifier, e.g. GDP")
        parser.add_argument("--start", dest="observation_start", help="Observation start date (YYYY-MM-DD)")
        parser.add_argument("--end", dest="observation_end", help="Observation end date (YYYY-MM-DD)")
        parser.add_argument("--units", help="Units transformation code")
        parser.add_argument("--frequency", help="Frequency code")
        parser.add_argument("--job-id", help="Correlation id echoed in the response")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        data = {
            "series_id": options["series_id"],
            "observation_start": options.get("observation_start"),
            "observation_end": options.get("observation_end"),
            "units": options.get("units"),
            "frequency": options.get("frequency"),
        }
        request = {
            "id": options.get("job_id") or uuid4().hex,
            "data": {key: value for key, value in data.items() if value is not None},
        }

        envelope = get_adapter_service().execute(request)
        self.stdout.write(json.dumps(envelope.as_dict()))
        if not envelope.ok:
            raise CommandError(envelope.error)
