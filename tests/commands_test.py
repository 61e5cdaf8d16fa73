from __future__ import annotations

import json
from datetime import date
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import override_settings

from backend.api import views


FRED_URL = "https://fred.test/fred/series/observations"


@pytest.fixture(autouse=True)
def fresh_services():
    views.get_recorder.cache_clear()
    views.get_adapter_service.cache_clear()
    yield
    views.get_recorder.cache_clear()
    views.get_adapter_service.cache_clear()


def test_fred_fetch_prints_envelope(requests_mock):
    requests_mock.get(FRED_URL, json={"observations": [{"date": "2024-01-01", "value": "1.6"}]})
    out = StringIO()

    call_command("fred_fetch", "--series-id", "GDP", "--units", "pch", "--job-id", "cli-1", stdout=out)

    payload = json.loads(out.getvalue())
    assert payload["jobRunID"] == "cli-1"
    assert payload["result"]["value"] == 1.6
    assert payload["result"]["units"] == "pch"
    assert "units=pch" in requests_mock.last_request.url


def test_fred_fetch_fails_on_errored_envelope(requests_mock):
    requests_mock.get(FRED_URL, json={"observations": []})

    with pytest.raises(CommandError, match="No observations found"):
        call_command("fred_fetch", "--series-id", "GDP", stdout=StringIO())


def test_prune_measurements(database_url, repository, recorder):
    for month in (1, 2, 3):
        recorder.record(series_id="GDP", value=1.0, observation_date=date(2023, month, 1))
    out = StringIO()

    with override_settings(MEASUREMENTS_DATABASE_URL=database_url):
        call_command("prune_measurements", "--before", "2023-03-01", stdout=out)

    assert "Deleted 2 measurements" in out.getvalue()
    assert repository.count() == 1


def test_prune_requires_store():
    with override_settings(MEASUREMENTS_DATABASE_URL=None):
        with pytest.raises(CommandError, match="MEASUREMENTS_DATABASE_URL"):
            call_command("prune_measurements", "--before", "2023-03-01", stdout=StringIO())


def test_prune_rejects_bad_cutoff():
    with pytest.raises(CommandError, match="Invalid --before date"):
        call_command("prune_measurements", "--before", "2023-02-30", stdout=StringIO())
