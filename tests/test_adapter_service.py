from __future__ import annotations

from datetime import date, datetime, timezone
from unittest import mock

import pytest

from backend.core.abstractions import MeasurementStatus
from backend.core.models import PersistenceError, SQLMeasurementRepository, SessionFactory
from backend.core.providers.base import ProviderError
from backend.core.services.adapter_service import AdapterService
from backend.core.services.recorder import MeasurementRecorder


PAYLOAD = {
    "observations": [
        {"date": "2023-11-01", "value": "2.0"},
        {"date": "2023-12-01", "value": "2.5"},
    ]
}
DEC_1_MILLIS = int(datetime(2023, 12, 1, tzinfo=timezone.utc).timestamp() * 1000)


def gdp_request(**data):
    return {"id": "1", "data": {"series_id": "GDP", **data}}


def test_successful_job(make_fetcher):
    fetcher = make_fetcher(PAYLOAD)
    service = AdapterService(fetcher)

    envelope = service.execute(gdp_request())

    assert envelope.as_dict() == {
        "jobRunID": "1",
        "statusCode": 200,
        "status": "success",
        "result": {
            "value": 2.5,
            "timestamp": DEC_1_MILLIS,
            "series_id": "GDP",
            "units": "Percent Change",
        },
        "data": PAYLOAD,
    }
    assert fetcher.calls[0].series_id == "GDP"
    assert fetcher.calls[0].units is None


def test_validation_failure_skips_fetch(make_fetcher, recorder, repository):
    fetcher = make_fetcher(PAYLOAD)
    service = AdapterService(fetcher, recorder)

    envelope = service.execute({"id": "1", "data": {"series_id": "  "}})

    assert envelope.status == "errored"
    assert envelope.status_code == 500
    assert envelope.job_run_id == "1"
    assert "series_id is required" in envelope.error
    assert fetcher.calls == []
    assert repository.count() == 0


def test_provider_error_is_surfaced_verbatim(make_fetcher, recorder, repository):
    service = AdapterService(make_fetcher(error=ProviderError("FRED API Error: Rate limit exceeded")), recorder)

    envelope = service.execute(gdp_request())

    assert envelope.as_dict() == {
        "jobRunID": "1",
        "statusCode": 500,
        "status": "errored",
        "error": "FRED API Error: Rate limit exceeded",
    }
    assert repository.count() == 0


def test_unexpected_fetch_fault_still_yields_envelope(make_fetcher):
    service = AdapterService(make_fetcher(error=KeyError("observations")))

    envelope = service.execute(gdp_request())

    assert envelope.status == "errored"
    assert envelope.status_code == 500
    assert envelope.error


@pytest.mark.parametrize(
    "payload,message",
    [
        ({"observations": []}, "No observations found"),
        ({}, "No observations found"),
        ({"observations": [{"date": "2023-12-01", "value": "invalid"}]}, "Invalid value"),
        ({"observations": [{"date": "invalid-date", "value": "2.5"}]}, "Invalid timestamp"),
    ],
)
def test_normalization_failures(make_fetcher, payload, message):
    envelope = AdapterService(make_fetcher(payload)).execute(gdp_request())

    assert envelope.status == "errored"
    assert envelope.status_code == 500
    assert envelope.error == message
    assert envelope.result is None


def test_success_records_processed_measurement(make_fetcher, recorder, repository):
    service = AdapterService(make_fetcher(PAYLOAD), recorder)

    envelope = service.execute(gdp_request(units="lin"))

    assert envelope.ok
    stored = repository.latest()
    assert stored.value == 2.5
    assert stored.date == date(2023, 12, 1)
    assert stored.units == "lin"
    assert stored.status is MeasurementStatus.PROCESSED


def test_invalid_value_records_error_measurement(make_fetcher, recorder, repository):
    payload = {"observations": [{"date": "2023-12-01", "value": "invalid"}]}
    service = AdapterService(make_fetcher(payload), recorder)

    envelope = service.execute(gdp_request())

    assert envelope.error == "Invalid value"
    rows = repository.by_date_range(date(2023, 12, 1), date(2023, 12, 1))
    assert len(rows) == 1
    assert rows[0].status is MeasurementStatus.ERROR
    assert rows[0].error_message == "Invalid value"
    assert rows[0].value is None
    assert repository.latest() is None


def test_repeated_requests_create_independent_rows(make_fetcher, recorder, repository):
    service = AdapterService(make_fetcher(PAYLOAD), recorder)

    first = service.execute(gdp_request())
    second = service.execute(gdp_request())

    assert first.result.value == second.result.value
    assert first.result.timestamp == second.result.timestamp
    rows = repository.by_date_range(date(2023, 12, 1), date(2023, 12, 1))
    assert len(rows) == 2
    assert rows[0].id != rows[1].id
    assert all(row.status is MeasurementStatus.PROCESSED for row in rows)


def test_unavailable_store_does_not_change_response(make_fetcher, tmp_path):
    baseline = AdapterService(make_fetcher(PAYLOAD)).execute(gdp_request())

    broken_factory = SessionFactory(f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}", "?", "sqlite")
    recorder = MeasurementRecorder(SQLMeasurementRepository(broken_factory))
    envelope = AdapterService(make_fetcher(PAYLOAD), recorder).execute(gdp_request())

    assert envelope == baseline
    assert envelope.as_dict() == baseline.as_dict()


def test_failing_status_update_does_not_change_response(make_fetcher):
    repository = mock.Mock()
    repository.insert.return_value = 11
    repository.update_status.side_effect = PersistenceError("lost connection")
    service = AdapterService(make_fetcher(PAYLOAD), MeasurementRecorder(repository))

    envelope = service.execute(gdp_request())

    assert envelope.ok
    assert envelope.status_code == 200
    repository.update_status.assert_called_once_with(11, MeasurementStatus.PROCESSED, None)


def test_failed_insert_skips_status_advance(make_fetcher):
    repository = mock.Mock()
    repository.insert.side_effect = PersistenceError("database is down")
    payload = {"observations": [{"date": "2023-12-01", "value": "invalid"}]}
    service = AdapterService(make_fetcher(payload), MeasurementRecorder(repository))

    envelope = service.execute(gdp_request())

    assert envelope.error == "Invalid value"
    repository.update_status.assert_not_called()


def test_out_of_range_request_date_yields_envelope(make_fetcher):
    fetcher = make_fetcher(PAYLOAD)

    envelope = AdapterService(fetcher).execute(gdp_request(observation_start="0001-01-01T00:00:00+01:00"))

    assert envelope.status_code == 500
    assert envelope.error == "Invalid observation_start format"
    assert fetcher.calls == []


@pytest.mark.parametrize(
    "observation,message",
    [
        ({"date": "9999-12-31T23:00:00-05:00", "value": "1.0"}, "Invalid timestamp"),
        ({"date": "2023-12-01", "value": 10**400}, "Invalid value"),
    ],
)
def test_overflowing_observations_yield_envelope(make_fetcher, observation, message):
    envelope = AdapterService(make_fetcher({"observations": [observation]})).execute(gdp_request())

    assert envelope.status == "errored"
    assert envelope.status_code == 500
    assert envelope.error == message
