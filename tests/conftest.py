from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from requests_mock import Mocker

from backend.core.abstractions import QueryParameters
from backend.core.models import SQLMeasurementRepository, build_session_factory
from backend.core.services.recorder import MeasurementRecorder


class StubFetcher:
    """Returns a canned payload or raises a canned error."""

    def __init__(self, payload: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None) -> None:
        self.payload = payload
        self.error = error
        self.calls: List[QueryParameters] = []

    def get_observations(self, params: QueryParameters) -> Dict[str, Any]:
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def requests_mock():
    with Mocker() as mock:
        yield mock


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'measurements.db'}"


@pytest.fixture
def repository(database_url) -> SQLMeasurementRepository:
    return SQLMeasurementRepository(build_session_factory(database_url))


@pytest.fixture
def recorder(repository) -> MeasurementRecorder:
    return MeasurementRecorder(repository)


@pytest.fixture
def make_fetcher():
    return StubFetcher
