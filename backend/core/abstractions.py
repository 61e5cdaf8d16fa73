"""Core abstractions for the economic series domain."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol


DEFAULT_UNITS_LABEL = "Percent Change"


class MeasurementStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class QueryParameters:
    """Validated projection of an inbound job request.

    Optional fields stay ``None`` when the caller omitted them; provider
    defaults are applied only when the query is issued.
    """

    series_id: str
    observation_start: Optional[str] = None
    observation_end: Optional[str] = None
    units: Optional[str] = None
    frequency: Optional[str] = None


@dataclass(frozen=True, slots=True)
class NormalizedResult:
    """Latest observation of a series as returned to the caller."""

    value: float
    timestamp: int
    series_id: str
    units: str
    observation_date: date

    def as_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "timestamp": self.timestamp,
            "series_id": self.series_id,
            "units": self.units,
        }


@dataclass(slots=True)
class Measurement:
    """Locally persisted record of a fetched observation."""

    value: Optional[float]
    date: Optional[date]
    series_id: str
    units: str = DEFAULT_UNITS_LABEL
    status: MeasurementStatus = MeasurementStatus.PENDING
    error_message: Optional[str] = None
    id: Optional[int] = None


class ObservationFetcher(Protocol):
    """A data source returning raw observations for a series."""

    def get_observations(self, params: QueryParameters) -> Dict[str, Any]:
        """Return the provider payload, ``{"observations": [...]}``."""
        ...


class MeasurementRepository(Protocol):
    """Storage engine for measurements."""

    def insert(self, measurement: Measurement) -> int:
        ...

    def update_status(
        self, measurement_id: int, status: MeasurementStatus, error_message: Optional[str] = None
    ) -> None:
        ...

    def latest(self) -> Optional[Measurement]:
        ...

    def by_date_range(self, start: date, end: date) -> List[Measurement]:
        ...

    def delete_older_than(self, cutoff: date) -> int:
        ...


__all__ = [
    "DEFAULT_UNITS_LABEL",
    "Measurement",
    "MeasurementRepository",
    "MeasurementStatus",
    "NormalizedResult",
    "ObservationFetcher",
    "QueryParameters",
]
