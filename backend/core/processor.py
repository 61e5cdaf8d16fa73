"""Selection and normalization of the latest provider observation."""
from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from backend.core.abstractions import DEFAULT_UNITS_LABEL, NormalizedResult, QueryParameters
from backend.core.validator import parse_calendar_date


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)
MIN_TIMESTAMP_MS = 0
MAX_TIMESTAMP_MS = (datetime(2100, 12, 31, 23, 59, 59, 999000, tzinfo=timezone.utc) - EPOCH) // _MILLISECOND

_NUMBER_RE = re.compile(r"^[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?$")


class NormalizationError(ValueError):
    """Raised when the provider payload cannot be turned into a result."""

    def __init__(
        self,
        message: str,
        *,
        observation_date: Optional[date] = None,
        observation: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.observation_date = observation_date
        self.observation = observation


class NoObservationsError(NormalizationError):
    def __init__(self) -> None:
        super().__init__("No observations found")


class InvalidDateError(NormalizationError):
    def __init__(self, observation: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__("Invalid timestamp", observation=observation)


class InvalidValueError(NormalizationError):
    def __init__(self, observation_date: date, observation: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__("Invalid value", observation_date=observation_date, observation=observation)


def select_latest(payload: Any) -> Mapping[str, Any]:
    """Return the authoritative observation of a provider payload.

    The provider returns observations in ascending date order, so the last
    element is the latest one. The list is not re-sorted here.
    """
    observations = payload.get("observations") if isinstance(payload, Mapping) else None
    if not isinstance(observations, list) or not observations:
        raise NoObservationsError()
    latest = observations[-1]
    if not isinstance(latest, Mapping):
        raise InvalidDateError()
    return latest


def to_epoch_millis(day: date) -> int:
    midnight = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return (midnight - EPOCH) // _MILLISECOND


def parse_observation_date(observation: Mapping[str, Any]) -> date:
    raw = observation.get("date")
    day = parse_calendar_date(raw) if isinstance(raw, str) else None
    if day is None:
        raise InvalidDateError(observation)
    timestamp = to_epoch_millis(day)
    if not MIN_TIMESTAMP_MS <= timestamp <= MAX_TIMESTAMP_MS:
        raise InvalidDateError(observation)
    return day


def parse_observation_value(observation: Mapping[str, Any], day: date) -> float:
    raw = observation.get("value")
    if isinstance(raw, bool):
        raise InvalidValueError(day, observation)
    try:
        if isinstance(raw, (int, float)):
            value = float(raw)
        elif isinstance(raw, str) and _NUMBER_RE.fullmatch(raw.strip()):
            value = float(raw.strip())
        else:
            raise InvalidValueError(day, observation)
    except OverflowError:
        raise InvalidValueError(day, observation) from None
    if not math.isfinite(value):
        raise InvalidValueError(day, observation)
    return value


def process_observations(payload: Any, params: QueryParameters) -> NormalizedResult:
    """Pick the latest observation and normalize its value and timestamp.

    The date is checked before the value, so an observation with both a bad
    date and a bad value reports the date.
    """
    observation = select_latest(payload)
    day = parse_observation_date(observation)
    value = parse_observation_value(observation, day)
    return NormalizedResult(
        value=value,
        timestamp=to_epoch_millis(day),
        series_id=params.series_id,
        units=params.units or DEFAULT_UNITS_LABEL,
        observation_date=day,
    )


__all__ = [
    "InvalidDateError",
    "InvalidValueError",
    "MAX_TIMESTAMP_MS",
    "MIN_TIMESTAMP_MS",
    "NoObservationsError",
    "NormalizationError",
    "process_observations",
    "select_latest",
    "to_epoch_millis",
]
