"""Validation of inbound job requests into query parameters."""
from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping, Optional

import pydantic
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from backend.core.abstractions import QueryParameters


VALID_UNITS = frozenset({"lin", "chg", "ch1", "pch", "pc1", "pca", "cch", "cca", "log"})
VALID_FREQUENCIES = frozenset({"d", "w", "bw", "m", "q", "sa", "a"})

_DATE_RE = re.compile(r"^([0-9]{4})-([0-9]{1,2})-([0-9]{1,2})$")


class ValidationError(ValueError):
    """Raised when a request field is missing or malformed."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


def parse_utc_datetime(value: str) -> Optional[datetime]:
    """Parse ``YYYY-MM-DD`` or an ISO-8601 timestamp into an aware UTC datetime.

    Returns ``None`` when the text does not name a real calendar day.
    """
    text = value.strip()
    match = _DATE_RE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        if year < 1 or not 1 <= month <= 12:
            return None
        if not 1 <= day <= calendar.monthrange(year, month)[1]:
            return None
        return datetime(year, month, day, tzinfo=timezone.utc)
    if "T" not in text or not text.isascii():
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def parse_calendar_date(value: str) -> Optional[date]:
    parsed = parse_utc_datetime(value)
    return parsed.date() if parsed is not None else None


def is_valid_date(value: str) -> bool:
    return parse_utc_datetime(value) is not None


def is_valid_unit(value: str) -> bool:
    return value in VALID_UNITS


def is_valid_frequency(value: str) -> bool:
    return value in VALID_FREQUENCIES


def _optional(value: Any, field: str, check: Callable[[str], bool]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Invalid {field} format", field=field)
    value = value.strip()
    if not value:
        return None
    if not check(value):
        raise ValidationError(f"Invalid {field} format", field=field)
    return value


class JobRequestData(BaseModel):
    """Schema of the ``data`` member of a job request."""

    series_id: Optional[str] = Field(default=None, validate_default=True)
    observation_start: Optional[str] = Field(default=None)
    observation_end: Optional[str] = Field(default=None)
    units: Optional[str] = Field(default=None)
    frequency: Optional[str] = Field(default=None)

    @field_validator("series_id", mode="before")
    @classmethod
    def _require_series_id(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("series_id is required", field="series_id")
        return value.strip()

    @field_validator("observation_start", "observation_end", mode="before")
    @classmethod
    def _validate_date(cls, value: Any, info: ValidationInfo) -> Optional[str]:
        return _optional(value, info.field_name, is_valid_date)

    @field_validator("units", mode="before")
    @classmethod
    def _validate_units(cls, value: Any) -> Optional[str]:
        return _optional(value, "units", is_valid_unit)

    @field_validator("frequency", mode="before")
    @classmethod
    def _validate_frequency(cls, value: Any) -> Optional[str]:
        return _optional(value, "frequency", is_valid_frequency)

    @model_validator(mode="after")
    def _validate_range(self) -> "JobRequestData":
        start, end = self.observation_start, self.observation_end
        if start and end and parse_utc_datetime(end) < parse_utc_datetime(start):
            raise ValidationError("End date must be after start date", field="observation_end")
        return self

    def to_query(self) -> QueryParameters:
        return QueryParameters(
            series_id=self.series_id,
            observation_start=self.observation_start,
            observation_end=self.observation_end,
            units=self.units,
            frequency=self.frequency,
        )


def _first_error(exc: pydantic.ValidationError) -> ValidationError:
    details = exc.errors()[0]
    cause = details.get("ctx", {}).get("error")
    if isinstance(cause, ValidationError):
        return cause
    field = str(details["loc"][0]) if details["loc"] else None
    if field is None or field == "series_id":
        return ValidationError("series_id is required", field="series_id")
    return ValidationError(f"Invalid {field} format", field=field)


def validate_request(data: Optional[Mapping[str, Any]]) -> QueryParameters:
    """Validate the ``data`` member of a job request.

    Blank optional fields are treated as omitted. No defaults are applied.
    """
    if not isinstance(data, Mapping):
        data = {}
    try:
        return JobRequestData.model_validate(dict(data)).to_query()
    except pydantic.ValidationError as exc:
        raise _first_error(exc) from exc


__all__ = [
    "JobRequestData",
    "VALID_FREQUENCIES",
    "VALID_UNITS",
    "ValidationError",
    "is_valid_date",
    "is_valid_frequency",
    "is_valid_unit",
    "parse_calendar_date",
    "parse_utc_datetime",
    "validate_request",
]
