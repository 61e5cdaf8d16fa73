"""Best-effort recording of fetched observations with a status lifecycle."""
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from backend.core.abstractions import (
    DEFAULT_UNITS_LABEL,
    Measurement,
    MeasurementRepository,
    MeasurementStatus,
)
from backend.core.models import to_utc_day


logger = logging.getLogger(__name__)

FINAL_STATUSES = frozenset({MeasurementStatus.PROCESSED, MeasurementStatus.ERROR})


class MeasurementRecorder:
    """Write measurements to a repository without ever failing the caller.

    A measurement is inserted as ``pending`` and later advanced exactly once
    to ``processed`` or ``error``. Failures of either step are logged and
    swallowed; the housekeeping queries propagate repository errors.
    """

    def __init__(self, repository: MeasurementRepository) -> None:
        self.repository = repository

    def record(
        self,
        *,
        series_id: str,
        value: Optional[float],
        observation_date: Optional[date],
        units: Optional[str] = None,
    ) -> Optional[int]:
        try:
            measurement = Measurement(
                value=value,
                date=to_utc_day(observation_date) if observation_date is not None else None,
                series_id=series_id,
                units=units or DEFAULT_UNITS_LABEL,
                status=MeasurementStatus.PENDING,
            )
            measurement_id = self.repository.insert(measurement)
        except Exception as exc:  # noqa: BLE001 - persistence failures should be logged
            logger.error("Failed to record measurement for %s", series_id, exc_info=exc)
            return None
        logger.debug("Recorded pending measurement %s for %s", measurement_id, series_id)
        return measurement_id

    def advance_status(
        self,
        measurement_id: Optional[int],
        status: MeasurementStatus,
        error_message: Optional[str] = None,
    ) -> bool:
        """Move a pending measurement to its final status.

        Does nothing when the insert failed and no identifier exists.
        """
        if measurement_id is None:
            return False
        try:
            status = MeasurementStatus(status)
        except ValueError:
            status = None
        if status not in FINAL_STATUSES:
            logger.warning("Refusing to move measurement %s out of pending", measurement_id)
            return False
        if status is MeasurementStatus.PROCESSED:
            error_message = None
        try:
            self.repository.update_status(measurement_id, status, error_message)
        except Exception as exc:  # noqa: BLE001 - persistence failures should be logged
            logger.error("Failed to mark measurement %s as %s", measurement_id, status.value, exc_info=exc)
            return False
        return True

    # Housekeeping -------------------------------------------------------
    def latest(self) -> Optional[Measurement]:
        return self.repository.latest()

    def measurements_in_range(self, start: date, end: date) -> List[Measurement]:
        return self.repository.by_date_range(to_utc_day(start), to_utc_day(end))

    def delete_older_than(self, cutoff: date) -> int:
        deleted = self.repository.delete_older_than(to_utc_day(cutoff))
        logger.info("Deleted %s measurements older than %s", deleted, to_utc_day(cutoff).isoformat())
        return deleted


__all__ = ["MeasurementRecorder"]
