"""Job-run pipeline bridging the request, the provider and the store."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from backend.core import responses
from backend.core.abstractions import (
    DEFAULT_UNITS_LABEL,
    MeasurementStatus,
    NormalizedResult,
    ObservationFetcher,
    QueryParameters,
)
from backend.core.processor import NormalizationError, process_observations
from backend.core.providers.base import ProviderError
from backend.core.responses import ResponseEnvelope
from backend.core.services.recorder import MeasurementRecorder
from backend.core.validator import ValidationError, validate_request


logger = logging.getLogger(__name__)


class AdapterService:
    """Run one job: validate, fetch, normalize, respond, then record.

    Every failure ends in an ``errored`` envelope. Recording happens after
    the envelope is built and cannot change it.
    """

    def __init__(
        self,
        fetcher: ObservationFetcher,
        recorder: Optional[MeasurementRecorder] = None,
    ) -> None:
        self._fetcher = fetcher
        self._recorder = recorder

    def execute(self, request: Mapping[str, Any]) -> ResponseEnvelope:
        job_run_id = request.get("id")

        try:
            params = validate_request(request.get("data"))
        except ValidationError as exc:
            logger.info("Job %s rejected: %s", job_run_id, exc)
            return responses.errored(job_run_id, exc)

        try:
            payload = self._fetcher.get_observations(params)
        except ProviderError as exc:
            logger.error("Job %s provider failure for %s: %s", job_run_id, params.series_id, exc)
            return responses.errored(job_run_id, exc)
        except Exception as exc:  # noqa: BLE001 - unexpected fetcher faults end as errored envelopes
            logger.error("Job %s fetch failed for %s", job_run_id, params.series_id, exc_info=exc)
            return responses.errored(job_run_id, exc)

        try:
            result = process_observations(payload, params)
        except NormalizationError as exc:
            envelope = responses.errored(job_run_id, exc)
            logger.info("Job %s errored for %s: %s", job_run_id, params.series_id, exc)
            self._record_failure(params, exc)
            return envelope

        envelope = responses.success(job_run_id, result, data=payload)
        logger.info("Job %s succeeded for %s: %s", job_run_id, params.series_id, result.value)
        self._record_success(result)
        return envelope

    # Helpers ------------------------------------------------------------
    def _record_success(self, result: NormalizedResult) -> None:
        if self._recorder is None:
            return
        measurement_id = self._recorder.record(
            series_id=result.series_id,
            value=result.value,
            observation_date=result.observation_date,
            units=result.units,
        )
        self._recorder.advance_status(measurement_id, MeasurementStatus.PROCESSED)

    def _record_failure(self, params: QueryParameters, exc: NormalizationError) -> None:
        if self._recorder is None:
            return
        measurement_id = self._recorder.record(
            series_id=params.series_id,
            value=None,
            observation_date=exc.observation_date,
            units=params.units or DEFAULT_UNITS_LABEL,
        )
        self._recorder.advance_status(measurement_id, MeasurementStatus.ERROR, str(exc))


__all__ = ["AdapterService"]
