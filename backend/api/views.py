"""REST API views for the FRED adapter."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from django.conf import settings
from rest_framework import status
from rest_framework.exceptions import ParseError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from backend.core import responses
from backend.core.models import PersistenceError, SQLMeasurementRepository, build_session_factory
from backend.core.providers.base import RequestConfig
from backend.core.providers.fred import FredProvider
from backend.core.services.adapter_service import AdapterService
from backend.core.services.recorder import MeasurementRecorder


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_recorder() -> Optional[MeasurementRecorder]:
    url = settings.MEASUREMENTS_DATABASE_URL
    if not url:
        return None
    try:
        session_factory = build_session_factory(url)
    except PersistenceError as exc:
        logger.error("Measurement store unavailable, persistence disabled", exc_info=exc)
        return None
    return MeasurementRecorder(SQLMeasurementRepository(session_factory))


@lru_cache(maxsize=1)
def get_adapter_service() -> AdapterService:
    provider = FredProvider(
        api_key=settings.FRED_API_KEY,
        base_url=settings.FRED_BASE_URL,
        request_config=RequestConfig(timeout=settings.FRED_TIMEOUT, retries=settings.FRED_RETRIES),
    )
    return AdapterService(provider, recorder=get_recorder())


class AdapterView(APIView):
    """Run a job request against the FRED observations endpoint."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        """Health check."""
        return Response({"status": "ok"}, status=status.HTTP_200_OK)

    def post(self, request, *args, **kwargs):  # noqa: D401
        """Validate the envelope and execute the job."""
        try:
            body = request.data
        except ParseError:
            body = None

        if not isinstance(body, dict) or not body.get("id") or body.get("data") is None:
            job_run_id = body.get("id") if isinstance(body, dict) else None
            envelope = responses.invalid_body(job_run_id)
        else:
            envelope = get_adapter_service().execute(body)
        return Response(envelope.as_dict(), status=envelope.status_code)
