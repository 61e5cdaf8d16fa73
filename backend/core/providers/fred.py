"""FRED series observations provider."""
from __future__ import annotations

from typing import Any, Dict, Optional

from backend.core.abstractions import ObservationFetcher, QueryParameters
from backend.core.providers.base import HTTPProvider


FRED_ENDPOINT = "https://api.stlouisfed.org/fred/series/observations"
DEFAULT_UNITS = "pc1"
DEFAULT_FREQUENCY = "q"


def build_query(params: QueryParameters) -> Dict[str, str]:
    """Provider query for ``params``; units and frequency defaults apply here."""
    query = {
        "series_id": params.series_id,
        "units": params.units or DEFAULT_UNITS,
        "frequency": params.frequency or DEFAULT_FREQUENCY,
        "file_type": "json",
    }
    if params.observation_start:
        query["observation_start"] = params.observation_start
    if params.observation_end:
        query["observation_end"] = params.observation_end
    return query


class FredProvider(HTTPProvider, ObservationFetcher):
    """Integration with the FRED ``series/observations`` endpoint."""

    name = "fred"
    error_prefix = "FRED API Error"

    def __init__(self, *, api_key: str, base_url: Optional[str] = None, **kwargs) -> None:
        if not api_key:
            raise ValueError("FRED API key is required")
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url or FRED_ENDPOINT

    def get_observations(self, params: QueryParameters) -> Dict[str, Any]:  # noqa: D401
        """Return the raw observations payload for a series."""
        query = build_query(params)
        query["api_key"] = self.api_key
        response = self._request("GET", self.base_url, params=query)
        data = self._json(response)
        self._log.debug("FRED responded for series %s", params.series_id)
        return data


__all__ = ["DEFAULT_FREQUENCY", "DEFAULT_UNITS", "FRED_ENDPOINT", "FredProvider", "build_query"]
