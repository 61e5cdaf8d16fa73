from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Base provider error."""


class QuotaExceeded(ProviderError):
    """Raised when a provider reports a quota/usage limit issue."""


@dataclass
class RequestConfig:
    timeout: float = 10.0
    retries: int = 2
    backoff_factor: float = 0.3
    status_forcelist: Iterable[int] = (500, 502, 503, 504)


class HTTPProvider:
    """Base class that adds retry/timeouts for HTTP providers."""

    error_prefix = "Provider Error"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
    ) -> None:
        self.request_config = request_config or RequestConfig()
        self.session = session or self._build_session(self.request_config)
        self._log = logging.getLogger(self.__class__.__name__)

    def _build_session(self, config: RequestConfig) -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=config.retries,
            backoff_factor=config.backoff_factor,
            status_forcelist=tuple(config.status_forcelist),
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def _error_detail(self, response: Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        if isinstance(body, dict) and body.get("error_message"):
            return str(body["error_message"])
        return f"HTTP {response.status_code}"

    def _handle_response(self, response: Response) -> Response:
        if response.status_code == 429:
            self._log.warning("Quota exceeded: %s", response.text)
            raise QuotaExceeded(f"{self.error_prefix}: {self._error_detail(response)}")
        if response.status_code >= 400:
            self._log.error("Provider returned %s: %s", response.status_code, response.text)
            raise ProviderError(f"{self.error_prefix}: {self._error_detail(response)}")
        return response

    def _request(self, method: str, url: str, **kwargs) -> Response:
        try:
            response = self.session.request(
                method,
                url,
                timeout=self.request_config.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            self._log.error("Request timed out", exc_info=exc)
            raise ProviderError(f"{self.error_prefix}: timeout") from exc
        except requests.RequestException as exc:
            self._log.error("Request failed", exc_info=exc)
            raise ProviderError(f"{self.error_prefix}: request failed") from exc
        return self._handle_response(response)

    def _json(self, response: Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.error_prefix}: invalid JSON payload") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"{self.error_prefix}: unexpected payload type {type(data).__name__}")
        return data


__all__ = ["HTTPProvider", "ProviderError", "QuotaExceeded", "RequestConfig"]
