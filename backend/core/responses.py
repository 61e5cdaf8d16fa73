"""Response envelopes returned for each job run."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from backend.core.abstractions import NormalizedResult


STATUS_SUCCESS = "success"
STATUS_ERRORED = "errored"

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_SERVER_ERROR = 500

INVALID_BODY_MESSAGE = "Invalid request body"


@dataclass(frozen=True)
class ResponseEnvelope:
    job_run_id: str
    status_code: int
    status: str
    result: Optional[NormalizedResult] = None
    error: Optional[str] = None
    data: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "jobRunID": self.job_run_id,
            "statusCode": self.status_code,
            "status": self.status,
        }
        if self.result is not None:
            payload["result"] = self.result.as_dict()
        if self.error is not None:
            payload["error"] = self.error
        if self.data is not None:
            payload["data"] = self.data
        return payload


def success(job_run_id: str, result: NormalizedResult, data: Optional[Any] = None) -> ResponseEnvelope:
    return ResponseEnvelope(
        job_run_id=job_run_id,
        status_code=HTTP_OK,
        status=STATUS_SUCCESS,
        result=result,
        data=data,
    )


def errored(job_run_id: str, error: BaseException | str, status_code: int = HTTP_SERVER_ERROR) -> ResponseEnvelope:
    """Build an error envelope carrying the failure message verbatim."""
    message = str(error) or "Unknown error"
    return ResponseEnvelope(
        job_run_id=job_run_id,
        status_code=status_code,
        status=STATUS_ERRORED,
        error=message,
    )


def invalid_body(job_run_id: Optional[str]) -> ResponseEnvelope:
    return errored(job_run_id or "0", INVALID_BODY_MESSAGE, status_code=HTTP_BAD_REQUEST)


__all__ = [
    "HTTP_BAD_REQUEST",
    "HTTP_OK",
    "HTTP_SERVER_ERROR",
    "INVALID_BODY_MESSAGE",
    "ResponseEnvelope",
    "STATUS_ERRORED",
    "STATUS_SUCCESS",
    "errored",
    "invalid_body",
    "success",
]
