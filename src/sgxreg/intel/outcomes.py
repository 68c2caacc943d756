"""Status taxonomy and HTTP/network outcome classification.

Registration (POST to the Intel registration service):
  201            -> RebootNeeded
  400..499       -> InvalidRegistrationRequest
  anything else  -> ServiceRequestFailed

PCK retrieval (GET from PCCS or Intel PCS):
  200            -> DirectlyRegistered
  404            -> ResetNeeded
  anything else  -> RetryNeeded

No response at all -> ConnectFailed (connect/timeout) or UnknownError.
The raw HTTP status and the Error-Code header are kept on every outcome for
observability only; they never change the mapping above.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

__all__ = [
    "Operation",
    "StatusCode",
    "StatusOutcome",
    "SUCCESS_STATUSES",
    "classify",
    "classify_registration",
    "classify_retrieval",
    "classify_transport_error",
]


class Operation(str, Enum):
    REGISTRATION = "registration"
    RETRIEVAL = "retrieval"


class StatusCode(str, Enum):
    PENDING = "Pending"
    UNKNOWN_ERROR = "UnknownError"
    REBOOT_NEEDED = "RebootNeeded"
    DIRECTLY_REGISTERED = "DirectlyRegistered"
    INVALID_REGISTRATION_REQUEST = "InvalidRegistrationRequest"
    SERVICE_REQUEST_FAILED = "ServiceRequestFailed"
    RESET_NEEDED = "ResetNeeded"
    RETRY_NEEDED = "RetryNeeded"
    CONNECT_FAILED = "ConnectFailed"
    PLATFORM_INTERFACE_UNAVAILABLE = "PlatformInterfaceUnavailable"
    LOCAL_PERSIST_ERROR = "LocalPersistError"

    def __str__(self) -> str:
        return self.value


# Terminal success per operation
SUCCESS_STATUSES = {
    Operation.REGISTRATION: StatusCode.REBOOT_NEEDED,
    Operation.RETRIEVAL: StatusCode.DIRECTLY_REGISTERED,
}


@dataclass(frozen=True)
class StatusOutcome:
    status: StatusCode
    http_status_code: str = ""
    intel_error_code: str = ""

    @property
    def is_success(self) -> bool:
        return self.status in SUCCESS_STATUSES.values()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "http_status_code": self.http_status_code,
            "intel_error_code": self.intel_error_code,
        }


def classify_registration(http_status: int, intel_error_code: Optional[str] = None) -> StatusOutcome:
    if http_status == 201:
        status = StatusCode.REBOOT_NEEDED
    elif 400 <= http_status < 500:
        status = StatusCode.INVALID_REGISTRATION_REQUEST
    else:
        status = StatusCode.SERVICE_REQUEST_FAILED
    return StatusOutcome(status, str(http_status), intel_error_code or "")


def classify_retrieval(http_status: int, intel_error_code: Optional[str] = None) -> StatusOutcome:
    if http_status == 200:
        status = StatusCode.DIRECTLY_REGISTERED
    elif http_status == 404:
        status = StatusCode.RESET_NEEDED
    else:
        status = StatusCode.RETRY_NEEDED
    return StatusOutcome(status, str(http_status), intel_error_code or "")


_CLASSIFIERS = {
    Operation.REGISTRATION: classify_registration,
    Operation.RETRIEVAL: classify_retrieval,
}


def classify(operation: Operation, http_status: int, intel_error_code: Optional[str] = None) -> StatusOutcome:
    return _CLASSIFIERS[Operation(operation)](http_status, intel_error_code)


def classify_transport_error(exc: BaseException) -> StatusOutcome:
    """Outcome for an attempt that never produced an HTTP response."""
    if isinstance(exc, (httpx.TimeoutException, httpx.ConnectError)):
        return StatusOutcome(StatusCode.CONNECT_FAILED)
    return StatusOutcome(StatusCode.UNKNOWN_ERROR)
