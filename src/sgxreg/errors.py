"""Error hierarchy for the registration service.

Every error carries the StatusOutcome that should be reported for the cycle
it aborted, so callers never lose the classified status when handling the
exception.
"""
from __future__ import annotations

from typing import Optional

from .intel.outcomes import StatusCode, StatusOutcome


class RegistrationServiceError(Exception):
    default_status = StatusCode.UNKNOWN_ERROR

    def __init__(self, message: str, outcome: Optional[StatusOutcome] = None):
        super().__init__(message)
        self.outcome = outcome if outcome is not None else StatusOutcome(self.default_status)


class ConfigurationError(RegistrationServiceError):
    """Bad trust roots or settings. Fatal at startup, never retried."""


class PlatformInterfaceUnavailable(RegistrationServiceError):
    """The platform collaborator could not answer.

    ``detail`` keeps the collaborator's own diagnostic text untouched.
    """

    default_status = StatusCode.PLATFORM_INTERFACE_UNAVAILABLE

    def __init__(self, message: str, detail: str = "", outcome: Optional[StatusOutcome] = None):
        super().__init__(message, outcome)
        self.detail = detail


class EndpointConnectError(RegistrationServiceError):
    """No HTTP response was obtained (DNS, connect, TLS, timeout)."""

    default_status = StatusCode.CONNECT_FAILED


class ServiceResponseError(RegistrationServiceError):
    """A response arrived but was not the success status for the operation."""


class LocalPersistError(RegistrationServiceError):
    """Remote registration succeeded but marking it complete locally failed."""

    default_status = StatusCode.LOCAL_PERSIST_ERROR
