"""One registration cycle: query the platform, then register or fetch the PCK.

Unregistered -> build manifest, register with Intel, and on RebootNeeded mark
                the registration complete on the platform.
Registered   -> read the platform identity and retrieve the PCK certificate.

Nothing is remembered between cycles; the platform is queried fresh each
time, so manual re-registration is picked up on the next tick.
"""
from __future__ import annotations

from typing import Callable, Protocol, TypeVar

from ..errors import LocalPersistError, PlatformInterfaceUnavailable
from ..intel.client import IntelServiceClient
from ..intel.outcomes import StatusCode, StatusOutcome
from ..platform.provider import ProviderFactory
from ..utils.logging import get_logger

T = TypeVar("T")


class RegistrationChecker(Protocol):
    def check(self) -> StatusOutcome: ...


def _platform_call(what: str, fn: Callable[[], T], status: StatusCode = StatusCode.PLATFORM_INTERFACE_UNAVAILABLE) -> T:
    try:
        return fn()
    except PlatformInterfaceUnavailable as e:
        raise PlatformInterfaceUnavailable(f"{what} failed: {e}", detail=e.detail or str(e), outcome=StatusOutcome(status)) from e
    except Exception as e:
        raise PlatformInterfaceUnavailable(f"{what} failed: {e}", detail=str(e), outcome=StatusOutcome(status)) from e


class DefaultRegistrationChecker:
    def __init__(self, client: IntelServiceClient, provider_factory: ProviderFactory, logger=None):
        self.client = client
        self.provider_factory = provider_factory
        self.log = logger or get_logger()

    def check(self) -> StatusOutcome:
        platform = _platform_call("opening platform interface", self.provider_factory)
        try:
            registered = _platform_call("querying registration status", platform.is_registered)
            if not registered:
                return self._register(platform)
            identity = _platform_call("reading platform info", platform.read_identity, StatusCode.RETRY_NEEDED)
            return self.client.retrieve_pck(identity)
        finally:
            self._release(platform)

    def _release(self, platform) -> None:
        # a failed release must not replace the cycle outcome
        try:
            platform.close()
        except Exception as e:
            self.log.warning("failed to release platform interface error=%s", e)

    def _register(self, platform) -> StatusOutcome:
        manifest = _platform_call("reading platform manifest", platform.build_manifest)
        self.log.info("Platform not registered, submitting manifest manifest_bytes=%d", len(manifest))
        # raises with the classified outcome attached when Intel does not accept it
        outcome = self.client.register_platform(manifest)
        if outcome.status == StatusCode.REBOOT_NEEDED:
            try:
                platform.mark_registration_complete()
            except Exception as e:
                detail = getattr(e, "detail", "") or str(e)
                raise LocalPersistError(f"platform registered with Intel but completion could not be persisted: {detail}") from e
            self.log.info("Platform registration complete, reboot needed")
        return outcome
