import pytest

from sgxreg.controller.checker import DefaultRegistrationChecker
from sgxreg.errors import (
    EndpointConnectError,
    LocalPersistError,
    PlatformInterfaceUnavailable,
    ServiceResponseError,
)
from sgxreg.intel.outcomes import StatusCode, StatusOutcome
from sgxreg.platform.provider import PlatformIdentity

IDENTITY = PlatformIdentity(encrypted_ppid="ff" * 384, pce_id="0000")


class FakePlatform:
    def __init__(self, registered=False, fail=None, close_error=None):
        self.registered = registered
        self.fail = fail or {}
        self.close_error = close_error
        self.calls = []
        self.closed = 0

    def _maybe_fail(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise self.fail[name]

    def is_registered(self):
        self._maybe_fail("is_registered")
        return self.registered

    def build_manifest(self):
        self._maybe_fail("build_manifest")
        return b"platform-manifest"

    def mark_registration_complete(self):
        self._maybe_fail("mark_registration_complete")
        self.registered = True

    def read_identity(self):
        self._maybe_fail("read_identity")
        return IDENTITY

    def close(self):
        self.closed += 1
        if self.close_error:
            raise self.close_error


class FakeIntel:
    def __init__(self, register=None, retrieve=None):
        self.register = register or StatusOutcome(StatusCode.REBOOT_NEEDED, "201")
        self.retrieve = retrieve or StatusOutcome(StatusCode.DIRECTLY_REGISTERED, "200")
        self.manifests = []
        self.identities = []

    def register_platform(self, manifest):
        self.manifests.append(manifest)
        if isinstance(self.register, Exception):
            raise self.register
        return self.register

    def retrieve_pck(self, identity):
        self.identities.append(identity)
        if isinstance(self.retrieve, Exception):
            raise self.retrieve
        return self.retrieve


def make_checker(platform, intel):
    return DefaultRegistrationChecker(intel, lambda: platform)


def test_unregistered_success_marks_complete_once():
    platform, intel = FakePlatform(), FakeIntel()
    out = make_checker(platform, intel).check()
    assert out.status == StatusCode.REBOOT_NEEDED
    assert intel.manifests == [b"platform-manifest"]
    assert platform.calls.count("mark_registration_complete") == 1
    assert intel.identities == []
    assert platform.closed == 1


@pytest.mark.parametrize("error", [
    ServiceResponseError("rejected", StatusOutcome(StatusCode.INVALID_REGISTRATION_REQUEST, "402")),
    ServiceResponseError("down", StatusOutcome(StatusCode.SERVICE_REQUEST_FAILED, "503")),
    EndpointConnectError("refused", StatusOutcome(StatusCode.CONNECT_FAILED)),
])
def test_unregistered_failure_never_marks_complete(error):
    platform = FakePlatform()
    with pytest.raises(type(error)) as ei:
        make_checker(platform, FakeIntel(register=error)).check()
    assert ei.value.outcome is error.outcome
    assert "mark_registration_complete" not in platform.calls
    assert platform.registered is False
    assert platform.closed == 1


def test_persist_failure_is_reported_separately():
    platform = FakePlatform(fail={"mark_registration_complete": OSError("efivars read-only")})
    with pytest.raises(LocalPersistError) as ei:
        make_checker(platform, FakeIntel()).check()
    assert ei.value.outcome.status == StatusCode.LOCAL_PERSIST_ERROR
    assert platform.calls.count("mark_registration_complete") == 1


def test_status_query_failure_short_circuits():
    intel = FakeIntel()
    platform = FakePlatform(fail={"is_registered": RuntimeError("SGX API is unavailable")})
    with pytest.raises(PlatformInterfaceUnavailable) as ei:
        make_checker(platform, intel).check()
    assert ei.value.outcome.status == StatusCode.PLATFORM_INTERFACE_UNAVAILABLE
    assert ei.value.detail == "SGX API is unavailable"
    assert intel.manifests == [] and intel.identities == []
    assert platform.closed == 1


def test_manifest_failure_keeps_collaborator_detail():
    platform = FakePlatform(fail={
        "build_manifest": PlatformInterfaceUnavailable("uefi", detail="The Enclave could not be created"),
    })
    with pytest.raises(PlatformInterfaceUnavailable) as ei:
        make_checker(platform, FakeIntel()).check()
    assert ei.value.detail == "The Enclave could not be created"
    assert ei.value.outcome.status == StatusCode.PLATFORM_INTERFACE_UNAVAILABLE


def test_provider_factory_failure_is_platform_unavailable():
    def factory():
        raise OSError("libmpa_uefi.so: cannot open shared object file")
    checker = DefaultRegistrationChecker(FakeIntel(), factory)
    with pytest.raises(PlatformInterfaceUnavailable):
        checker.check()


def test_registered_retrieves_pck_without_touching_platform_state():
    platform, intel = FakePlatform(registered=True), FakeIntel()
    out = make_checker(platform, intel).check()
    assert out.status == StatusCode.DIRECTLY_REGISTERED
    assert intel.identities == [IDENTITY]
    assert intel.manifests == []
    assert platform.calls == ["is_registered", "read_identity"]


def test_registered_retrieval_failure_propagates_unchanged():
    error = ServiceResponseError("gone", StatusOutcome(StatusCode.RESET_NEEDED, "404"))
    platform = FakePlatform(registered=True)
    with pytest.raises(ServiceResponseError) as ei:
        make_checker(platform, FakeIntel(retrieve=error)).check()
    assert ei.value is error
    assert platform.closed == 1


def test_identity_read_failure_asks_for_retry():
    platform = FakePlatform(registered=True, fail={"read_identity": RuntimeError("Not enough privilege")})
    with pytest.raises(PlatformInterfaceUnavailable) as ei:
        make_checker(platform, FakeIntel()).check()
    assert ei.value.outcome.status == StatusCode.RETRY_NEEDED
    assert ei.value.detail == "Not enough privilege"


def test_state_is_requeried_every_cycle():
    platform, intel = FakePlatform(), FakeIntel()
    checker = make_checker(platform, intel)
    assert checker.check().status == StatusCode.REBOOT_NEEDED
    assert checker.check().status == StatusCode.DIRECTLY_REGISTERED
    platform.registered = False  # registration reset out of band
    assert checker.check().status == StatusCode.REBOOT_NEEDED
    assert len(intel.manifests) == 2
    assert platform.closed == 3


def test_persist_failure_keeps_platform_detail():
    platform = FakePlatform(fail={
        "mark_registration_complete": PlatformInterfaceUnavailable("uefi", detail="efivarfs is mounted read-only"),
    })
    with pytest.raises(LocalPersistError) as ei:
        make_checker(platform, FakeIntel()).check()
    assert "efivarfs is mounted read-only" in str(ei.value)


def test_release_failure_does_not_mask_platform_error():
    platform = FakePlatform(
        fail={"is_registered": RuntimeError("SGX API is unavailable")},
        close_error=RuntimeError("handle already invalid"),
    )
    with pytest.raises(PlatformInterfaceUnavailable) as ei:
        make_checker(platform, FakeIntel()).check()
    assert ei.value.outcome.status == StatusCode.PLATFORM_INTERFACE_UNAVAILABLE
    assert ei.value.detail == "SGX API is unavailable"
    assert platform.closed == 1


@pytest.mark.parametrize("registered,expected", [
    (True, StatusCode.DIRECTLY_REGISTERED),
    (False, StatusCode.REBOOT_NEEDED),
])
def test_release_failure_keeps_successful_outcome(registered, expected, caplog):
    platform = FakePlatform(registered=registered, close_error=OSError("handle already invalid"))
    assert make_checker(platform, FakeIntel()).check().status == expected
    assert platform.closed == 1
    assert "handle already invalid" in caplog.text
