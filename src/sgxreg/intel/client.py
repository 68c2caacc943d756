"""Outbound client for Intel registration / PCK retrieval.

Platform registration: always goes directly to the Intel API, one attempt.
PCK retrieval: tries PCCS endpoints first (if configured) then Intel, stopping
at the first endpoint that returns the certificate. When every endpoint fails
the error of the last (most authoritative) attempt is raised.

Each attempt is bounded by a wall-clock deadline of ``request_timeout_sec``;
only the status line and headers are read, the body is never consumed.
One pooled ``httpx.Client`` carrying the trust context is built at
construction and reused for every request.
"""
from __future__ import annotations

import time
from typing import Optional, Tuple

import httpx

from ..constants import (
    ERROR_CODE_HEADER,
    KEEPALIVE_EXPIRY_SEC,
    MAX_CONNECTIONS,
    MAX_KEEPALIVE_CONNECTIONS,
)
from ..errors import EndpointConnectError, RegistrationServiceError, ServiceResponseError
from ..platform.provider import PlatformIdentity
from ..trust.tls import TrustConfig, build_trust_config
from ..utils.logging import get_logger
from .endpoints import EndpointPlan, resolve_endpoints
from .outcomes import (
    Operation,
    StatusCode,
    StatusOutcome,
    classify,
    classify_transport_error,
)


def _describe(outcome: StatusOutcome) -> str:
    text = f"HTTP {outcome.http_status_code} ({outcome.status})"
    if outcome.intel_error_code:
        text += f" Error-Code={outcome.intel_error_code}"
    return text


class IntelServiceClient:
    def __init__(
        self,
        cfg,
        trust: Optional[TrustConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        logger=None,
    ):
        self.log = logger or get_logger()
        self.request_timeout_sec = cfg.request_timeout_sec
        # TLS always uses the system CA bundle, plus optional custom CAs for PCCS
        self.trust = trust if trust is not None else build_trust_config(cfg.pccs_ca_cert_path)
        self.endpoints: EndpointPlan = resolve_endpoints(cfg)
        if len(self.endpoints.pck_retrieval_urls) > 1:
            self.log.info(
                "Configured PCCS endpoints for PCK retrieval count=%d",
                len(self.endpoints.pck_retrieval_urls) - 1,
            )
        self._http = httpx.Client(
            verify=self.trust.ssl_context,
            timeout=httpx.Timeout(cfg.request_timeout_sec),
            limits=httpx.Limits(
                max_connections=MAX_CONNECTIONS,
                max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS,
                keepalive_expiry=KEEPALIVE_EXPIRY_SEC,
            ),
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "IntelServiceClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _exchange(self, method: str, url: str, **kwargs) -> Tuple[int, Optional[str]]:
        """Send one request and return the status code and Error-Code header.

        The response is streamed and closed after the headers, and the whole
        exchange must finish within ``request_timeout_sec``.
        """
        deadline = time.monotonic() + self.request_timeout_sec
        with self._http.stream(method, url, **kwargs) as resp:
            if time.monotonic() > deadline:
                raise httpx.ReadTimeout(
                    f"no complete response within {self.request_timeout_sec}s", request=resp.request
                )
            return resp.status_code, resp.headers.get(ERROR_CODE_HEADER)

    def register_platform(self, manifest: bytes) -> StatusOutcome:
        url = self.endpoints.registration_url
        self.log.debug("Attempting platform registration to Intel API url=%s manifest_bytes=%d", url, len(manifest))
        try:
            status_code, error_code = self._exchange(
                "POST",
                url,
                content=manifest,
                headers={"Content-Type": "application/octet-stream"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            outcome = classify_transport_error(e)
            self.log.error("Platform registration failed url=%s status=%s error=%s", url, outcome.status, e)
            raise EndpointConnectError(f"platform registration request to {url} failed: {e}", outcome) from e

        outcome = classify(Operation.REGISTRATION, status_code, error_code)
        if outcome.status == StatusCode.REBOOT_NEEDED:
            self.log.info("Platform registration successful url=%s", url)
            return outcome
        self.log.error("Platform registration failed url=%s response=%s", url, _describe(outcome))
        raise ServiceResponseError(f"platform registration rejected by {url}: {_describe(outcome)}", outcome)

    def retrieve_pck(self, identity: PlatformIdentity) -> StatusOutcome:
        urls = self.endpoints.pck_retrieval_urls
        last_error: Optional[RegistrationServiceError] = None
        for i, base_url in enumerate(urls):
            attempt = i + 1
            endpoint_type = self.endpoints.endpoint_type(i)
            self.log.debug(
                "Attempting PCK retrieval url=%s endpoint_type=%s attempt=%d",
                base_url, endpoint_type, attempt,
            )
            try:
                outcome = self._retrieve_from(base_url, identity)
            except RegistrationServiceError as e:
                last_error = e
                if attempt < len(urls):
                    self.log.warning(
                        "PCK retrieval failed, trying next endpoint url=%s endpoint_type=%s attempt=%d error=%s",
                        base_url, endpoint_type, attempt, e,
                    )
                continue
            self.log.info(
                "PCK retrieval successful url=%s endpoint_type=%s attempt=%d",
                base_url, endpoint_type, attempt,
            )
            return outcome

        self.log.error("PCK retrieval failed on all endpoints attempts=%d error=%s", len(urls), last_error)
        raise last_error

    def _retrieve_from(self, base_url: str, identity: PlatformIdentity) -> StatusOutcome:
        params = {"encrypted_ppid": identity.encrypted_ppid, "pceid": identity.pce_id}
        try:
            status_code, error_code = self._exchange("GET", base_url, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise EndpointConnectError(
                f"PCK retrieval request to {base_url} failed: {e}", classify_transport_error(e)
            ) from e

        outcome = classify(Operation.RETRIEVAL, status_code, error_code)
        if outcome.status != StatusCode.DIRECTLY_REGISTERED:
            raise ServiceResponseError(f"PCK retrieval from {base_url} failed: {_describe(outcome)}", outcome)
        return outcome
