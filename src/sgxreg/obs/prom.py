"""Prometheus instrumentation for the registration service.

Each sink owns its registry so tests (and embedding applications) observe
exactly the outcomes they produced. Labels stay minimal: the service status
is an Enum metric, the last HTTP code a gauge, the last Intel error code an
info metric.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Dict, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Enum,
    Gauge,
    Info,
    generate_latest,
)

from ..intel.outcomes import StatusCode, StatusOutcome


class PrometheusStatusSink:
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self._lock = threading.Lock()
        self._last: Optional[StatusOutcome] = None
        self._last_ts: Optional[float] = None

        self.status = Enum(
            "sgxreg_service_status",
            "Current registration service status.",
            states=[s.value for s in StatusCode],
            registry=self.registry,
        )
        self.http_status = Gauge(
            "sgxreg_last_http_status_code",
            "HTTP status code of the last classified outcome (0 when no response).",
            registry=self.registry,
        )
        self.intel_error = Info(
            "sgxreg_last_intel_error",
            "Error-Code header returned with the last classified outcome.",
            registry=self.registry,
        )
        self.checks = Counter(
            "sgxreg_checks_total",
            "Registration checks by resulting status.",
            ["status"],
            registry=self.registry,
        )
        self.last_check_ts = Gauge(
            "sgxreg_last_check_timestamp_seconds",
            "Unix time of the last recorded outcome.",
            registry=self.registry,
        )

    def set_pending(self) -> None:
        with self._lock:
            self.status.state(StatusCode.PENDING.value)
            self._last = StatusOutcome(StatusCode.PENDING)
            self._last_ts = None

    def record_outcome(self, outcome: StatusOutcome) -> None:
        now = time.time()
        code = int(outcome.http_status_code) if outcome.http_status_code.isdigit() else 0
        with self._lock:
            self.status.state(outcome.status.value)
            self.http_status.set(code)
            self.intel_error.info({"code": outcome.intel_error_code})
            self.checks.labels(status=outcome.status.value).inc()
            self.last_check_ts.set(now)
            self._last = outcome
            self._last_ts = now

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            last = self._last
            ts = self._last_ts
        if last is None:
            return {"status": None, "http_status_code": "", "intel_error_code": "", "last_check_ts": None}
        data = last.as_dict()
        data["last_check_ts"] = ts
        return data

    def latest(self) -> tuple[bytes, str]:
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
