"""Registration service loop.

Runs one check immediately, then one per interval until stopped. Ticks are
aligned to the start time like a fixed-rate ticker; a cycle that overruns
one or more intervals drops the missed ticks instead of bursting. Stop
requests are honoured between cycles only; an in-flight request is bounded
by the client's per-request timeout.
"""
from __future__ import annotations

import threading
import time
from typing import Callable, Optional, Protocol

from ..errors import RegistrationServiceError
from ..intel.outcomes import StatusCode, StatusOutcome
from ..utils.logging import get_logger
from .checker import RegistrationChecker


class MetricsSink(Protocol):
    def set_pending(self) -> None: ...

    def record_outcome(self, outcome: StatusOutcome) -> None: ...


class RegistrationService:
    def __init__(
        self,
        checker: RegistrationChecker,
        sink: MetricsSink,
        interval_sec: float,
        logger=None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval_sec <= 0:
            raise ValueError("interval_sec must be positive")
        self.checker = checker
        self.sink = sink
        self.interval_sec = interval_sec
        self.log = logger or get_logger()
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0

    def run(self, stop: Optional[threading.Event] = None) -> None:
        stop = stop or self._stop
        self.sink.set_pending()

        # first check
        self.check_registration_status()

        next_tick = self._clock() + self.interval_sec
        while not stop.wait(max(0.0, next_tick - self._clock())):
            self.check_registration_status()
            next_tick += self.interval_sec
            now = self._clock()
            if next_tick <= now:
                skipped = int((now - next_tick) // self.interval_sec) + 1
                self.log.warning("Registration check overran the interval skipped_ticks=%d", skipped)
                next_tick += skipped * self.interval_sec
        self.log.info("Registration service stopped cycles=%d", self.cycles)

    def check_registration_status(self) -> StatusOutcome:
        self.cycles += 1
        try:
            outcome = self.checker.check()
        except RegistrationServiceError as e:
            self.log.error("unable to get the registration status error=%s", e)
            outcome = e.outcome
        except Exception:
            self.log.exception("unexpected failure during registration check")
            outcome = StatusOutcome(StatusCode.UNKNOWN_ERROR)
        self.log.debug("Registration check completed status=%s", outcome.status)
        try:
            self.sink.record_outcome(outcome)
        except Exception as e:
            self.log.error("unable to update registration service status metric error=%s", e)
        return outcome

    # Background worker helpers (used by the status app lifespan)

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="sgxreg-registration", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
