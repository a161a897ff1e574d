"""
Circuit breaker guarding calls to the hosted LLM.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock

from codelens.observability.telemetry import counter, log_event


@dataclass
class CircuitBreaker:
    """
    Closed → open after `fail_max` consecutive failures; open → half-open once
    `reset_timeout` seconds have passed. A success in any state closes it.
    """

    stage: str
    fail_max: int = 5
    reset_timeout: float = 60.0
    clock: Callable[[], float] = time.monotonic
    _failures: int = field(default=0, init=False)
    _state: str = field(default="closed", init=False)
    _opened_at: float = field(default=0.0, init=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    @property
    def state(self) -> str:
        return self._state

    def allow_request(self) -> bool:
        with self._lock:
            if self._state != "open":
                return True
            if self.clock() - self._opened_at >= self.reset_timeout:
                self._state = "half_open"
                log_event("circuit.half_open", stage=self.stage)
                return True
        counter(f"{self.stage}.circuit_rejected")
        return False

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._state = "closed"

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            # A failed trial request re-opens immediately
            if self._state == "half_open" or self._failures >= self.fail_max:
                self._state = "open"
                self._opened_at = self.clock()
                failures = self._failures
            else:
                return
        counter(f"{self.stage}.circuit_opened")
        log_event("circuit.opened", stage=self.stage, failures=failures)

    def reset(self) -> None:
        with self._lock:
            self._failures = 0
            self._state = "closed"
            self._opened_at = 0.0
