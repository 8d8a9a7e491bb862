"""Per-dependency circuit breaker for outbound async calls.

The breaker is admission control: after ``failure_threshold`` consecutive
failures it rejects calls without reaching the dependency, and once
``open_duration`` has elapsed it lets exactly one probe through. The
Open -> HalfOpen transition happens lazily on the next call attempt; there is
no background timer, so an idle dependency stays Open until traffic resumes.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from packages.courier_shared.config import BreakerSettings
from packages.courier_shared.errors import (
    ClassifiedError,
    ErrorDetails,
    ErrorKind,
    classify,
    create_error,
)
from packages.courier_shared.logging import fields, get_logger

T = TypeVar("T")

_LOGGER = get_logger(__name__)


class CircuitPhase(str, Enum):
    """Breaker admission phases."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitStatus:
    """Read-only breaker snapshot for observability."""

    name: str
    phase: CircuitPhase
    consecutive_failures: int
    failure_threshold: int
    last_failure_at: float | None


class CircuitBreaker:
    """Circuit breaker guarding one external dependency.

    One instance is shared by every caller of the dependency. State changes
    happen between awaits under a lock, so a breaker may also be shared across
    threads.
    """

    def __init__(
        self,
        name: str,
        *,
        failure_threshold: int = 5,
        open_duration: float = 30.0,
        probe_cooldown: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1.")
        if open_duration < 0:
            raise ValueError("open_duration must be >= 0.")
        if probe_cooldown <= 0:
            raise ValueError("probe_cooldown must be > 0.")
        self.name = name
        self.failure_threshold = failure_threshold
        self.open_duration = open_duration
        self.probe_cooldown = probe_cooldown
        self._clock = clock
        self._lock = threading.Lock()

        self._phase = CircuitPhase.CLOSED
        self._failures = 0
        self._last_failure_at: float | None = None
        self._opened_at = 0.0
        self._probe_started_at: float | None = None

    @classmethod
    def from_settings(
        cls,
        name: str,
        settings: BreakerSettings,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> CircuitBreaker:
        """Build a breaker from configured thresholds."""
        return cls(
            name,
            failure_threshold=settings.failure_threshold,
            open_duration=settings.open_duration_seconds,
            probe_cooldown=settings.probe_cooldown_seconds,
            clock=clock,
        )

    @property
    def phase(self) -> CircuitPhase:
        return self._phase

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` under breaker protection.

        Raises a ``SERVICE_UNAVAILABLE`` ``ClassifiedError`` with
        ``details.state`` set when the call is rejected. Failures of the
        operation are re-raised as ``ClassifiedError``.
        """
        probe = self._admit()
        try:
            result = await operation()
        except asyncio.CancelledError:
            if probe:
                self._release_probe()
            raise
        except Exception as exc:
            error = classify(exc, self.name)
            self._record_failure(error)
            if error is exc:
                raise
            raise error from exc
        self._record_success()
        return result

    def get_status(self) -> CircuitStatus:
        """Return a snapshot of the current breaker state."""
        with self._lock:
            return CircuitStatus(
                name=self.name,
                phase=self._phase,
                consecutive_failures=self._failures,
                failure_threshold=self.failure_threshold,
                last_failure_at=self._last_failure_at,
            )

    def reset(self) -> None:
        """Force the breaker back to Closed with a clean failure count."""
        with self._lock:
            self._close()

    def _admit(self) -> bool:
        """Admit or reject one call; return whether it is the HalfOpen probe."""
        with self._lock:
            now = self._clock()
            if self._phase is CircuitPhase.OPEN:
                elapsed = now - self._opened_at
                if elapsed < self.open_duration:
                    raise self._rejection(self.open_duration - elapsed)
                self._transition(CircuitPhase.HALF_OPEN)
                self._probe_started_at = None

            if self._phase is CircuitPhase.HALF_OPEN:
                started = self._probe_started_at
                if started is not None and now - started < self.probe_cooldown:
                    raise self._rejection(self.probe_cooldown - (now - started))
                self._probe_started_at = now
                return True
            return False

    def _record_success(self) -> None:
        with self._lock:
            self._close()

    def _record_failure(self, error: ClassifiedError) -> None:
        with self._lock:
            now = self._clock()
            self._failures += 1
            self._last_failure_at = now
            if self._phase is CircuitPhase.HALF_OPEN:
                self._open(now, error)
            elif (
                self._phase is CircuitPhase.CLOSED
                and self._failures >= self.failure_threshold
            ):
                self._open(now, error)

    def _release_probe(self) -> None:
        with self._lock:
            self._probe_started_at = None

    def _open(self, now: float, error: ClassifiedError) -> None:
        self._opened_at = now
        self._probe_started_at = None
        self._transition(CircuitPhase.OPEN, error_kind=error.kind.value)

    def _close(self) -> None:
        self._failures = 0
        self._probe_started_at = None
        if self._phase is not CircuitPhase.CLOSED:
            self._transition(CircuitPhase.CLOSED)

    def _transition(self, phase: CircuitPhase, **structured: object) -> None:
        previous = self._phase
        self._phase = phase
        log = _LOGGER.warning if phase is CircuitPhase.OPEN else _LOGGER.info
        log(
            "circuit breaker %s: %s -> %s",
            self.name,
            previous.value,
            phase.value,
            extra={
                "structured": {
                    fields.SERVICE: self.name,
                    fields.BREAKER_STATE: phase.value,
                    fields.FAILURES: self._failures,
                    **structured,
                }
            },
        )

    def _rejection(self, time_until_reset: float) -> ClassifiedError:
        state = self._phase.value
        _LOGGER.debug(
            "circuit breaker %s rejected call while %s",
            self.name,
            state,
            extra={
                "structured": {
                    fields.SERVICE: self.name,
                    fields.BREAKER_STATE: state,
                    fields.FAILURES: self._failures,
                    fields.RETRY_IN_SECONDS: round(max(0.0, time_until_reset), 3),
                }
            },
        )
        return create_error(
            ErrorKind.SERVICE_UNAVAILABLE,
            f"Circuit breaker for {self.name} is {state} - service temporarily unavailable",
            details=ErrorDetails(
                service=self.name,
                state=state,
                failures=self._failures,
                time_until_reset=max(0.0, time_until_reset),
            ),
        )
