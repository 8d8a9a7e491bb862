"""Owned registry holding one circuit breaker per dependency name."""

from __future__ import annotations

import threading
import time
from typing import Callable

from packages.courier_shared.config import BreakerSettings

from .breaker import CircuitBreaker, CircuitStatus


class BreakerRegistry:
    """Lazily create and share breakers keyed by dependency name.

    The registry is an ordinary object owned by whoever wires the clients
    together; separate registries never share breaker state.
    """

    def __init__(
        self,
        settings: BreakerSettings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or BreakerSettings()
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> CircuitBreaker:
        """Return the breaker for ``name``, creating it on first use."""
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker.from_settings(
                    name, self._settings, clock=self._clock
                )
                self._breakers[name] = breaker
            return breaker

    def __contains__(self, name: object) -> bool:
        return name in self._breakers

    def statuses(self) -> dict[str, CircuitStatus]:
        """Snapshot every known breaker."""
        with self._lock:
            breakers = list(self._breakers.values())
        return {breaker.name: breaker.get_status() for breaker in breakers}
