"""Bounded rolling history of classified errors for diagnostics."""

from __future__ import annotations

import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Callable

from packages.courier_shared.errors import ClassifiedError, ErrorKind

DEFAULT_RECENT_MINUTES = 10.0


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ErrorSummary:
    """Aggregate view of the collector buffer."""

    total: int
    by_kind: dict[str, int] = field(default_factory=dict)
    recent_count: int = 0


class ErrorCollector:
    """FIFO-evicting buffer of the most recent ``max_errors`` errors.

    Recency queries use ``details.timestamp``; errors without a timestamp are
    only visible through kind/code queries and the summary totals.
    """

    def __init__(
        self,
        max_errors: int = 100,
        *,
        recent_window_minutes: float = DEFAULT_RECENT_MINUTES,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        if max_errors < 1:
            raise ValueError("max_errors must be >= 1.")
        self.max_errors = max_errors
        self.recent_window_minutes = recent_window_minutes
        self._now = now
        self._errors: deque[ClassifiedError] = deque(maxlen=max_errors)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._errors)

    def add(self, error: ClassifiedError) -> None:
        """Append ``error``, evicting the oldest entry once full."""
        with self._lock:
            self._errors.append(error)

    def get_recent_errors(self, minutes: float | None = None) -> list[ClassifiedError]:
        """Return errors stamped within the last ``minutes``, oldest first."""
        window = self.recent_window_minutes if minutes is None else minutes
        now = self._now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        cutoff = now - timedelta(minutes=window)
        return [
            error
            for error in self._snapshot()
            if error.details.timestamp is not None and error.details.timestamp > cutoff
        ]

    def get_errors_by_code(self, code: ErrorKind | str) -> list[ClassifiedError]:
        """Return errors whose kind or refined code matches ``code``."""
        wanted = code.value if isinstance(code, ErrorKind) else str(code)
        return [
            error
            for error in self._snapshot()
            if error.kind.value == wanted or error.code == wanted
        ]

    def get_summary(self) -> ErrorSummary:
        """Count buffered errors by kind alongside the recent-window total."""
        snapshot = self._snapshot()
        return ErrorSummary(
            total=len(snapshot),
            by_kind=dict(Counter(error.kind.value for error in snapshot)),
            recent_count=len(self.get_recent_errors()),
        )

    def clear(self) -> None:
        """Drop every buffered error."""
        with self._lock:
            self._errors.clear()

    def _snapshot(self) -> list[ClassifiedError]:
        with self._lock:
            return list(self._errors)
