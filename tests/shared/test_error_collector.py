"""Unit tests for the rolling error collector."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from packages.courier_shared.errors import (
    ClassifiedError,
    ErrorDetails,
    ErrorKind,
    codes,
    create_error,
    refine,
)
from packages.courier_shared.resilience import ErrorCollector

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=UTC)


def _error(
    kind: ErrorKind, *, minutes_ago: float | None = 0.0, label: str = ""
) -> ClassifiedError:
    timestamp = None if minutes_ago is None else NOW - timedelta(minutes=minutes_ago)
    return ClassifiedError(
        kind=kind,
        message=label or kind.value,
        details=ErrorDetails(service="inventory", timestamp=timestamp),
    )


def test_add_beyond_capacity_evicts_oldest_first() -> None:
    """maxErrors + k inserts should keep the last maxErrors entries in order."""
    collector = ErrorCollector(max_errors=5, now=lambda: NOW)
    inserted = [_error(ErrorKind.TIMEOUT, label=f"e{index}") for index in range(8)]

    for error in inserted:
        collector.add(error)

    assert len(collector) == 5
    assert collector.get_errors_by_code(ErrorKind.TIMEOUT) == inserted[3:]


def test_recent_errors_filter_by_timestamp_and_skip_unstamped() -> None:
    """Recency queries should use details.timestamp and exclude unstamped errors."""
    collector = ErrorCollector(now=lambda: NOW)
    fresh = _error(ErrorKind.TIMEOUT, minutes_ago=2)
    stale = _error(ErrorKind.TIMEOUT, minutes_ago=30)
    unstamped = _error(ErrorKind.NOT_FOUND, minutes_ago=None)
    for error in (fresh, stale, unstamped):
        collector.add(error)

    assert collector.get_recent_errors(10) == [fresh]
    assert collector.get_recent_errors(60) == [fresh, stale]


def test_summary_counts_by_kind_including_unstamped() -> None:
    """Summary totals should include errors without timestamps."""
    collector = ErrorCollector(now=lambda: NOW)
    collector.add(_error(ErrorKind.TIMEOUT, minutes_ago=1))
    collector.add(_error(ErrorKind.TIMEOUT, minutes_ago=45))
    collector.add(_error(ErrorKind.RATE_LIMITED, minutes_ago=None))

    summary = collector.get_summary()

    assert summary.total == 3
    assert summary.by_kind == {"TIMEOUT": 2, "RATE_LIMITED": 1}
    assert summary.recent_count == 1


def test_errors_by_code_matches_kind_or_refined_code() -> None:
    """Lookups should match the taxonomy kind or a service refinement code."""
    collector = ErrorCollector()
    plain = create_error(ErrorKind.NOT_FOUND, "missing product")
    refined = refine(
        create_error(ErrorKind.NOT_FOUND, "missing order"), codes.ORDER_ERROR
    )
    collector.add(plain)
    collector.add(refined)

    assert collector.get_errors_by_code(ErrorKind.NOT_FOUND) == [plain, refined]
    assert collector.get_errors_by_code(codes.ORDER_ERROR) == [refined]
    assert collector.get_errors_by_code("NOT_FOUND") == [plain, refined]


def test_clear_empties_buffer() -> None:
    collector = ErrorCollector()
    collector.add(create_error(ErrorKind.TIMEOUT, "slow"))

    collector.clear()

    assert len(collector) == 0
    assert collector.get_summary().total == 0


def test_collector_requires_positive_capacity() -> None:
    with pytest.raises(ValueError):
        ErrorCollector(max_errors=0)


def test_naive_timestamps_and_clock_are_treated_as_utc() -> None:
    """Naive datetimes on either side of the recency check should not raise."""
    naive_now = NOW.replace(tzinfo=None)
    collector = ErrorCollector(now=lambda: naive_now)
    naive = ClassifiedError(
        kind=ErrorKind.TIMEOUT,
        message="slow",
        details=ErrorDetails(timestamp=naive_now - timedelta(minutes=1)),
    )
    collector.add(naive)
    collector.add(_error(ErrorKind.NOT_FOUND, minutes_ago=30))

    summary = collector.get_summary()

    assert naive.details.timestamp is not None
    assert naive.details.timestamp.tzinfo is UTC
    assert collector.get_recent_errors() == [naive]
    assert summary.recent_count == 1
    assert summary.total == 2
