"""Tests for structured logging configuration and context binding."""

from __future__ import annotations

import json
import logging

import pytest

from packages.courier_shared.errors import ClassifiedError, ErrorKind, create_error
from packages.courier_shared.logging import (
    ContextFilter,
    JsonFormatter,
    PlainFormatter,
    bind_context,
    clear_context,
    configure_logging,
    get_context,
    log_context,
)


@pytest.fixture(autouse=True)
def _reset_context() -> None:
    clear_context()


def _record(message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="courier.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_bound_and_structured_fields() -> None:
    """JSON lines should carry bound context plus per-call structured fields."""
    bind_context(service="inventory")
    record = _record("circuit opened", structured={"breaker_state": "OPEN", "failures": 5})

    ContextFilter().filter(record)
    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "circuit opened"
    assert payload["level"] == "WARNING"
    assert payload["service"] == "inventory"
    assert payload["breaker_state"] == "OPEN"
    assert payload["failures"] == "5"


def test_plain_formatter_appends_sorted_context() -> None:
    """Plain lines should append context as sorted key=value pairs."""
    record = _record("retrying", structured={"service": "shipping", "attempt": 2})

    ContextFilter().filter(record)
    line = PlainFormatter().format(record)

    assert line.endswith("retrying attempt=2 service=shipping")


def test_log_context_is_scoped_to_block() -> None:
    """log_context should restore the previous context on exit."""
    bind_context(service="shipping", ignored=None)

    with log_context({"endpoint": "/rates"}):
        assert get_context() == {"service": "shipping", "endpoint": "/rates"}

    assert get_context() == {"service": "shipping"}


def test_configure_logging_installs_single_stdout_handler() -> None:
    """Repeated configuration should not duplicate root handlers."""
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    try:
        configure_logging(level="DEBUG", json_output=False, service="courier")
        configure_logging(level="INFO", json_output=True, service="courier")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.INFO
        assert get_context()["service"] == "courier"
    finally:
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])


def test_log_context_propagates_frozen_errors_unchanged() -> None:
    """Classified errors raised inside the block should surface as-is."""
    error = create_error(ErrorKind.TIMEOUT, "Request to shipping timed out")

    with pytest.raises(ClassifiedError) as exc_info:
        with log_context({"service": "shipping"}):
            raise error

    assert exc_info.value is error
    assert get_context() == {}


def test_json_timestamp_reflects_record_creation_time() -> None:
    """The timestamp should be when the event was logged, in UTC."""
    record = _record("breaker reset")
    record.created = 1_791_460_800.0

    ContextFilter().filter(record)
    payload = json.loads(JsonFormatter().format(record))

    assert payload["timestamp"] == "2026-10-08T12:00:00+00:00"
