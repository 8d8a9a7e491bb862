"""Stdout logging configuration for courier processes.

Log lines carry the bound context (service, breaker state, retry attempt) as
structured fields, either as JSON or appended to a plain line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from . import fields
from .context import bind_context, get_context


class ContextFilter(logging.Filter):
    """Snapshot bound context plus the call's ``structured`` extra onto the record.

    Per-call fields win over bound context; all values are stringified.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        merged = get_context()
        structured = getattr(record, "structured", None)
        if isinstance(structured, dict):
            merged.update((str(key), str(value)) for key, value in structured.items())
        setattr(record, "context", merged)
        return True


def _record_context(record: logging.LogRecord) -> dict[str, str]:
    context = getattr(record, "context", None)
    return context if isinstance(context, dict) else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per line: core fields first, then context."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            fields.TIMESTAMP: datetime.fromtimestamp(record.created, UTC).isoformat(),
            fields.LEVEL: record.levelname,
            fields.LOGGER: record.name,
            fields.MESSAGE: record.getMessage(),
            **_record_context(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """``<time> <level> <logger> <message> key=value ...`` lines."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = sorted(_record_context(record).items())
        if not pairs:
            return line
        return line + " " + " ".join(f"{key}={value}" for key, value in pairs)


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    service: str | None = None,
    environment: str | None = None,
) -> None:
    """Install a single stdout handler on the root logger.

    Calling it again replaces the handler rather than adding a second one.
    ``service`` and ``environment`` are bound into the logging context.
    """
    resolved = level.upper()
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(resolved)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(resolved)

    bind_context(**{fields.SERVICE: service, fields.ENVIRONMENT: environment})


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger using Python's standard logging hierarchy."""
    return logging.getLogger(name)
