"""Factory helpers for creating consistent classified errors."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from .types import ClassifiedError, ErrorDetails, ErrorKind


def create_error(
    kind: ErrorKind | str,
    message: str,
    *,
    details: ErrorDetails | None = None,
    status: int | None = None,
    code: str | None = None,
) -> ClassifiedError:
    """Create a classified error, stamping a timestamp when none is given."""
    resolved = details or ErrorDetails()
    if resolved.timestamp is None:
        resolved = replace(resolved, timestamp=datetime.now(UTC))
    return ClassifiedError(
        kind=ErrorKind(kind),
        message=message,
        details=resolved,
        status=status,
        code=code or "",
    )


def validation_error(field: str, value: Any, expected: str) -> ClassifiedError:
    """Create a validation error for one offending input field."""
    return create_error(
        ErrorKind.VALIDATION_ERROR,
        (
            f"Validation failed for field '{field}': "
            f"expected {expected}, got {type(value).__name__}"
        ),
        details=ErrorDetails(
            extra={"field": field, "value": value, "expected": expected}
        ),
    )


def refine(error: ClassifiedError, code: str) -> ClassifiedError:
    """Return a copy of ``error`` carrying a service-specific ``code``.

    The kind, details, and status are preserved so retry and breaker
    decisions are unchanged.
    """
    return replace(error, code=code)


def error_response(exc: BaseException) -> dict[str, Any]:
    """Render any exception into the canonical ``{"error": {...}}`` shape."""
    if isinstance(exc, ClassifiedError):
        return {
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details.as_dict(),
            }
        }
    return {
        "error": {
            "code": ErrorKind.INTERNAL_ERROR.value,
            "message": str(exc) or "Unknown error",
        }
    }
