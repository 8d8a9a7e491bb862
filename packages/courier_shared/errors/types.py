"""Canonical classified error type for outbound API calls.

Every failure that leaves the resilience layer is a ``ClassifiedError``: one
closed ``ErrorKind``, a human-readable message, structured diagnostic details,
and a deterministic transport status.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError, asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Mapping


class ErrorKind(str, Enum):
    """Closed taxonomy of failure kinds produced by classification."""

    INVALID_PARAMS = "INVALID_PARAMS"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    METHOD_NOT_FOUND = "METHOD_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    EXTERNAL_ERROR = "EXTERNAL_ERROR"


DEFAULT_TRANSPORT_STATUS: Mapping[ErrorKind, int] = {
    ErrorKind.INVALID_PARAMS: 400,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.METHOD_NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL_ERROR: 500,
    ErrorKind.API_ERROR: 500,
    ErrorKind.EXTERNAL_ERROR: 502,
    ErrorKind.SERVICE_UNAVAILABLE: 503,
    ErrorKind.NETWORK_ERROR: 503,
    ErrorKind.TIMEOUT: 504,
}


@dataclass(frozen=True)
class ErrorDetails:
    """Diagnostic context attached to a classified error.

    Details are never used for control flow. ``extra`` carries any
    collaborator-specific keys that do not have a dedicated field.
    """

    service: str | None = None
    status: int | None = None
    method: str | None = None
    endpoint: str | None = None
    retry_after: int | None = None
    state: str | None = None
    failures: int | None = None
    time_until_reset: float | None = None
    original_error: str | None = None
    network_code: str | None = None
    data: Any = None
    timestamp: datetime | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Naive timestamps are taken to be UTC so recency math never mixes kinds.
        if self.timestamp is not None and self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=UTC))

    def as_dict(self) -> dict[str, Any]:
        """Return populated fields as a flat plain dict."""
        output: dict[str, Any] = {}
        for key, value in asdict(self).items():
            if key == "extra" or value is None:
                continue
            output[key] = value.isoformat() if isinstance(value, datetime) else value
        output.update(self.extra)
        return output


@dataclass(eq=False)
class ClassifiedError(Exception):
    """Typed failure carrying a taxonomy kind and transport status.

    ``status`` is the explicit transport status when one is known (for example
    the upstream HTTP status); otherwise ``transport_status`` falls back to the
    default table for ``kind``. ``code`` defaults to the kind value and may be
    refined with a service-specific code.

    Declared fields are write-once. Attributes the interpreter manages, such
    as ``__traceback__``, remain assignable.
    """

    kind: ErrorKind
    message: str
    details: ErrorDetails = field(default_factory=ErrorDetails)
    status: int | None = None
    code: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ErrorKind(self.kind))
        if not self.code:
            object.__setattr__(self, "code", self.kind.value)
        Exception.__init__(self, self.message)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self.__dataclass_fields__ and name in self.__dict__:
            raise FrozenInstanceError(f"cannot assign to field {name!r}")
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        if name in self.__dataclass_fields__:
            raise FrozenInstanceError(f"cannot delete field {name!r}")
        super().__delattr__(name)

    def __reduce__(self) -> tuple[Any, ...]:
        values = tuple(getattr(self, name) for name in self.__dataclass_fields__)
        return type(self), values

    def __str__(self) -> str:
        """Return the human-readable error message."""
        return self.message

    @property
    def transport_status(self) -> int:
        """Explicit status when set, otherwise the default for ``kind``."""
        if self.status is not None:
            return self.status
        return DEFAULT_TRANSPORT_STATUS.get(self.kind, 500)

    def to_dict(self) -> dict[str, Any]:
        """Serialize into a JSON-friendly mapping."""
        return {
            "code": self.code,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details.as_dict(),
            "status": self.transport_status,
        }
