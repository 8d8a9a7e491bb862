"""Typed transport errors raised by the shared async HTTP client."""

from __future__ import annotations

from dataclasses import FrozenInstanceError, dataclass, field
from typing import Any, Mapping


@dataclass(eq=False)
class HttpError(Exception):
    """Base error type for outbound HTTP call failures.

    Declared fields are write-once. Attributes the interpreter manages, such
    as ``__traceback__``, remain assignable.
    """

    message: str
    method: str
    url: str

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self.__dataclass_fields__ and name in self.__dict__:
            raise FrozenInstanceError(f"cannot assign to field {name!r}")
        super().__setattr__(name, value)

    def __reduce__(self) -> tuple[Any, ...]:
        values = tuple(getattr(self, name) for name in self.__dataclass_fields__)
        return type(self), values

    def __str__(self) -> str:
        """Return the human-readable error message."""
        return self.message


@dataclass(eq=False)
class HttpRequestError(HttpError):
    """Transport-level failure: DNS, refused connection, timeout, reset."""

    cause: Exception | None = None


@dataclass(eq=False)
class HttpStatusError(HttpError):
    """Upstream answered with a non-success status code."""

    status_code: int = 0
    response_body: str = ""
    response_headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(eq=False)
class HttpJsonDecodeError(HttpError):
    """Upstream answered successfully but the body is not valid JSON."""

    status_code: int = 0
    response_body: str = ""
    cause: Exception | None = None
