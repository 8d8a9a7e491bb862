"""Classification of raw outbound-call failures into ``ClassifiedError``.

``classify`` is pure: it inspects the failure, never raises, and can be called
concurrently from any number of callers.
"""

from __future__ import annotations

import errno
import json
import socket
from dataclasses import replace
from typing import Any, Mapping, NamedTuple

import httpx

from packages.courier_shared.http.errors import (
    HttpError,
    HttpJsonDecodeError,
    HttpRequestError,
    HttpStatusError,
)
from packages.courier_shared.logging import get_logger

from .factories import create_error
from .types import ClassifiedError, ErrorDetails, ErrorKind

_LOGGER = get_logger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60
SERVICE_UNAVAILABLE_RETRY_SECONDS = 30

RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.TIMEOUT,
        ErrorKind.SERVICE_UNAVAILABLE,
        ErrorKind.RATE_LIMITED,
        ErrorKind.NETWORK_ERROR,
    }
)

_NETWORK_CODES = frozenset({"ENOTFOUND", "ECONNREFUSED", "EAI_AGAIN"})
_TIMEOUT_CODES = frozenset({"ETIMEDOUT", "ESOCKETTIMEDOUT"})
_TIMEOUT_MARKERS = ("timeout", "timed out")

_STATUS_KINDS: Mapping[int, tuple[ErrorKind, str]] = {
    400: (ErrorKind.INVALID_PARAMS, "Bad request"),
    401: (ErrorKind.UNAUTHORIZED, "Unauthorized - check API key"),
    403: (ErrorKind.FORBIDDEN, "Forbidden - insufficient permissions"),
    404: (ErrorKind.NOT_FOUND, "Resource not found"),
    429: (ErrorKind.RATE_LIMITED, "Rate limit exceeded"),
    500: (ErrorKind.SERVICE_UNAVAILABLE, "Service temporarily unavailable"),
    502: (ErrorKind.SERVICE_UNAVAILABLE, "Service temporarily unavailable"),
    503: (ErrorKind.SERVICE_UNAVAILABLE, "Service temporarily unavailable"),
    504: (ErrorKind.TIMEOUT, "Request timeout"),
}


class _HttpFailure(NamedTuple):
    """Normalized view of one failed HTTP response."""

    status: int
    headers: Mapping[str, str]
    body: str
    method: str | None
    url: str | None


def is_retryable(kind: ErrorKind | ClassifiedError) -> bool:
    """Return whether re-attempting a failure of this kind may succeed."""
    if isinstance(kind, ClassifiedError):
        kind = kind.kind
    return kind in RETRYABLE_KINDS


def retry_delay_hint(error: ClassifiedError) -> int | None:
    """Return the upstream-suggested wait in seconds, if any."""
    if error.kind is ErrorKind.RATE_LIMITED:
        return error.details.retry_after or DEFAULT_RETRY_AFTER_SECONDS
    if error.kind is ErrorKind.SERVICE_UNAVAILABLE:
        return SERVICE_UNAVAILABLE_RETRY_SECONDS
    return None


def classify(failure: object, service: str) -> ClassifiedError:
    """Map a raw failure from ``service`` into one ``ClassifiedError``.

    Already-classified errors are returned unchanged.
    """
    if isinstance(failure, ClassifiedError):
        return failure
    try:
        return _classify(failure, service)
    except Exception:
        _LOGGER.debug("failure classification fell back to EXTERNAL_ERROR", exc_info=True)
        return create_error(
            ErrorKind.EXTERNAL_ERROR,
            f"Unexpected {service} error",
            details=ErrorDetails(service=service, original_error=_describe(failure)),
        )


def _classify(failure: object, service: str) -> ClassifiedError:
    http_failure = _http_failure(failure)
    if http_failure is not None:
        return _classify_status(http_failure, service)

    if isinstance(failure, HttpJsonDecodeError):
        return create_error(
            ErrorKind.API_ERROR,
            f"{service} API error: response body is not valid JSON",
            details=ErrorDetails(
                service=service,
                status=failure.status_code,
                method=failure.method,
                endpoint=failure.url,
                original_error=(
                    _describe(failure.cause) if failure.cause is not None else None
                ),
            ),
        )

    method: str | None = None
    endpoint: str | None = None
    cause: object = failure
    if isinstance(failure, HttpRequestError):
        method, endpoint = failure.method, failure.url
        cause = failure.cause if failure.cause is not None else failure

    if _is_network_failure(cause):
        return create_error(
            ErrorKind.NETWORK_ERROR,
            f"Network error connecting to {service}: {_describe(cause)}",
            details=ErrorDetails(
                service=service,
                method=method,
                endpoint=endpoint,
                network_code=_network_code(cause),
            ),
        )

    if _is_timeout(cause):
        return create_error(
            ErrorKind.TIMEOUT,
            f"Request to {service} timed out",
            details=ErrorDetails(
                service=service,
                method=method,
                endpoint=endpoint,
                original_error=_describe(cause),
            ),
        )

    return create_error(
        ErrorKind.EXTERNAL_ERROR,
        f"Unexpected {service} error: {_describe(cause)}",
        details=ErrorDetails(
            service=service,
            method=method,
            endpoint=endpoint,
            original_error=_describe(cause),
        ),
    )


def _classify_status(failure: _HttpFailure, service: str) -> ClassifiedError:
    status = failure.status
    data = _body_data(failure.body)
    details = ErrorDetails(
        service=service,
        status=status,
        method=failure.method,
        endpoint=failure.url,
    )

    mapped = _STATUS_KINDS.get(status)
    if mapped is None:
        kind = ErrorKind.API_ERROR
        message = f"{service} API error: {_body_message(data) or 'Unknown error'}"
        details = replace(details, data=data)
    else:
        kind, summary = mapped
        message = f"{service} API: {summary}"
        if kind is ErrorKind.INVALID_PARAMS:
            message = f"{service} API: {_body_message(data) or summary}"
            details = replace(details, data=data)
        elif kind is ErrorKind.RATE_LIMITED:
            details = replace(details, retry_after=_retry_after(failure.headers))

    return create_error(kind, message, details=details, status=status)


def _http_failure(failure: object) -> _HttpFailure | None:
    if isinstance(failure, HttpStatusError):
        return _HttpFailure(
            status=failure.status_code,
            headers=failure.response_headers,
            body=failure.response_body,
            method=failure.method,
            url=failure.url,
        )

    response = getattr(failure, "response", None)
    if response is None:
        return None
    status = getattr(response, "status_code", None)
    if not isinstance(status, int) or 200 <= status < 300:
        return None

    method: str | None = None
    url: str | None = None
    if isinstance(failure, httpx.HTTPStatusError):
        method = failure.request.method
        url = str(failure.request.url)
    headers = getattr(response, "headers", None) or {}
    return _HttpFailure(
        status=status,
        headers=dict(headers.items()) if hasattr(headers, "items") else {},
        body=_response_text(response),
        method=method,
        url=url,
    )


def _response_text(response: Any) -> str:
    try:
        text = response.text
    except Exception:
        return ""
    return text if isinstance(text, str) else ""


def _body_data(body: str) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return {"message": body}


def _body_message(data: Any) -> str | None:
    if not isinstance(data, Mapping):
        return None
    for key in ("message", "error"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, Mapping) and isinstance(value.get("message"), str):
            return value["message"]
    return None


def _retry_after(headers: Mapping[str, str]) -> int:
    raw = None
    for key, value in headers.items():
        if key.lower() == "retry-after":
            raw = value
            break
    if raw is None:
        return DEFAULT_RETRY_AFTER_SECONDS
    try:
        parsed = int(str(raw).strip())
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS
    return parsed if parsed >= 0 else DEFAULT_RETRY_AFTER_SECONDS


def _is_network_failure(failure: object) -> bool:
    if isinstance(failure, (httpx.ConnectError, ConnectionRefusedError, socket.gaierror)):
        return True
    if getattr(failure, "errno", None) == errno.ECONNREFUSED:
        return True
    return getattr(failure, "code", None) in _NETWORK_CODES


def _network_code(failure: object) -> str | None:
    code = getattr(failure, "code", None)
    if isinstance(code, str):
        return code
    if isinstance(failure, socket.gaierror):
        return "ENOTFOUND"
    if isinstance(failure, (httpx.ConnectError, ConnectionRefusedError)):
        return "ECONNREFUSED"
    return None


def _is_timeout(failure: object) -> bool:
    if isinstance(failure, (TimeoutError, httpx.TimeoutException)):
        return True
    if getattr(failure, "code", None) in _TIMEOUT_CODES:
        return True
    if isinstance(failure, HttpError):
        # Client wrapper messages embed the URL, never a timeout signal.
        return False
    text = _describe(failure).lower()
    return any(marker in text for marker in _TIMEOUT_MARKERS)


def _describe(failure: object) -> str:
    try:
        text = str(failure)
    except Exception:
        text = ""
    return text or type(failure).__name__
