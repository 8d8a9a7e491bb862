"""Public error taxonomy and classification API for outbound calls."""

from . import codes
from .classify import (
    DEFAULT_RETRY_AFTER_SECONDS,
    RETRYABLE_KINDS,
    SERVICE_UNAVAILABLE_RETRY_SECONDS,
    classify,
    is_retryable,
    retry_delay_hint,
)
from .factories import create_error, error_response, refine, validation_error
from .types import DEFAULT_TRANSPORT_STATUS, ClassifiedError, ErrorDetails, ErrorKind

__all__ = [
    "ClassifiedError",
    "DEFAULT_RETRY_AFTER_SECONDS",
    "DEFAULT_TRANSPORT_STATUS",
    "ErrorDetails",
    "ErrorKind",
    "RETRYABLE_KINDS",
    "SERVICE_UNAVAILABLE_RETRY_SECONDS",
    "classify",
    "codes",
    "create_error",
    "error_response",
    "is_retryable",
    "refine",
    "retry_delay_hint",
    "validation_error",
]
