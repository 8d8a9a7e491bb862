"""Resilient-call layer: circuit breaker, retry executor, error collector."""

from .breaker import CircuitBreaker, CircuitPhase, CircuitStatus
from .collector import ErrorCollector, ErrorSummary
from .registry import BreakerRegistry
from .retry import DEFAULT_RETRY_POLICY, RetryPolicy, compute_delay, with_retry

__all__ = [
    "BreakerRegistry",
    "CircuitBreaker",
    "CircuitPhase",
    "CircuitStatus",
    "DEFAULT_RETRY_POLICY",
    "ErrorCollector",
    "ErrorSummary",
    "RetryPolicy",
    "compute_delay",
    "with_retry",
]
