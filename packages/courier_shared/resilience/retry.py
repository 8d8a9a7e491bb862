"""Bounded retry with exponential backoff and jitter for async operations.

Only retryable kinds (timeouts, unavailability, rate limiting, network
failures) are re-attempted. Every failure that leaves ``with_retry`` is a
``ClassifiedError``.
"""

from __future__ import annotations

import asyncio
import math
import random
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from packages.courier_shared.config import RetrySettings
from packages.courier_shared.errors import ClassifiedError, classify, is_retryable
from packages.courier_shared.logging import fields, get_logger

if TYPE_CHECKING:
    from .collector import ErrorCollector

T = TypeVar("T")

_LOGGER = get_logger(__name__)
_RANDOM = random.Random()


@dataclass(frozen=True)
class RetryPolicy:
    """Retry/backoff configuration for one outbound call. Delays in seconds."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_backoff: bool = True
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1.")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0.")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay.")

    @staticmethod
    def from_settings(settings: RetrySettings) -> RetryPolicy:
        """Build a retry policy from configured defaults."""
        return RetryPolicy(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            max_delay=settings.max_delay_seconds,
            exponential_backoff=settings.exponential_backoff,
            jitter=settings.jitter,
        )


DEFAULT_RETRY_POLICY = RetryPolicy()


def compute_delay(
    attempt: int,
    policy: RetryPolicy,
    *,
    rng: random.Random | None = None,
) -> float:
    """Compute the backoff after failed ``attempt`` (1-based).

    The result is floored to whole milliseconds.
    """
    if attempt < 1:
        raise ValueError("attempt must be >= 1.")
    delay = policy.base_delay
    if policy.exponential_backoff:
        delay = min(policy.base_delay * (2 ** (attempt - 1)), policy.max_delay)
    if policy.jitter:
        delay *= (rng or _RANDOM).uniform(0.5, 1.0)
    return math.floor(delay * 1000) / 1000


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    service: str = "unknown",
    deadline: float | None = None,
    collector: ErrorCollector | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    rng: random.Random | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Run ``operation`` with bounded retries.

    Args:
        operation: Zero-argument coroutine factory; must raise on failure and
            must not retry internally.
        policy: Attempt and backoff bounds; defaults to ``DEFAULT_RETRY_POLICY``.
        service: Dependency name used when classifying raw failures.
        deadline: Optional budget in seconds from the first attempt. A backoff
            that would end past the budget is skipped and the last error is
            raised instead.
        collector: Records the error that is finally propagated.
        sleep: Awaitable sleep used between attempts.
        rng: Random source for jitter.
        clock: Monotonic clock used for the deadline.

    Returns:
        The operation's result.

    Raises:
        ClassifiedError: The last failure after exhausting attempts, on the
            first non-retryable failure, or when the deadline is reached.
    """
    resolved = policy or DEFAULT_RETRY_POLICY
    expires_at = clock() + deadline if deadline is not None else None
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as exc:
            error = classify(exc, service)
            delay = _next_delay(attempt, resolved, error, expires_at, rng, clock)
            if delay is None:
                if collector is not None:
                    collector.add(error)
                if error is exc:
                    raise
                raise error from exc

        _LOGGER.warning(
            "retrying %s after %.3fs (attempt %d/%d, %s)",
            service,
            delay,
            attempt,
            resolved.max_attempts,
            error.kind.value,
            extra={
                "structured": {
                    fields.SERVICE: service,
                    fields.ATTEMPT: attempt,
                    fields.MAX_ATTEMPTS: resolved.max_attempts,
                    fields.DELAY_SECONDS: delay,
                    fields.ERROR_KIND: error.kind.value,
                }
            },
        )
        await sleep(delay)


def _next_delay(
    attempt: int,
    policy: RetryPolicy,
    error: ClassifiedError,
    expires_at: float | None,
    rng: random.Random | None,
    clock: Callable[[], float],
) -> float | None:
    """Return the backoff before the next attempt, or ``None`` to give up."""
    if attempt >= policy.max_attempts or not is_retryable(error):
        return None
    delay = compute_delay(attempt, policy, rng=rng)
    if expires_at is not None and clock() + delay > expires_at:
        return None
    return delay
