"""Resilient client for one external REST dependency.

Calls are composed as ``breaker -> retry -> HTTP``: the breaker observes one
outcome per retry sequence, so a burst of retries against a failing
dependency counts as a single failure toward opening the circuit.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from packages.courier_shared.config import CourierSettings
from packages.courier_shared.errors import ClassifiedError, classify
from packages.courier_shared.http import AsyncHttpClient
from packages.courier_shared.logging import fields, get_logger, log_context
from packages.courier_shared.resilience import (
    BreakerRegistry,
    CircuitBreaker,
    CircuitStatus,
    ErrorCollector,
    ErrorSummary,
    RetryPolicy,
    with_retry,
)

T = TypeVar("T")

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ServiceHealth:
    """Breaker and error-history snapshot for one dependency."""

    service: str
    circuit_breaker: CircuitStatus
    errors: ErrorSummary
    recent_errors: list[dict[str, Any]]


class ResilientServiceClient:
    """Route every request for ``service`` through breaker, retry, and HTTP."""

    def __init__(
        self,
        service: str,
        http_client: AsyncHttpClient,
        *,
        breaker: CircuitBreaker | None = None,
        policy: RetryPolicy | None = None,
        collector: ErrorCollector | None = None,
    ) -> None:
        self.service = service
        self._http = http_client
        self.breaker = breaker or CircuitBreaker(service)
        self.policy = policy or RetryPolicy()
        self.collector = collector or ErrorCollector()

    @classmethod
    def from_settings(
        cls,
        service: str,
        settings: CourierSettings,
        *,
        registry: BreakerRegistry,
        collector: ErrorCollector | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ResilientServiceClient:
        """Build a client for one configured dependency.

        The breaker comes from ``registry`` so every client of the same
        dependency shares it.
        """
        endpoint = settings.service(service)
        resilience = settings.resilience
        http_client = AsyncHttpClient(
            base_url=endpoint.base_url,
            timeout_seconds=endpoint.timeout_seconds,
            headers=endpoint.headers,
            transport=transport,
        )
        return cls(
            service,
            http_client,
            breaker=registry.get(service),
            policy=RetryPolicy.from_settings(endpoint.retry or resilience.retry),
            collector=collector
            or ErrorCollector(
                resilience.collector.max_errors,
                recent_window_minutes=resilience.collector.recent_window_minutes,
            ),
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> ResilientServiceClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        policy: RetryPolicy | None = None,
        deadline: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue one logical request; raise ``ClassifiedError`` on failure."""
        method = method.upper()

        async def attempt() -> httpx.Response:
            return await self._attempt(self._http.request, method, path, **kwargs)

        return await self._guarded(
            attempt, policy=policy, deadline=deadline, method=method, path=path
        )

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        policy: RetryPolicy | None = None,
        deadline: float | None = None,
        **kwargs: Any,
    ) -> Any:
        """Issue one logical request and decode its JSON body."""
        method = method.upper()

        async def attempt() -> Any:
            return await self._attempt(self._http.request_json, method, path, **kwargs)

        return await self._guarded(
            attempt, policy=policy, deadline=deadline, method=method, path=path
        )

    async def get_json(self, path: str, **kwargs: Any) -> Any:
        return await self.request_json("GET", path, **kwargs)

    async def post_json(self, path: str, *, json: Any, **kwargs: Any) -> Any:
        return await self.request_json("POST", path, json=json, **kwargs)

    async def put_json(self, path: str, *, json: Any, **kwargs: Any) -> Any:
        return await self.request_json("PUT", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)

    def health_status(self, recent_minutes: float = 10.0) -> ServiceHealth:
        """Return breaker state, error summary, and recent errors."""
        return ServiceHealth(
            service=self.service,
            circuit_breaker=self.breaker.get_status(),
            errors=self.collector.get_summary(),
            recent_errors=[
                error.to_dict()
                for error in self.collector.get_recent_errors(recent_minutes)
            ],
        )

    async def _guarded(
        self,
        attempt: Callable[[], Awaitable[T]],
        *,
        policy: RetryPolicy | None,
        deadline: float | None,
        method: str,
        path: str,
    ) -> T:
        context = {
            fields.SERVICE: self.service,
            fields.METHOD: method,
            fields.ENDPOINT: path,
        }
        with log_context(context):
            return await self.breaker.execute(
                lambda: with_retry(
                    attempt,
                    policy or self.policy,
                    service=self.service,
                    deadline=deadline,
                    collector=self.collector,
                )
            )

    async def _attempt(self, send: Any, method: str, path: str, **kwargs: Any) -> Any:
        """Run one HTTP attempt, raising a classified error carrying the endpoint."""
        try:
            return await send(method, path, **kwargs)
        except Exception as exc:
            error = _with_endpoint(classify(exc, self.service), method, path)
            _LOGGER.debug(
                "%s %s failed: %s",
                method,
                path,
                error.kind.value,
                extra={"structured": {fields.ERROR_KIND: error.kind.value}},
            )
            if error is exc:
                raise
            raise error from exc


def _with_endpoint(error: ClassifiedError, method: str, path: str) -> ClassifiedError:
    details = error.details
    if details.endpoint is not None and details.method is not None:
        return error
    return replace(
        error,
        details=replace(
            details,
            method=details.method or method,
            endpoint=details.endpoint or path,
        ),
    )
