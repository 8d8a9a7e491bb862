"""Async HTTP client wrapper over httpx that raises typed transport errors."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from .errors import HttpJsonDecodeError, HttpRequestError, HttpStatusError


def _response_text(response: httpx.Response) -> str:
    """Return response text without raising secondary decode errors."""
    try:
        return response.text
    except Exception:
        return ""


def _status_error(response: httpx.Response) -> HttpStatusError:
    request = response.request
    return HttpStatusError(
        message=f"HTTP {response.status_code} for {request.method} {request.url}",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        response_body=_response_text(response),
        response_headers=dict(response.headers.items()),
    )


class AsyncHttpClient:
    """Thin asynchronous wrapper over ``httpx.AsyncClient``.

    The wrapper performs exactly one attempt per call. Retry and circuit
    breaking belong to the resilience layer that wraps it.
    """

    def __init__(
        self,
        *,
        base_url: str = "",
        timeout_seconds: float = 30.0,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            headers=dict(headers or {}),
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        """Base URL requests are resolved against."""
        return str(self._client.base_url)

    async def aclose(self) -> None:
        """Close underlying transport resources when owned."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AsyncHttpClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Issue one request; raise ``HttpRequestError`` or ``HttpStatusError``."""
        try:
            response = await self._client.request(method=method, url=url, **kwargs)
        except httpx.RequestError as exc:
            try:
                request: httpx.Request | None = exc.request
            except RuntimeError:
                request = None
            request_url = str(request.url) if request is not None else url
            request_method = request.method if request is not None else method.upper()
            raise HttpRequestError(
                message=f"HTTP request failed for {request_method} {request_url}",
                method=request_method,
                url=request_url,
                cause=exc,
            ) from exc

        if response.is_error:
            raise _status_error(response)
        return response

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Issue one request and decode JSON; empty bodies decode to ``None``."""
        response = await self.request(method, url, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise HttpJsonDecodeError(
                message=(
                    f"Invalid JSON response for {response.request.method} "
                    f"{response.request.url}"
                ),
                method=response.request.method,
                url=str(response.request.url),
                status_code=response.status_code,
                response_body=_response_text(response),
                cause=exc,
            ) from exc
