"""Unit tests for the shared async HTTP client wrapper."""

from __future__ import annotations

import asyncio
import pickle
from contextlib import contextmanager
from typing import Iterator

import httpx
import pytest

from packages.courier_shared.http import (
    AsyncHttpClient,
    HttpJsonDecodeError,
    HttpRequestError,
    HttpStatusError,
)


def test_request_json_returns_decoded_payload() -> None:
    """request_json should decode and return JSON content."""

    async def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        return httpx.Response(200, json={"created": True}, request=request)

    client = AsyncHttpClient(
        base_url="https://example.test",
        transport=httpx.MockTransport(handler),
    )

    async def _run() -> None:
        async with client:
            assert await client.request_json("POST", "/orders", json={"sku": "A"}) == {
                "created": True
            }

    asyncio.run(_run())


def test_empty_body_decodes_to_none() -> None:
    """A 204 response should decode to ``None`` rather than failing."""

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204, request=request)

    client = AsyncHttpClient(
        base_url="https://example.test",
        transport=httpx.MockTransport(handler),
    )

    async def _run() -> object:
        async with client:
            return await client.request_json("DELETE", "/orders/1")

    assert asyncio.run(_run()) is None


def test_status_failure_maps_to_typed_error() -> None:
    """Non-2xx responses should raise HttpStatusError with status and headers."""

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429, text="slow down", headers={"Retry-After": "12"}, request=request
        )

    client = AsyncHttpClient(
        base_url="https://example.test",
        transport=httpx.MockTransport(handler),
    )

    async def _run() -> HttpStatusError:
        async with client:
            with pytest.raises(HttpStatusError) as exc_info:
                await client.request("GET", "/rates")
        return exc_info.value

    error = asyncio.run(_run())

    assert error.method == "GET"
    assert error.status_code == 429
    assert error.response_body == "slow down"
    assert error.response_headers["retry-after"] == "12"


def test_transport_failure_maps_to_typed_error() -> None:
    """Transport failures should raise HttpRequestError carrying the cause."""

    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection failed", request=request)

    client = AsyncHttpClient(
        base_url="https://example.test",
        transport=httpx.MockTransport(handler),
    )

    async def _run() -> HttpRequestError:
        async with client:
            with pytest.raises(HttpRequestError) as exc_info:
                await client.request("GET", "/health")
        return exc_info.value

    error = asyncio.run(_run())

    assert error.method == "GET"
    assert error.url == "https://example.test/health"
    assert isinstance(error.cause, httpx.ConnectError)


def test_invalid_json_maps_to_typed_error() -> None:
    """Successful responses with invalid JSON should raise HttpJsonDecodeError."""

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not-json", request=request)

    client = AsyncHttpClient(
        base_url="https://example.test",
        transport=httpx.MockTransport(handler),
    )

    async def _run() -> HttpJsonDecodeError:
        async with client:
            with pytest.raises(HttpJsonDecodeError) as exc_info:
                await client.request_json("GET", "/health")
        return exc_info.value

    error = asyncio.run(_run())

    assert error.status_code == 200
    assert error.response_body == "not-json"


def test_status_error_survives_context_managers_and_pickling() -> None:
    """Transport errors should unwind through @contextmanager and pickle cleanly."""

    @contextmanager
    def scope() -> Iterator[None]:
        yield

    error = HttpStatusError(
        message="HTTP 503 for GET https://example.test/rates",
        method="GET",
        url="https://example.test/rates",
        status_code=503,
        response_body="busy",
    )

    with pytest.raises(HttpStatusError) as exc_info:
        with scope():
            raise error

    restored = pickle.loads(pickle.dumps(error))

    assert exc_info.value is error
    assert restored.status_code == 503
    assert restored.url == "https://example.test/rates"
    assert restored.args == ("HTTP 503 for GET https://example.test/rates",)
    with pytest.raises(AttributeError):
        error.status_code = 500  # type: ignore[misc]
