"""Shared async HTTP transport for outbound API calls."""

from .client import AsyncHttpClient
from .errors import HttpError, HttpJsonDecodeError, HttpRequestError, HttpStatusError

__all__ = [
    "AsyncHttpClient",
    "HttpError",
    "HttpJsonDecodeError",
    "HttpRequestError",
    "HttpStatusError",
]
