"""Runtime support imported by generated request builders.

This module defines the capability protocols that generated ``do()`` methods
dispatch through, and an httpx based client implementing them.

Capabilities:
    - APIClient: builds and sends public requests.
    - AuthenticatedAPIClient: additionally builds authenticated requests.
    - DynamicPathProvider: a request type computing its own path.
    - ResponseValidator: a decoded response able to reject itself.

Example:
    >>> client = BaseAPIClient(base_url='https://api.example.com')
    >>> order = PlaceOrderRequest(client).set_symbol('BTCUSDT').do()
"""

import enum
import json
import logging
from datetime import date, datetime, timedelta
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic_core import to_json

from requestgen.exceptions import APIError, ParameterError, ResponseValidationError

logger = logging.getLogger(__name__)

__all__ = [
    'APIClient',
    'APIError',
    'AuthenticatedAPIClient',
    'BaseAPIClient',
    'DynamicPathProvider',
    'ParameterError',
    'Response',
    'ResponseValidationError',
    'ResponseValidator',
    'cast_payload',
    'encode_query',
    'format_kitchen',
    'format_query_value',
    'format_rfc3339',
]

DEFAULT_HTTP_TIMEOUT = 30.0


class Response:
    """A fully read API response.

    Attributes:
        status_code: HTTP status code.
        headers: Response headers.
        body: The raw response body.
    """

    def __init__(self, status_code: int, headers: httpx.Headers, body: bytes):
        self.status_code = status_code
        self.headers = headers
        self.body = body

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> 'Response':
        return cls(response.status_code, response.headers, response.read())

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    def decode_json(self) -> Any:
        return json.loads(self.body)

    def __repr__(self) -> str:
        return f'Response(status_code={self.status_code}, body={len(self.body)} bytes)'


@runtime_checkable
class APIClient(Protocol):
    """Builds and sends requests for public endpoints."""

    def new_request(
        self,
        method: str,
        ref_url: str,
        params: dict[str, Any] | None,
        payload: Any,
    ) -> httpx.Request: ...

    def send_request(self, request: httpx.Request) -> Response: ...


@runtime_checkable
class AuthenticatedAPIClient(APIClient, Protocol):
    """An APIClient that can also build requests for authenticated endpoints."""

    def new_authenticated_request(
        self,
        method: str,
        ref_url: str,
        params: dict[str, Any] | None,
        payload: Any,
    ) -> httpx.Request: ...


@runtime_checkable
class DynamicPathProvider(Protocol):
    """A request type that computes its URL path at dispatch time."""

    def get_dynamic_path(self) -> str: ...


@runtime_checkable
class ResponseValidator(Protocol):
    """A decoded response that can reject itself.

    ``validate_response`` raises (usually ResponseValidationError) when the
    response carries an application level error.
    """

    def validate_response(self) -> None: ...


def format_query_value(value: Any) -> str:
    """Format a single parameter value for a query string."""
    if isinstance(value, enum.Enum):
        value = value.value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def format_rfc3339(value: datetime) -> str:
    """Format a datetime as RFC 3339, e.g. ``2024-01-02T15:04:05Z``.

    Naive datetimes are taken as local time. UTC is written as ``Z``.
    """
    if value.tzinfo is None:
        value = value.astimezone()
    formatted = value.isoformat(timespec='seconds')
    if value.utcoffset() == timedelta(0):
        formatted = formatted[: -len('+00:00')] + 'Z'
    return formatted


def format_kitchen(value: datetime) -> str:
    """Format the time of day as ``3:04PM``."""
    return f'{value.hour % 12 or 12}:{value:%M%p}'


def encode_query(params: dict[str, Any], repeatable: tuple[str, ...] = ()) -> dict[str, Any]:
    """Format a parameter map as query values.

    Values of repeatable keys are sent as lists under ``key[]``.
    """
    query: dict[str, Any] = {}
    for key, value in params.items():
        if key in repeatable:
            query[f'{key}[]'] = [format_query_value(v) for v in value]
        else:
            query[key] = format_query_value(value)
    return query


def cast_payload(payload: Any) -> bytes | None:
    """Convert a request payload into the request body bytes."""
    if payload is None:
        return None
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode('utf-8')
    return to_json(payload)


class BaseAPIClient:
    """Public API transport and request builder based on httpx.

    Relative request paths are resolved against ``base_url``. Responses with
    an error status raise APIError.

    Example:
        >>> client = BaseAPIClient(base_url='https://api.example.com')
        >>> request = client.new_request('GET', '/v1/ping', {'a': '1'}, None)
        >>> response = client.send_request(request)
    """

    def __init__(
        self,
        base_url: str = '',
        http_client: httpx.Client | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ):
        self.base_url = httpx.URL(base_url)
        self.http_client = http_client or httpx.Client(timeout=timeout)

    def new_request(
        self,
        method: str,
        ref_url: str,
        params: dict[str, Any] | None,
        payload: Any,
    ) -> httpx.Request:
        url = self.base_url.join(ref_url)
        body = cast_payload(payload)
        headers = {'Content-Type': 'application/json'} if body is not None else None
        return self.http_client.build_request(
            method, url, params=params or None, content=body, headers=headers
        )

    def send_request(self, request: httpx.Request) -> Response:
        logger.debug('sending %s %s', request.method, request.url)
        response = Response.from_httpx(self.http_client.send(request))
        if response.is_error:
            raise APIError(response.status_code, response.body)
        return response

    def close(self) -> None:
        self.http_client.close()

    def __enter__(self) -> 'BaseAPIClient':
        return self

    def __exit__(self, *args) -> None:
        self.close()
