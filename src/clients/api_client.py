"""HTTP client helpers shared by the backend collaborator clients."""
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from core.config import Settings
from services.exceptions import BackendUnavailable

REQUEST_SOURCE = "storefront-sync"


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Create the AsyncClient every collaborator client shares."""
    return httpx.AsyncClient(
        base_url=settings.wp_json_url,
        timeout=settings.request_timeout,
    )


def _get_headers(token: str | None) -> dict[str, str]:
    """Get common headers for API requests."""
    headers = {"X-Request-Source": REQUEST_SOURCE}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _json_body(response: httpx.Response) -> Any:
    """Decode a successful response, treating a non-JSON body as a transport failure."""
    try:
        return response.json()
    except ValueError as e:
        raise httpx.DecodingError("invalid JSON body", request=response.request) from e


async def api_get(
    client: httpx.AsyncClient,
    path: str,
    token: str | None = None,
    params: dict[str, Any] | None = None,
) -> Any:
    """Make a GET request and return the decoded JSON body."""
    response = await client.get(
        path,
        params=params,
        headers=_get_headers(token),
    )
    response.raise_for_status()
    return _json_body(response)


async def api_post(
    client: httpx.AsyncClient,
    path: str,
    token: str | None = None,
    json: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
) -> Any:
    """Make a POST request and return the decoded JSON body."""
    response = await client.post(
        path,
        json=json,
        params=params,
        headers=_get_headers(token),
    )
    response.raise_for_status()
    return _json_body(response)


async def api_put(
    client: httpx.AsyncClient,
    path: str,
    json: dict[str, Any],
    token: str | None = None,
    params: dict[str, Any] | None = None,
) -> Any:
    """Make a PUT request and return the decoded JSON body."""
    response = await client.put(
        path,
        json=json,
        params=params,
        headers=_get_headers(token),
    )
    response.raise_for_status()
    return _json_body(response)


def error_message(e: httpx.HTTPStatusError, default: str) -> str:
    """
    Extract a human-readable message from an error response.

    WordPress endpoints answer with {"code", "message"}; the loyalty and
    intelligence endpoints with {"error"}. Falls back to default.
    """
    try:
        body = e.response.json()
    except ValueError:
        return default
    if not isinstance(body, dict):
        return default
    message = body.get("message") or body.get("error")
    return message if isinstance(message, str) and message else default


def error_code(e: httpx.HTTPStatusError) -> str | None:
    """Extract the WordPress error code from an error response, if any."""
    try:
        body = e.response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("code"), str):
        return body["code"]
    return None


@contextmanager
def backend_errors(service: str) -> Iterator[None]:
    """
    Translate transport failures and 5xx responses into BackendUnavailable.

    A 2xx response whose body is not JSON (a proxy or maintenance page) counts
    as a transport failure.

    4xx responses propagate as httpx.HTTPStatusError so each client can decide
    what a rejection means for its endpoint.
    """
    try:
        yield
    except httpx.HTTPStatusError as e:
        if e.response.status_code >= 500:
            raise BackendUnavailable(service, f"HTTP {e.response.status_code}") from e
        raise
    except httpx.RequestError as e:
        raise BackendUnavailable(service, str(e) or type(e).__name__) from e
