"""
HTTP transport helpers shared by probes and vendor providers.

All outgoing requests go through ``create_http_client`` so tests can swap
in an ``httpx.MockTransport`` in one place.
"""
from __future__ import annotations

from typing import Optional

import httpx

from .exceptions import ProviderHTTPError


def create_http_client(timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Build the AsyncClient used for one request (callers use ``async with``)."""
    return httpx.AsyncClient(timeout=timeout, transport=transport)


def normalize_base_url(base_url: Optional[str]) -> str:
    return str(base_url or "").strip().rstrip("/")


def join_url(base_url: str, path: str) -> str:
    """
    Join a base URL and an API path without doubling a version segment.

    ``join_url("http://h:8000/v1", "/v1/models")`` and
    ``join_url("http://h:8000", "/v1/models")`` both give
    ``http://h:8000/v1/models``.
    """
    base = normalize_base_url(base_url)
    suffix = "/" + path.lstrip("/")
    first_segment = "/" + suffix.lstrip("/").split("/", 1)[0]
    if first_segment != "/" and base.endswith(first_segment):
        base = base[: -len(first_segment)]
    return f"{base}{suffix}"


def bearer_headers(api_key: Optional[str]) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def raise_for_status(response: httpx.Response, provider: Optional[str] = None) -> None:
    """Raise ProviderHTTPError carrying the (truncated) body for non-2xx responses."""
    if response.is_success:
        return
    raise ProviderHTTPError(response.status_code, response.text, provider)
