"""Shared HTTP plumbing for the remote adapters."""

from __future__ import annotations

from typing import Any

import httpx

from setlist_sync.exceptions import NetworkError

DEFAULT_TIMEOUT = 30.0


async def send(
    client: httpx.AsyncClient, method: str, url: str, **kwargs: Any
) -> httpx.Response:
    """Issue a request, turning transport failures into ``NetworkError``."""
    try:
        return await client.request(method, url, **kwargs)
    except httpx.TransportError as exc:
        raise NetworkError(f"{method} {url} failed: {exc}") from exc


def json_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body, or return ``{}`` if there is none."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
