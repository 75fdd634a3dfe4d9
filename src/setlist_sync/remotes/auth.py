"""Access-token providers used by the remote adapters.

Adapters call their provider on every operation, so token refresh stays
inside the adapter layer.  ``GoogleRefreshTokenProvider`` exchanges a
long-lived OAuth refresh token for short-lived access tokens and caches
each one until shortly before it expires.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

import httpx

from setlist_sync.config import Settings, settings
from setlist_sync.exceptions import NotConfiguredError, RemoteError
from setlist_sync.remotes.http import DEFAULT_TIMEOUT, json_body, send

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_EXPIRY_SKEW_SECONDS = 60


class StaticTokenProvider:
    """Always returns the same token.

    Args:
        token: The bearer token.
        hint: Message for ``NotConfiguredError`` when the token is empty.
    """

    def __init__(self, token: str, hint: str = "No access token configured") -> None:
        self._token = token
        self._hint = hint

    async def __call__(self) -> str:
        if not self._token:
            raise NotConfiguredError(self._hint)
        return self._token


class GoogleRefreshTokenProvider:
    """Refresh-token grant against Google's OAuth endpoint.

    Args:
        client_id: OAuth client id.
        client_secret: OAuth client secret.
        refresh_token: Long-lived refresh token.
        transport: Optional httpx transport (for testing).
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._transport = transport
        self._clock = clock
        self._access_token: str | None = None
        self._expires_at = 0.0

    async def __call__(self) -> str:
        if self._access_token and self._clock() < self._expires_at - _EXPIRY_SKEW_SECONDS:
            return self._access_token

        async with httpx.AsyncClient(
            transport=self._transport, timeout=DEFAULT_TIMEOUT
        ) as client:
            response = await send(
                client,
                "POST",
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": self._refresh_token,
                    "grant_type": "refresh_token",
                },
            )

        body = json_body(response)
        if response.status_code != 200 or "access_token" not in body:
            self._access_token = None
            self._expires_at = 0.0
            message = body.get("error_description") or body.get("error")
            raise RemoteError(
                message or f"Google token refresh failed: {response.status_code}",
                response.status_code,
            )

        self._access_token = str(body["access_token"])
        self._expires_at = self._clock() + float(body.get("expires_in", 3600))
        logger.debug("Refreshed Google access token")
        return self._access_token


def google_token_provider(
    config: Settings = settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> TokenProvider:
    """Pick the Google token provider the environment supports."""
    if config.has_google_refresh_credentials():
        return GoogleRefreshTokenProvider(
            config.google_client_id,
            config.google_client_secret,
            config.google_refresh_token,
            transport=transport,
        )
    return StaticTokenProvider(
        config.google_access_token,
        hint=(
            "Google Drive needs credentials. Set GOOGLE_ACCESS_TOKEN, or "
            "GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REFRESH_TOKEN."
        ),
    )
