"""Remote adapter storing the snapshot in a GitHub repository file.

Uses the REST contents API (``/repos/{owner}/{repo}/contents/{path}``).
The blob ``sha`` of the file is the version token: GitHub refuses a
``PUT`` whose ``sha`` is stale with 409, which becomes ``ConflictError``.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any
from urllib.parse import quote

import httpx

from setlist_sync.exceptions import ConflictError, RemoteError, SchemaError
from setlist_sync.models import Snapshot
from setlist_sync.remotes.http import DEFAULT_TIMEOUT, json_body, send
from setlist_sync.sync.config import GitHubConfig
from setlist_sync.sync.port import RemotePullResult
from setlist_sync.sync.snapshot import serialize_snapshot, validate_snapshot

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
COMMIT_MESSAGE = "sync: update setlist data"

_CONFLICT_STATUSES = frozenset({409, 412})


class GitHubAdapter:
    """``RemoteSyncPort`` implementation for the GitHub contents API.

    Args:
        config: Repository coordinates and personal access token.
        transport: Optional httpx transport (for testing).
        timeout: Per-request timeout in seconds.
    """

    name = "GitHub"

    def __init__(
        self,
        config: GitHubConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._config = config
        self._transport = transport
        self._timeout = timeout

    # ------------------------------------------------------------------
    # RemoteSyncPort
    # ------------------------------------------------------------------

    def is_configured(self) -> bool:
        c = self._config
        return bool(c.owner and c.repo and c.token and c.path)

    async def test_connection(self) -> str:
        async with self._client() as client:
            response = await send(client, "GET", self._repo_url)
        self._check_response(response, "read repository")
        return str(json_body(response).get("full_name", ""))

    async def pull(self) -> RemotePullResult | None:
        async with self._client() as client:
            response = await send(
                client, "GET", self._contents_url, params=self._ref_params()
            )
            if response.status_code == 404:
                logger.info("No snapshot at %s yet", self._describe())
                return None
            self._check_response(response, "read snapshot")
            data = json_body(response)
            sha = data.get("sha")
            if not sha:
                raise RemoteError("GitHub response is missing the file sha")

            if data.get("encoding") == "base64":
                raw = self._decode_content(data.get("content") or "")
            else:
                # Files over 1 MB come back without inline content.
                raw = await self._fetch_raw(client)

        text = raw.decode("utf-8", errors="replace").strip()
        if not text or text == "{}":
            logger.info("Snapshot file at %s is empty", self._describe())
            return None
        snapshot = validate_snapshot(raw)
        return RemotePullResult(snapshot=snapshot, version_token=str(sha))

    async def push(self, snapshot: Snapshot, expected_version_token: str | None) -> str:
        body: dict[str, Any] = {
            "message": COMMIT_MESSAGE,
            "content": base64.b64encode(
                serialize_snapshot(snapshot).encode("utf-8")
            ).decode("ascii"),
        }
        if self._config.branch:
            body["branch"] = self._config.branch

        async with self._client() as client:
            sha = expected_version_token
            if sha is None:
                # Unconditional write: overwrite whatever is there.
                sha = await self._current_sha(client)
            if sha:
                body["sha"] = sha
            response = await send(client, "PUT", self._contents_url, json=body)

        if response.status_code in _CONFLICT_STATUSES:
            raise ConflictError()
        self._check_response(response, "write snapshot")
        new_sha = json_body(response).get("content", {}).get("sha")
        if not new_sha:
            raise RemoteError("GitHub response is missing the new file sha")
        logger.debug("Wrote %s at sha %s", self._describe(), new_sha)
        return str(new_sha)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def _repo_url(self) -> str:
        return f"/repos/{quote(self._config.owner)}/{quote(self._config.repo)}"

    @property
    def _contents_url(self) -> str:
        return f"{self._repo_url}/contents/{quote(self._config.path.lstrip('/'))}"

    def _describe(self) -> str:
        return f"{self._config.owner}/{self._config.repo}:{self._config.path}"

    def _ref_params(self) -> dict[str, str] | None:
        return {"ref": self._config.branch} if self._config.branch else None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=GITHUB_API,
            headers={
                "Authorization": f"Bearer {self._config.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            transport=self._transport,
            timeout=self._timeout,
        )

    async def _current_sha(self, client: httpx.AsyncClient) -> str | None:
        response = await send(
            client, "GET", self._contents_url, params=self._ref_params()
        )
        if response.status_code == 404:
            return None
        self._check_response(response, "read snapshot metadata")
        sha = json_body(response).get("sha")
        return str(sha) if sha else None

    async def _fetch_raw(self, client: httpx.AsyncClient) -> bytes:
        response = await send(
            client,
            "GET",
            self._contents_url,
            params=self._ref_params(),
            headers={"Accept": "application/vnd.github.raw+json"},
        )
        self._check_response(response, "download snapshot")
        return response.content

    @staticmethod
    def _decode_content(content: str) -> bytes:
        try:
            return base64.b64decode(content.replace("\n", ""), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SchemaError(f"Snapshot content is not valid base64: {exc}") from exc

    @staticmethod
    def _check_response(response: httpx.Response, operation: str) -> None:
        """Raise ``RemoteError`` carrying GitHub's message for non-2xx responses."""
        if response.is_success:
            return
        message = json_body(response).get("message")
        raise RemoteError(
            str(message) if message else f"GitHub API error during '{operation}': {response.status_code}",
            response.status_code,
        )
