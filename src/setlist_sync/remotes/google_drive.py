"""Remote adapter storing the snapshot as a Google Drive file.

Uses the Drive v3 files API.  The file's ``headRevisionId`` is the
version token.  Drive has no conditional upload, so ``push`` compares
the current head revision with the expected token right before the
upload and raises ``ConflictError`` when they differ.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from setlist_sync.exceptions import ConflictError, RemoteError
from setlist_sync.models import Snapshot
from setlist_sync.remotes.auth import TokenProvider
from setlist_sync.remotes.http import DEFAULT_TIMEOUT, json_body, send
from setlist_sync.sync.config import GoogleDriveConfig
from setlist_sync.sync.port import RemotePullResult
from setlist_sync.sync.snapshot import serialize_snapshot, validate_snapshot

logger = logging.getLogger(__name__)

DRIVE_API = "https://www.googleapis.com/drive/v3/files"
UPLOAD_API = "https://www.googleapis.com/upload/drive/v3/files"
DEFAULT_FILE_NAME = "setlist-sync.json"

_CONFLICT_STATUSES = frozenset({409, 412})
_MULTIPART_BOUNDARY = "setlist_sync_boundary"


class GoogleDriveAdapter:
    """``RemoteSyncPort`` implementation for a single Drive file.

    Args:
        config: Holds the Drive file id.
        token_provider: Returns a bearer token; called on every operation.
        transport: Optional httpx transport (for testing).
        timeout: Per-request timeout in seconds.
    """

    name = "Google Drive"

    def __init__(
        self,
        config: GoogleDriveConfig,
        token_provider: TokenProvider,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._config = config
        self._token_provider = token_provider
        self._transport = transport
        self._timeout = timeout

    # ------------------------------------------------------------------
    # RemoteSyncPort
    # ------------------------------------------------------------------

    def is_configured(self) -> bool:
        return bool(self._config.file_id)

    async def test_connection(self) -> str:
        async with await self._client() as client:
            response = await send(client, "GET", self._file_url, params={"fields": "name"})
        _check_response(response, "read file metadata")
        return str(json_body(response).get("name", ""))

    async def pull(self) -> RemotePullResult | None:
        async with await self._client() as client:
            meta = await send(
                client, "GET", self._file_url, params={"fields": "headRevisionId"}
            )
            if meta.status_code == 404:
                logger.info("Drive file %s not found", self._config.file_id)
                return None
            _check_response(meta, "read file metadata")
            version_token = json_body(meta).get("headRevisionId")
            if not version_token:
                raise RemoteError("Drive response is missing headRevisionId")

            content = await send(client, "GET", self._file_url, params={"alt": "media"})
            _check_response(content, "download file")

        text = content.text.strip()
        if not text or text == "{}":
            # Freshly created placeholder file.
            return None
        return RemotePullResult(
            snapshot=validate_snapshot(text), version_token=str(version_token)
        )

    async def push(self, snapshot: Snapshot, expected_version_token: str | None) -> str:
        async with await self._client() as client:
            if expected_version_token is not None:
                meta = await send(
                    client, "GET", self._file_url, params={"fields": "headRevisionId"}
                )
                _check_response(meta, "read file metadata")
                head = json_body(meta).get("headRevisionId")
                if head and head != expected_version_token:
                    raise ConflictError()

            response = await send(
                client,
                "PATCH",
                f"{UPLOAD_API}/{self._config.file_id}",
                params={"uploadType": "media", "fields": "headRevisionId"},
                headers={"Content-Type": "application/json"},
                content=serialize_snapshot(snapshot).encode("utf-8"),
            )

        if response.status_code in _CONFLICT_STATUSES:
            raise ConflictError()
        _check_response(response, "upload file")
        new_revision = json_body(response).get("headRevisionId")
        if not new_revision:
            raise RemoteError("Drive response is missing headRevisionId")
        logger.debug("Uploaded Drive file %s at revision %s", self._config.file_id, new_revision)
        return str(new_revision)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def _file_url(self) -> str:
        return f"{DRIVE_API}/{self._config.file_id}"

    async def _client(self) -> httpx.AsyncClient:
        token = await self._token_provider()
        return httpx.AsyncClient(
            headers={"Authorization": f"Bearer {token}"},
            transport=self._transport,
            timeout=self._timeout,
        )


async def create_drive_file(
    token_provider: TokenProvider,
    parent_folder_id: str | None = None,
    *,
    name: str = DEFAULT_FILE_NAME,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Create an empty JSON file in Drive and return its file id.

    The placeholder content ``{}`` makes the first ``pull`` report that
    no snapshot exists yet.
    """
    metadata: dict[str, Any] = {"name": name, "mimeType": "application/json"}
    if parent_folder_id:
        metadata["parents"] = [parent_folder_id]

    body = (
        f"--{_MULTIPART_BOUNDARY}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{_MULTIPART_BOUNDARY}\r\n"
        "Content-Type: application/json\r\n\r\n"
        "{}\r\n"
        f"--{_MULTIPART_BOUNDARY}--"
    )

    token = await token_provider()
    async with httpx.AsyncClient(transport=transport, timeout=DEFAULT_TIMEOUT) as client:
        response = await send(
            client,
            "POST",
            UPLOAD_API,
            params={"uploadType": "multipart", "fields": "id"},
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": f"multipart/related; boundary={_MULTIPART_BOUNDARY}",
            },
            content=body.encode("utf-8"),
        )
    _check_response(response, "create file")
    file_id = json_body(response).get("id")
    if not file_id:
        raise RemoteError("Drive response is missing the new file id")
    logger.info("Created Drive file %s (%s)", name, file_id)
    return str(file_id)


def _check_response(response: httpx.Response, operation: str) -> None:
    """Raise ``RemoteError`` carrying Drive's message for non-2xx responses."""
    if response.is_success:
        return
    error = json_body(response).get("error")
    message = error.get("message") if isinstance(error, dict) else None
    raise RemoteError(
        str(message) if message else f"Drive API error during '{operation}': {response.status_code}",
        response.status_code,
    )
