"""Tests for the Google Drive adapter."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from setlist_sync.exceptions import ConflictError, NotConfiguredError, RemoteError
from setlist_sync.remotes.auth import StaticTokenProvider
from setlist_sync.remotes.google_drive import (
    DRIVE_API,
    UPLOAD_API,
    GoogleDriveAdapter,
    create_drive_file,
)
from setlist_sync.sync.config import GoogleDriveConfig
from setlist_sync.sync.snapshot import serialize_snapshot, validate_snapshot
from tests.conftest import make_snapshot, make_song

Handler = Callable[[httpx.Request], httpx.Response]

FILE_URL = f"{DRIVE_API}/file-1"


def _adapter(handler: Handler, token: str = "ya29.token") -> GoogleDriveAdapter:
    return GoogleDriveAdapter(
        GoogleDriveConfig(file_id="file-1"),
        StaticTokenProvider(token),
        transport=httpx.MockTransport(handler),
    )


def _is_media(request: httpx.Request) -> bool:
    return request.url.params.get("alt") == "media"


class TestGoogleDrivePull:
    @pytest.mark.asyncio
    async def test_pull_returns_snapshot_and_head_revision(self) -> None:
        snapshot = make_snapshot([make_song("s1", 3)])
        auth: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            auth.append(request.headers["Authorization"])
            assert str(request.url).startswith(FILE_URL)
            if _is_media(request):
                return httpx.Response(200, content=serialize_snapshot(snapshot).encode())
            return httpx.Response(200, json={"headRevisionId": "rev-9"})

        result = await _adapter(handler).pull()

        assert result is not None
        assert result.version_token == "rev-9"
        assert result.snapshot.same_records(snapshot)
        assert auth == ["Bearer ya29.token", "Bearer ya29.token"]

    @pytest.mark.asyncio
    async def test_missing_file_returns_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": {"message": "File not found"}})

        assert await _adapter(handler).pull() is None

    @pytest.mark.asyncio
    async def test_placeholder_file_returns_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if _is_media(request):
                return httpx.Response(200, content=b"{}\n")
            return httpx.Response(200, json={"headRevisionId": "rev-1"})

        assert await _adapter(handler).pull() is None

    @pytest.mark.asyncio
    async def test_error_message_comes_from_drive(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                403, json={"error": {"code": 403, "message": "The user does not have access"}}
            )

        with pytest.raises(RemoteError) as excinfo:
            await _adapter(handler).test_connection()
        assert str(excinfo.value) == "The user does not have access"
        assert excinfo.value.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_token_is_not_configured(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(NotConfiguredError):
            await _adapter(handler, token="").pull()


class TestGoogleDrivePush:
    @pytest.mark.asyncio
    async def test_push_uploads_when_revision_matches(self) -> None:
        snapshot = make_snapshot([make_song("s1", 3)])
        uploads: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json={"headRevisionId": "rev-1"})
            uploads.append(request)
            return httpx.Response(200, json={"headRevisionId": "rev-2"})

        token = await _adapter(handler).push(snapshot, "rev-1")

        assert token == "rev-2"
        upload = uploads[0]
        assert upload.method == "PATCH"
        assert str(upload.url).startswith(f"{UPLOAD_API}/file-1")
        assert upload.url.params["uploadType"] == "media"
        assert validate_snapshot(upload.content).same_records(snapshot)

    @pytest.mark.asyncio
    async def test_moved_revision_raises_conflict_before_upload(self) -> None:
        methods: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(200, json={"headRevisionId": "rev-5"})

        with pytest.raises(ConflictError):
            await _adapter(handler).push(make_snapshot(), "rev-1")
        assert methods == ["GET"]

    @pytest.mark.asyncio
    async def test_precondition_failure_raises_conflict(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json={"headRevisionId": "rev-1"})
            return httpx.Response(412, json={"error": {"message": "Precondition Failed"}})

        with pytest.raises(ConflictError):
            await _adapter(handler).push(make_snapshot(), "rev-1")

    @pytest.mark.asyncio
    async def test_unconditional_push_skips_revision_check(self) -> None:
        methods: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(200, json={"headRevisionId": "rev-1"})

        assert await _adapter(handler).push(make_snapshot(), None) == "rev-1"
        assert methods == ["PATCH"]


class TestCreateDriveFile:
    @pytest.mark.asyncio
    async def test_creates_placeholder_in_folder(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "new-file"})

        file_id = await create_drive_file(
            StaticTokenProvider("tok"), "folder-7", transport=httpx.MockTransport(handler)
        )

        assert file_id == "new-file"
        request = requests[0]
        assert request.method == "POST"
        assert request.url.params["uploadType"] == "multipart"
        assert request.headers["Content-Type"].startswith("multipart/related")
        body = request.content.decode("utf-8")
        assert '"parents": ["folder-7"]' in body
        assert '"name": "setlist-sync.json"' in body

    @pytest.mark.asyncio
    async def test_missing_id_is_remote_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        with pytest.raises(RemoteError):
            await create_drive_file(StaticTokenProvider("tok"), transport=httpx.MockTransport(handler))
