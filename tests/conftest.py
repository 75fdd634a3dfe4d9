"""Shared test fixtures for setlist-sync."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from setlist_sync.config import Settings
from setlist_sync.exceptions import ConflictError
from setlist_sync.models import Setlist, SetlistSet, Snapshot, Song, now_ms
from setlist_sync.profile import ProfileWorkspace
from setlist_sync.sync.config import GitHubConfig
from setlist_sync.sync.orchestrator import SyncOrchestrator
from setlist_sync.sync.port import RemotePullResult
from setlist_sync.sync.snapshot import serialize_snapshot, validate_snapshot

if TYPE_CHECKING:
    from pathlib import Path


def make_song(song_id: str, updated_at: int, **fields: Any) -> Song:
    fields.setdefault("title", f"Song {song_id}")
    fields.setdefault("created_at", 1)
    return Song(id=song_id, updated_at=updated_at, **fields)


def make_setlist(setlist_id: str, updated_at: int, **fields: Any) -> Setlist:
    fields.setdefault("name", f"Gig {setlist_id}")
    fields.setdefault("created_at", 1)
    fields.setdefault("sets", [SetlistSet(name="Set 1", song_ids=[])])
    return Setlist(id=setlist_id, updated_at=updated_at, **fields)


def make_snapshot(
    songs: list[Song] | None = None,
    setlists: list[Setlist] | None = None,
    **fields: Any,
) -> Snapshot:
    fields.setdefault("exported_at", 1)
    return Snapshot(songs=songs or [], setlists=setlists or [], **fields)


class FakeRemote:
    """In-memory ``RemoteSyncPort`` with a revision counter as version token.

    ``conflicts`` makes the next N pushes fail with ``ConflictError``
    regardless of the token, as if another device always wrote first.
    """

    name = "Fake"

    def __init__(self, snapshot: Snapshot | None = None, *, conflicts: int = 0) -> None:
        self.document: str | None = serialize_snapshot(snapshot) if snapshot else None
        self.revision = 1
        self.conflicts = conflicts
        self.pull_calls = 0
        self.push_calls = 0
        self.pushed: list[Snapshot] = []
        self.expected_tokens: list[str | None] = []

    @property
    def token(self) -> str:
        return f"rev-{self.revision}"

    @property
    def snapshot(self) -> Snapshot | None:
        return validate_snapshot(self.document) if self.document else None

    def write(self, snapshot: Snapshot) -> None:
        """Simulate another device pushing."""
        self.document = serialize_snapshot(snapshot)
        self.revision += 1

    def is_configured(self) -> bool:
        return True

    async def test_connection(self) -> str:
        return "fake-remote"

    async def pull(self) -> RemotePullResult | None:
        self.pull_calls += 1
        if self.document is None:
            return None
        return RemotePullResult(snapshot=validate_snapshot(self.document), version_token=self.token)

    async def push(self, snapshot: Snapshot, expected_version_token: str | None) -> str:
        self.push_calls += 1
        self.expected_tokens.append(expected_version_token)
        if self.conflicts:
            self.conflicts -= 1
            raise ConflictError()
        if expected_version_token is not None and expected_version_token != self.token:
            raise ConflictError()
        self.write(snapshot)
        self.pushed.append(snapshot)
        return self.token


@pytest.fixture
def base_time() -> int:
    """A recent timestamp, so tombstones are inside the retention window."""
    return now_ms() - 60_000


@pytest.fixture
def app_settings(tmp_path: Path) -> Settings:
    app = Settings()
    app.home = tmp_path / "home"
    app.profile = "test"
    return app


@pytest.fixture
def workspace(app_settings: Settings) -> ProfileWorkspace:
    ws = ProfileWorkspace("test", app_settings)
    ws.sync_config.save(GitHubConfig(owner="me", repo="band", token="secret"))
    return ws


def orchestrator_for(workspace: ProfileWorkspace, remote: FakeRemote) -> SyncOrchestrator:
    return workspace.orchestrator(port=remote)
