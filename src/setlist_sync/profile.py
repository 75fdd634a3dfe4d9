"""Per-profile workspace wiring the local stores to the sync engine.

Each profile lives in its own directory and shares nothing with the
others, so different profiles can sync concurrently::

    <home>/profiles/<profile>/
        catalog.json        songs and setlists
        tombstones.json     local deletions
        sync-config.json    remote connection and last version token
        baseline.json       last snapshot agreed with the remote
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import httpx

from setlist_sync.config import Settings, settings, validate_profile_name
from setlist_sync.exceptions import NotConfiguredError
from setlist_sync.models import CatalogRecord, RecordKind
from setlist_sync.remotes import build_adapter
from setlist_sync.store import JsonCatalogStore
from setlist_sync.sync.baseline import BaselineStore
from setlist_sync.sync.config import GitHubConfig, GoogleDriveConfig, SyncConfigStore
from setlist_sync.sync.orchestrator import SyncOrchestrator
from setlist_sync.sync.port import RemoteSyncPort
from setlist_sync.sync.snapshot import SnapshotCodec
from setlist_sync.sync.tombstones import TombstoneStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileStatus:
    """Summary of a profile's local catalog and remote connection."""

    profile: str
    adapter: str | None
    last_version_token: str | None
    last_synced_at: datetime | None
    song_count: int
    setlist_count: int
    tombstone_count: int


class ProfileWorkspace:
    """All stores belonging to one profile.

    Args:
        profile: Profile identifier (used as a directory name).  Empty or
            path-like names raise ``ValueError``.
        app_settings: Settings providing the home directory.
    """

    def __init__(self, profile: str, app_settings: Settings = settings) -> None:
        self.profile = validate_profile_name(profile)
        self._settings = app_settings
        self.root: Path = app_settings.home / "profiles" / profile
        self.catalog = JsonCatalogStore(self.root / "catalog.json")
        self.tombstones = TombstoneStore(self.root / "tombstones.json")
        self.sync_config = SyncConfigStore(self.root / "sync-config.json")
        self.baseline = BaselineStore(self.root / "baseline.json")
        self.codec = SnapshotCodec(self.catalog, self.tombstones)

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    def save_record(self, record: CatalogRecord) -> CatalogRecord:
        """Store a record with a fresh ``updated_at``; clears any tombstone."""
        stored = self.catalog.upsert(record)
        self.tombstones.remove(record.kind, record.id)
        return stored

    def delete_record(self, kind: RecordKind, record_id: str) -> bool:
        """Delete a record locally and tombstone it so sync propagates it."""
        if not self.catalog.delete(kind, record_id):
            return False
        self.tombstones.add(kind, record_id)
        return True

    # ------------------------------------------------------------------
    # Sync wiring
    # ------------------------------------------------------------------

    def adapter(
        self, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> RemoteSyncPort:
        config = self.sync_config.load()
        if config is None:
            raise NotConfiguredError(
                f"Profile '{self.profile}' is not connected to a remote. "
                "Run 'setlist-sync connect' first."
            )
        return self._build_port(config, transport)

    async def connect(
        self,
        config: GitHubConfig | GoogleDriveConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> str:
        """Test *config* against its remote, then make it the profile's connection.

        Nothing is stored when the connection test fails; on success the
        baseline is cleared.  Returns the name of the remote target.
        """
        target = await self._build_port(config, transport).test_connection()
        self.sync_config.save(config)
        self.baseline.clear()
        logger.info("Connected profile %s to %s", self.profile, config.adapter)
        return target

    def _build_port(
        self,
        config: GitHubConfig | GoogleDriveConfig,
        transport: httpx.AsyncBaseTransport | None,
    ) -> RemoteSyncPort:
        port = build_adapter(config, app_settings=self._settings, transport=transport)
        if not port.is_configured():
            raise NotConfiguredError(f"{port.name} connection settings are incomplete")
        return port

    def orchestrator(self, port: RemoteSyncPort | None = None) -> SyncOrchestrator:
        return SyncOrchestrator(
            port=port if port is not None else self.adapter(),
            codec=self.codec,
            tombstones=self.tombstones,
            config_store=self.sync_config,
            baseline_store=self.baseline,
        )

    def disconnect(self) -> None:
        """Forget the remote and the baseline agreed with it."""
        self.sync_config.clear()
        self.baseline.clear()
        logger.info("Disconnected profile %s", self.profile)

    def status(self) -> ProfileStatus:
        config = self.sync_config.load()
        last_synced = None
        if config is not None and config.last_synced_at is not None:
            last_synced = datetime.fromtimestamp(config.last_synced_at / 1000, tz=timezone.utc)
        return ProfileStatus(
            profile=self.profile,
            adapter=config.adapter if config is not None else None,
            last_version_token=config.last_version_token if config is not None else None,
            last_synced_at=last_synced,
            song_count=self.catalog.count_records(RecordKind.SONG),
            setlist_count=self.catalog.count_records(RecordKind.SETLIST),
            tombstone_count=len(self.tombstones.load()),
        )
