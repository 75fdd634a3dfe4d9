"""Sync engine package: snapshot codec, diff, merge, and orchestration."""

from setlist_sync.sync.baseline import BaselineStore
from setlist_sync.sync.config import (
    GitHubConfig,
    GoogleDriveConfig,
    SyncConfig,
    SyncConfigStore,
    parse_sync_config,
)
from setlist_sync.sync.diff import ChangeItem, ChangeType, SyncDiff, compute_diff
from setlist_sync.sync.merge import MergeResult, apply_incoming, merge_snapshots
from setlist_sync.sync.orchestrator import (
    SyncOrchestrator,
    SyncPhase,
    SyncResult,
    SyncReviewContext,
    SyncStatus,
    build_push_snapshot,
)
from setlist_sync.sync.port import RemotePullResult, RemoteSyncPort
from setlist_sync.sync.snapshot import SnapshotCodec, serialize_snapshot, validate_snapshot
from setlist_sync.sync.tombstones import RETENTION_MS, TombstoneStore

__all__ = [
    "RETENTION_MS",
    "BaselineStore",
    "ChangeItem",
    "ChangeType",
    "GitHubConfig",
    "GoogleDriveConfig",
    "MergeResult",
    "RemotePullResult",
    "RemoteSyncPort",
    "SnapshotCodec",
    "SyncConfig",
    "SyncConfigStore",
    "SyncDiff",
    "SyncOrchestrator",
    "SyncPhase",
    "SyncResult",
    "SyncReviewContext",
    "SyncStatus",
    "TombstoneStore",
    "apply_incoming",
    "build_push_snapshot",
    "compute_diff",
    "merge_snapshots",
    "parse_sync_config",
    "serialize_snapshot",
    "validate_snapshot",
]
