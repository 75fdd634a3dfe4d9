"""Whole-record last-writer-wins merge with tombstone suppression."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeVar

from setlist_sync.models import (
    CatalogRecord,
    RecordKind,
    Setlist,
    Snapshot,
    Song,
    Tombstone,
)
from setlist_sync.sync.diff import ChangeItem, ChangeType

RecordT = TypeVar("RecordT", bound=CatalogRecord)


@dataclass(frozen=True)
class MergeResult:
    songs: list[Song]
    setlists: list[Setlist]

    def to_snapshot(
        self, exported_at: int | None = None, tombstones: list[Tombstone] | None = None
    ) -> Snapshot:
        return Snapshot.empty().replace_records(
            songs=self.songs,
            setlists=self.setlists,
            exported_at=exported_at,
            tombstones=tombstones or [],
        )


def merge_snapshots(
    local: Snapshot, remote: Snapshot, local_tombstones: list[Tombstone]
) -> MergeResult:
    """Reconcile local and remote records per collection.

    For every id in either snapshot the result holds the copy with the
    strictly greater ``updated_at`` (ties keep local).  A remote copy is
    dropped when a local tombstone for it has ``deleted_at`` at or after
    the remote ``updated_at``; a newer remote edit resurrects the record.
    """
    return MergeResult(
        songs=_merge_items(local.songs, remote.songs, local_tombstones, RecordKind.SONG),
        setlists=_merge_items(
            local.setlists, remote.setlists, local_tombstones, RecordKind.SETLIST
        ),
    )


def _merge_items(
    local_items: list[RecordT],
    remote_items: list[RecordT],
    tombstones: list[Tombstone],
    kind: RecordKind,
) -> list[RecordT]:
    deleted_at = {t.id: t.deleted_at for t in tombstones if t.type == kind}
    merged: dict[str, RecordT] = {item.id: item for item in local_items}

    for item in remote_items:
        tomb = deleted_at.get(item.id)
        if tomb is not None and tomb >= item.updated_at:
            continue
        local_item = merged.get(item.id)
        if local_item is None or item.updated_at > local_item.updated_at:
            merged[item.id] = item

    return list(merged.values())


def apply_incoming(
    local: Snapshot,
    remote: Snapshot,
    baseline: Snapshot | None,
    incoming: list[ChangeItem],
    local_tombstones: list[Tombstone],
) -> MergeResult:
    """Fold every incoming change into the local record set.

    Additions and edits go through :func:`merge_snapshots`.  Remote
    deletions remove the local copy unless it was edited after the
    baseline, in which case the local edit survives and will be offered
    as an outgoing change.
    """
    merged = merge_snapshots(local, remote, local_tombstones)
    removed = {change.key for change in incoming if change.change == ChangeType.DELETED}
    if not removed:
        return merged

    base = baseline if baseline is not None else Snapshot.empty()

    def keep(record: CatalogRecord) -> bool:
        if (record.kind, record.id) not in removed:
            return True
        base_record = base.record_map(record.kind).get(record.id)
        return base_record is not None and record.updated_at > base_record.updated_at

    return MergeResult(
        songs=[s for s in merged.songs if keep(s)],
        setlists=[s for s in merged.setlists if keep(s)],
    )
