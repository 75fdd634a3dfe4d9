"""Change detection between local, baseline, and remote snapshots.

Outgoing changes are what this device changed since the baseline;
incoming changes are what other devices changed since the baseline.
The remote document carries no trustworthy record of its own deletions,
so remote deletions are inferred from baseline records that vanished.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from setlist_sync.models import CatalogRecord, RecordKind, Snapshot, Tombstone, now_ms


class ChangeType(StrEnum):
    """How a record differs from the baseline."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class ChangeItem(BaseModel):
    """One changed record, identified by kind and id."""

    model_config = ConfigDict(frozen=True)

    type: RecordKind
    id: str
    name: str
    change: ChangeType

    @property
    def key(self) -> tuple[RecordKind, str]:
        return (self.type, self.id)


class SyncDiff(BaseModel):
    """Incoming changes are always applied; outgoing ones are selectable."""

    incoming: list[ChangeItem] = Field(default_factory=list)
    outgoing: list[ChangeItem] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.incoming and not self.outgoing


def compute_diff(
    local: Snapshot,
    baseline: Snapshot | None,
    remote: Snapshot,
    tombstones: list[Tombstone],
    now: int | None = None,
) -> SyncDiff:
    """Compute outgoing and incoming change sets against *baseline*.

    A missing baseline means first sync: every local record is an
    outgoing addition and every remote record an incoming addition.

    Args:
        local: Current local snapshot.
        baseline: Last agreed snapshot, or ``None``.
        remote: Freshly pulled remote snapshot.
        tombstones: Local tombstones.
        now: Timestamp stamped on inferred remote tombstones.
    """
    base = baseline if baseline is not None else Snapshot.empty()
    inferred = infer_remote_tombstones(remote, base, now)

    outgoing: list[ChangeItem] = []
    incoming: list[ChangeItem] = []
    for kind in RecordKind:
        outgoing.extend(_diff_items(kind, local.records(kind), base.records(kind), tombstones))
        incoming.extend(_diff_items(kind, remote.records(kind), base.records(kind), inferred))
    return SyncDiff(incoming=incoming, outgoing=outgoing)


def infer_remote_tombstones(
    remote: Snapshot, baseline: Snapshot, now: int | None = None
) -> list[Tombstone]:
    """Synthesize tombstones for baseline records missing from *remote*."""
    stamp = now_ms() if now is None else now
    inferred: list[Tombstone] = []
    for kind in RecordKind:
        remote_ids = set(remote.record_map(kind))
        for record in baseline.records(kind):
            if record.id not in remote_ids:
                inferred.append(Tombstone(type=kind, id=record.id, deleted_at=stamp))
    return inferred


def _diff_items(
    kind: RecordKind,
    current: list[CatalogRecord],
    baseline: list[CatalogRecord],
    tombstones: list[Tombstone],
) -> list[ChangeItem]:
    baseline_map = {item.id: item for item in baseline}
    current_ids = {item.id for item in current}
    tombstoned = {t.id for t in tombstones if t.type == kind}

    deleted = [
        ChangeItem(type=kind, id=item.id, name=item.display_name, change=ChangeType.DELETED)
        for item in baseline
        if item.id not in current_ids or item.id in tombstoned
    ]
    deleted_ids = {change.id for change in deleted}

    changes: list[ChangeItem] = []
    for item in current:
        if item.id in deleted_ids:
            continue
        base = baseline_map.get(item.id)
        if base is None:
            changes.append(
                ChangeItem(type=kind, id=item.id, name=item.display_name, change=ChangeType.ADDED)
            )
        elif item.updated_at > base.updated_at:
            changes.append(
                ChangeItem(type=kind, id=item.id, name=item.display_name, change=ChangeType.MODIFIED)
            )

    changes.extend(deleted)
    return changes
