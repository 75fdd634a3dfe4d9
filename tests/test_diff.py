"""Tests for three-way change detection."""

from __future__ import annotations

from setlist_sync.models import RecordKind, Snapshot, Tombstone
from setlist_sync.sync.diff import ChangeItem, ChangeType, compute_diff, infer_remote_tombstones
from tests.conftest import make_setlist, make_snapshot, make_song


def _summary(changes: list[ChangeItem]) -> list[tuple[str, str, str]]:
    return [(c.type.value, c.id, c.change.value) for c in changes]


class TestComputeDiff:
    def test_first_sync_everything_is_added(self) -> None:
        local = make_snapshot([make_song("a", 1)])
        remote = make_snapshot([make_song("b", 1)], [make_setlist("g", 1)])

        diff = compute_diff(local, None, remote, [])

        assert _summary(diff.outgoing) == [("song", "a", "added")]
        assert _summary(diff.incoming) == [("song", "b", "added"), ("setlist", "g", "added")]

    def test_no_changes(self) -> None:
        snap = make_snapshot([make_song("a", 5)], [make_setlist("g", 5)])
        assert compute_diff(snap, snap, snap, []).is_empty

    def test_concurrent_edits_show_on_both_sides(self) -> None:
        baseline = make_snapshot([make_song("s1", 1)])
        local = make_snapshot([make_song("s1", 5, key="D")])
        remote = make_snapshot([make_song("s1", 7, key="E")])

        diff = compute_diff(local, baseline, remote, [])

        assert _summary(diff.outgoing) == [("song", "s1", "modified")]
        assert _summary(diff.incoming) == [("song", "s1", "modified")]

    def test_older_copy_is_not_a_modification(self) -> None:
        baseline = make_snapshot([make_song("s1", 5)])
        local = make_snapshot([make_song("s1", 3)])
        assert compute_diff(local, baseline, baseline, []).outgoing == []

    def test_local_deletion_from_tombstone(self) -> None:
        baseline = make_snapshot([make_song("s1", 1, title="Autumn Leaves")])
        tomb = Tombstone(type=RecordKind.SONG, id="s1", deleted_at=9)

        diff = compute_diff(Snapshot.empty(), baseline, baseline, [tomb])

        assert len(diff.outgoing) == 1
        change = diff.outgoing[0]
        assert change.change == ChangeType.DELETED
        assert change.name == "Autumn Leaves"
        assert diff.incoming == []

    def test_tombstoned_record_is_only_reported_deleted(self) -> None:
        baseline = make_snapshot([make_song("s1", 1)])
        local = make_snapshot([make_song("s1", 4)])
        tomb = Tombstone(type=RecordKind.SONG, id="s1", deleted_at=9)

        diff = compute_diff(local, baseline, baseline, [tomb])

        assert _summary(diff.outgoing) == [("song", "s1", "deleted")]

    def test_remote_deletion_is_inferred_from_baseline(self) -> None:
        baseline = make_snapshot([], [make_setlist("g", 1, name="Wedding")])
        local = baseline

        diff = compute_diff(local, baseline, Snapshot.empty(), [], now=42)

        assert _summary(diff.incoming) == [("setlist", "g", "deleted")]
        assert diff.incoming[0].name == "Wedding"
        assert diff.outgoing == []

    def test_additions_are_listed_before_deletions(self) -> None:
        baseline = make_snapshot([make_song("old", 1)])
        local = make_snapshot([make_song("new", 2)])

        diff = compute_diff(local, baseline, baseline, [])

        assert _summary(diff.outgoing) == [("song", "new", "added"), ("song", "old", "deleted")]

    def test_change_key_identifies_record(self) -> None:
        change = ChangeItem(type=RecordKind.SONG, id="x", name="X", change=ChangeType.ADDED)
        assert change.key == (RecordKind.SONG, "x")


class TestInferRemoteTombstones:
    def test_stamps_missing_records(self) -> None:
        baseline = make_snapshot([make_song("s1", 1), make_song("s2", 1)], [make_setlist("g", 1)])
        remote = make_snapshot([make_song("s2", 1)])

        inferred = infer_remote_tombstones(remote, baseline, now=77)

        assert inferred == [
            Tombstone(type=RecordKind.SONG, id="s1", deleted_at=77),
            Tombstone(type=RecordKind.SETLIST, id="g", deleted_at=77),
        ]

    def test_nothing_missing(self) -> None:
        snap = make_snapshot([make_song("s1", 1)])
        assert infer_remote_tombstones(snap, snap) == []
