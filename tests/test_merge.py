"""Tests for last-writer-wins merging and incoming-change application."""

from __future__ import annotations

import string

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from setlist_sync.models import RecordKind, Snapshot, Tombstone
from setlist_sync.sync.diff import compute_diff
from setlist_sync.sync.merge import apply_incoming, merge_snapshots
from tests.conftest import make_setlist, make_snapshot, make_song

PROPERTY_SETTINGS = settings(
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

_ID = st.text(alphabet=string.ascii_lowercase, min_size=1, max_size=3)
_STAMPS = st.dictionaries(keys=_ID, values=st.integers(min_value=1, max_value=50), max_size=8)


def _song_tombstone(song_id: str, deleted_at: int) -> Tombstone:
    return Tombstone(type=RecordKind.SONG, id=song_id, deleted_at=deleted_at)


class TestMergeSnapshots:
    def test_newer_remote_wins(self) -> None:
        local = make_snapshot([make_song("s1", 5, key="C")])
        remote = make_snapshot([make_song("s1", 9, key="D")])
        merged = merge_snapshots(local, remote, [])
        assert [(s.updated_at, s.key) for s in merged.songs] == [(9, "D")]

    def test_newer_local_wins(self) -> None:
        local = make_snapshot([make_song("s1", 9, key="C")])
        remote = make_snapshot([make_song("s1", 5, key="D")])
        assert merge_snapshots(local, remote, []).songs[0].key == "C"

    def test_tie_keeps_local(self) -> None:
        local = make_snapshot([make_song("s1", 5, key="C")])
        remote = make_snapshot([make_song("s1", 5, key="D")])
        assert merge_snapshots(local, remote, []).songs[0].key == "C"

    def test_union_of_both_sides(self) -> None:
        local = make_snapshot([make_song("a", 1)], [make_setlist("g1", 1)])
        remote = make_snapshot([make_song("b", 1)], [make_setlist("g2", 1)])
        merged = merge_snapshots(local, remote, [])
        assert sorted(s.id for s in merged.songs) == ["a", "b"]
        assert sorted(s.id for s in merged.setlists) == ["g1", "g2"]

    def test_tombstone_suppresses_older_remote_copy(self) -> None:
        remote = make_snapshot([make_song("s1", 5)])
        merged = merge_snapshots(Snapshot.empty(), remote, [_song_tombstone("s1", 8)])
        assert merged.songs == []

    def test_tombstone_at_same_time_suppresses(self) -> None:
        remote = make_snapshot([make_song("s1", 8)])
        merged = merge_snapshots(Snapshot.empty(), remote, [_song_tombstone("s1", 8)])
        assert merged.songs == []

    def test_newer_remote_edit_resurrects(self) -> None:
        remote = make_snapshot([make_song("s1", 9)])
        merged = merge_snapshots(Snapshot.empty(), remote, [_song_tombstone("s1", 8)])
        assert [s.id for s in merged.songs] == ["s1"]

    def test_tombstone_only_applies_to_its_kind(self) -> None:
        remote = make_snapshot([], [make_setlist("x", 5)])
        merged = merge_snapshots(Snapshot.empty(), remote, [_song_tombstone("x", 8)])
        assert [s.id for s in merged.setlists] == ["x"]

    def test_to_snapshot_defaults_to_no_tombstones(self) -> None:
        merged = merge_snapshots(make_snapshot([make_song("a", 1)]), Snapshot.empty(), [])
        snapshot = merged.to_snapshot(exported_at=3)
        assert snapshot.exported_at == 3
        assert snapshot.tombstones == []

    @PROPERTY_SETTINGS
    @given(local_stamps=_STAMPS, remote_stamps=_STAMPS)
    def test_each_id_keeps_the_latest_copy(
        self, local_stamps: dict[str, int], remote_stamps: dict[str, int]
    ) -> None:
        local = make_snapshot([make_song(i, t, notes="local") for i, t in local_stamps.items()])
        remote = make_snapshot([make_song(i, t, notes="remote") for i, t in remote_stamps.items()])

        merged = {s.id: s for s in merge_snapshots(local, remote, []).songs}

        assert set(merged) == set(local_stamps) | set(remote_stamps)
        for song_id, song in merged.items():
            expected = max(local_stamps.get(song_id, 0), remote_stamps.get(song_id, 0))
            assert song.updated_at == expected
            if song_id in local_stamps and local_stamps[song_id] >= remote_stamps.get(song_id, 0):
                assert song.notes == "local"

    @PROPERTY_SETTINGS
    @given(
        remote_stamps=_STAMPS,
        tomb_stamps=st.dictionaries(keys=_ID, values=st.integers(min_value=1, max_value=50)),
    )
    def test_tombstone_precedence(
        self, remote_stamps: dict[str, int], tomb_stamps: dict[str, int]
    ) -> None:
        remote = make_snapshot([make_song(i, t) for i, t in remote_stamps.items()])
        tombstones = [_song_tombstone(i, t) for i, t in tomb_stamps.items()]

        merged_ids = {s.id for s in merge_snapshots(Snapshot.empty(), remote, tombstones).songs}

        for song_id, updated_at in remote_stamps.items():
            deleted_at = tomb_stamps.get(song_id)
            suppressed = deleted_at is not None and deleted_at >= updated_at
            assert (song_id in merged_ids) is not suppressed


class TestApplyIncoming:
    def test_remote_deletion_removes_unedited_local_copy(self) -> None:
        baseline = make_snapshot([make_song("s1", 3), make_song("s2", 3)])
        remote = make_snapshot([make_song("s2", 3)])
        diff = compute_diff(baseline, baseline, remote, [])

        merged = apply_incoming(baseline, remote, baseline, diff.incoming, [])

        assert [s.id for s in merged.songs] == ["s2"]

    def test_local_edit_survives_remote_deletion(self) -> None:
        baseline = make_snapshot([make_song("s1", 3)])
        local = make_snapshot([make_song("s1", 6)])
        remote = Snapshot.empty()
        diff = compute_diff(local, baseline, remote, [])

        merged = apply_incoming(local, remote, baseline, diff.incoming, [])

        assert [s.updated_at for s in merged.songs] == [6]

    def test_additions_and_edits_are_merged(self) -> None:
        baseline = make_snapshot([make_song("s1", 3)])
        local = baseline
        remote = make_snapshot([make_song("s1", 4, key="G"), make_song("s2", 4)])
        diff = compute_diff(local, baseline, remote, [])

        merged = apply_incoming(local, remote, baseline, diff.incoming, [])

        songs = {s.id: s for s in merged.songs}
        assert set(songs) == {"s1", "s2"}
        assert songs["s1"].key == "G"
