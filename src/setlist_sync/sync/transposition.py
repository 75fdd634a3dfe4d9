"""Detect songs whose transposition differs between local and remote copies.

Transposition is a per-performer preference, so a whole-record merge can
silently replace it.  The review flow reports mismatches so the user
can decide which copy to keep.
"""

from __future__ import annotations

from dataclasses import dataclass

from setlist_sync.models import Song


@dataclass(frozen=True)
class TranspositionMismatch:
    song_id: str
    song_title: str
    local_transposition: int
    remote_transposition: int


def detect_transposition_mismatches(
    local_songs: list[Song], remote_songs: list[Song]
) -> list[TranspositionMismatch]:
    remote_map = {song.id: song for song in remote_songs}
    mismatches: list[TranspositionMismatch] = []
    for local in local_songs:
        remote = remote_map.get(local.id)
        if remote is None:
            continue
        local_t = local.transposition or 0
        remote_t = remote.transposition or 0
        if local_t != remote_t:
            mismatches.append(
                TranspositionMismatch(
                    song_id=local.id,
                    song_title=local.title,
                    local_transposition=local_t,
                    remote_transposition=remote_t,
                )
            )
    return mismatches
