"""Catalog records and the snapshot document exchanged during sync.

All models use camelCase aliases on the wire (``updatedAt``,
``exportedAt`` ...) while Python code works with snake_case attributes.
Timestamps are integer milliseconds since the Unix epoch.
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SNAPSHOT_VERSION = 2


def now_ms() -> int:
    """Return the current time as epoch milliseconds."""
    return int(time.time() * 1000)


class RecordKind(StrEnum):
    """The two collections kept in a catalog."""

    SONG = "song"
    SETLIST = "setlist"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


class CatalogRecord(_WireModel):
    """Fields shared by every synced record.

    ``updated_at`` is the only input to merge ordering, so every local
    mutation must bump it.  Unknown fields are kept as-is so documents
    written by newer clients survive a round-trip.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    kind: ClassVar[RecordKind]

    id: str
    created_at: int
    updated_at: int

    @property
    def display_name(self) -> str:
        return self.id


class SongLinks(_WireModel):
    youtube: str | None = None
    spotify: str | None = None
    deezer: str | None = None


class Song(CatalogRecord):
    """A song with its ChordPro body and performance metadata."""

    kind: ClassVar[RecordKind] = RecordKind.SONG

    title: str = Field(min_length=1)
    artist: str | None = None
    key: str | None = None
    bpm: int | None = Field(default=None, gt=0)
    duration: int | None = Field(default=None, gt=0)
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    links: SongLinks | None = None
    transposition: int | None = None
    content: str = ""

    @property
    def display_name(self) -> str:
        return self.title


class SetlistSet(_WireModel):
    name: str = Field(min_length=1)
    song_ids: list[str] = Field(default_factory=list)
    notes: str | None = None


class Setlist(CatalogRecord):
    """An ordered list of sets, each referencing songs by id."""

    kind: ClassVar[RecordKind] = RecordKind.SETLIST

    name: str = Field(min_length=1)
    date: str | None = None
    venue: str | None = None
    sets: list[SetlistSet] = Field(default_factory=list)
    notes: str | None = None
    expected_duration: int | None = Field(default=None, gt=0)

    @property
    def display_name(self) -> str:
        return self.name


RECORD_TYPES: dict[RecordKind, type[CatalogRecord]] = {
    RecordKind.SONG: Song,
    RecordKind.SETLIST: Setlist,
}


# ------------------------------------------------------------------
# Tombstones and snapshots
# ------------------------------------------------------------------


class Tombstone(_WireModel):
    """Durable marker that a record was deleted locally."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    type: RecordKind
    id: str
    deleted_at: int


class Snapshot(_WireModel):
    """Full exportable state of one profile at a point in time.

    Snapshots are never mutated once built; use ``model_copy`` or
    ``replace_records`` to derive a new one.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    version: Literal[1, 2] = SNAPSHOT_VERSION
    exported_at: int = 0
    songs: list[Song] = Field(default_factory=list)
    setlists: list[Setlist] = Field(default_factory=list)
    tombstones: list[Tombstone] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> Snapshot:
        return cls(exported_at=0)

    def records(self, kind: RecordKind) -> list[CatalogRecord]:
        if kind == RecordKind.SONG:
            return list(self.songs)
        return list(self.setlists)

    def record_map(self, kind: RecordKind) -> dict[str, CatalogRecord]:
        return {record.id: record for record in self.records(kind)}

    def replace_records(
        self,
        *,
        songs: list[Song],
        setlists: list[Setlist],
        exported_at: int | None = None,
        tombstones: list[Tombstone] | None = None,
    ) -> Snapshot:
        """Return a new current-version snapshot with the given records."""
        return Snapshot(
            version=SNAPSHOT_VERSION,
            exported_at=now_ms() if exported_at is None else exported_at,
            songs=songs,
            setlists=setlists,
            tombstones=self.tombstones if tombstones is None else tombstones,
        )

    def same_records(self, other: Snapshot) -> bool:
        """Compare record content, ignoring ordering, ``exportedAt`` and tombstones."""
        for kind in RecordKind:
            if self.record_map(kind) != other.record_map(kind):
                return False
        return True
