"""Per-profile record of local deletions.

A tombstone keeps a deleted record from coming back through a merge
with an older remote copy.  Tombstones older than the retention window
are pruned; after that a very old remote copy is indistinguishable from
a record that never existed here.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from setlist_sync.models import RecordKind, Tombstone, now_ms
from setlist_sync.store import atomic_write_text

logger = logging.getLogger(__name__)

RETENTION_MS = 30 * 24 * 60 * 60 * 1000

_TOMBSTONE_LIST = TypeAdapter(list[Tombstone])


class TombstoneStore:
    """Reads and writes the tombstone list for one profile.

    Args:
        tombstone_file: Path to the JSON file holding the tombstone list.
    """

    def __init__(self, tombstone_file: Path) -> None:
        self._file = tombstone_file

    def load(self) -> list[Tombstone]:
        """Return all stored tombstones; an unreadable file counts as empty."""
        if not self._file.exists() or self._file.stat().st_size == 0:
            return []
        try:
            return _TOMBSTONE_LIST.validate_json(self._file.read_text(encoding="utf-8"))
        except ValidationError as exc:
            logger.warning("Ignoring unreadable tombstone file %s: %s", self._file, exc)
            return []

    def save(self, tombstones: list[Tombstone]) -> None:
        atomic_write_text(
            self._file,
            _TOMBSTONE_LIST.dump_json(tombstones, indent=2, by_alias=True).decode("utf-8")
            + "\n",
        )

    def add(
        self, kind: RecordKind, record_id: str, deleted_at: int | None = None
    ) -> Tombstone:
        """Record a deletion.  An existing tombstone for the record is kept."""
        tombstones = self.load()
        for existing in tombstones:
            if existing.type == kind and existing.id == record_id:
                return existing
        tombstone = Tombstone(
            type=kind,
            id=record_id,
            deleted_at=now_ms() if deleted_at is None else deleted_at,
        )
        tombstones.append(tombstone)
        self.save(tombstones)
        logger.debug("Tombstoned %s %s", kind, record_id)
        return tombstone

    def remove(self, kind: RecordKind, record_id: str) -> None:
        """Forget the tombstone for a record that was re-created locally."""
        tombstones = self.load()
        remaining = [t for t in tombstones if not (t.type == kind and t.id == record_id)]
        if len(remaining) != len(tombstones):
            self.save(remaining)

    def prune_stored(self, now: int | None = None) -> int:
        """Prune the persisted list in place.  Returns the number removed."""
        tombstones = self.load()
        kept = self.prune(tombstones, now)
        if len(kept) != len(tombstones):
            self.save(kept)
            logger.info("Pruned %d expired tombstone(s)", len(tombstones) - len(kept))
        return len(tombstones) - len(kept)

    @staticmethod
    def prune(tombstones: list[Tombstone], now: int | None = None) -> list[Tombstone]:
        """Drop tombstones that are older than the retention window."""
        cutoff = (now_ms() if now is None else now) - RETENTION_MS
        return [t for t in tombstones if t.deleted_at > cutoff]
