"""JSON-file implementation of the local catalog store.

The sync engine only needs the ``LocalStore`` protocol: export all
records, atomically replace all records, and count them.  This module
provides a per-profile store backed by a single JSON file that is
rewritten through a temporary file and ``os.replace`` so a crash
mid-write leaves either the old or the new catalog, never a mix.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError

from setlist_sync.exceptions import SchemaError
from setlist_sync.models import (
    CatalogRecord,
    RecordKind,
    Setlist,
    Snapshot,
    Song,
    now_ms,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class LocalStore(Protocol):
    """Local CRUD store consumed by the snapshot codec."""

    def export_all(self) -> Snapshot:
        """Return every song and setlist (without tombstones)."""
        ...

    def import_all(self, snapshot: Snapshot) -> None:
        """Replace both collections with the snapshot's records atomically."""
        ...

    def count_records(self, kind: RecordKind) -> int:
        ...


class _CatalogFile(BaseModel):
    songs: list[Song] = Field(default_factory=list)
    setlists: list[Setlist] = Field(default_factory=list)


def atomic_write_text(path: Path, text: str) -> None:
    """Write *text* to *path* via a sibling temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class JsonCatalogStore:
    """Songs and setlists for one profile, persisted as a JSON file.

    Args:
        catalog_file: Path to the catalog JSON file.
    """

    def __init__(self, catalog_file: Path) -> None:
        self._file = catalog_file
        self._catalog: _CatalogFile | None = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> _CatalogFile:
        if self._catalog is not None:
            return self._catalog
        if self._file.exists() and self._file.stat().st_size > 0:
            raw = self._file.read_text(encoding="utf-8")
            try:
                self._catalog = _CatalogFile.model_validate_json(raw)
            except ValidationError as exc:
                raise SchemaError(f"Corrupt catalog file {self._file}: {exc}") from exc
        else:
            self._catalog = _CatalogFile()
        return self._catalog

    def _save(self, catalog: _CatalogFile) -> None:
        atomic_write_text(
            self._file,
            catalog.model_dump_json(indent=2, by_alias=True, exclude_none=True) + "\n",
        )
        self._catalog = catalog

    # ------------------------------------------------------------------
    # LocalStore protocol
    # ------------------------------------------------------------------

    def export_all(self) -> Snapshot:
        catalog = self._load()
        return Snapshot(
            exported_at=now_ms(),
            songs=list(catalog.songs),
            setlists=list(catalog.setlists),
        )

    def import_all(self, snapshot: Snapshot) -> None:
        self._save(
            _CatalogFile(songs=list(snapshot.songs), setlists=list(snapshot.setlists))
        )
        logger.debug(
            "Imported %d songs and %d setlists into %s",
            len(snapshot.songs), len(snapshot.setlists), self._file,
        )

    def count_records(self, kind: RecordKind) -> int:
        catalog = self._load()
        if kind == RecordKind.SONG:
            return len(catalog.songs)
        return len(catalog.setlists)

    # ------------------------------------------------------------------
    # Record mutation
    # ------------------------------------------------------------------

    def get(self, kind: RecordKind, record_id: str) -> CatalogRecord | None:
        for record in self._records(self._load(), kind):
            if record.id == record_id:
                return record
        return None

    def upsert(self, record: CatalogRecord, now: int | None = None) -> CatalogRecord:
        """Insert or replace *record*, stamping ``updated_at`` with *now*.

        The stored copy always carries a fresh ``updated_at`` so that the
        edit wins last-writer-wins merges against older copies.
        """
        stamp = now_ms() if now is None else now
        stamped = record.model_copy(update={"updated_at": stamp})
        catalog = self._load().model_copy(deep=True)
        records = self._records(catalog, record.kind)
        for index, existing in enumerate(records):
            if existing.id == record.id:
                records[index] = stamped
                break
        else:
            records.append(stamped)
        self._save(catalog)
        return stamped

    def delete(self, kind: RecordKind, record_id: str) -> bool:
        """Remove a record.  Returns ``False`` if it did not exist."""
        catalog = self._load().model_copy(deep=True)
        records = self._records(catalog, kind)
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        records[:] = remaining
        self._save(catalog)
        return True

    @staticmethod
    def _records(catalog: _CatalogFile, kind: RecordKind) -> list:
        return catalog.songs if kind == RecordKind.SONG else catalog.setlists
