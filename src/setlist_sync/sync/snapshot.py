"""Snapshot codec: export, import, and validate full catalog documents."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from setlist_sync.exceptions import SchemaError
from setlist_sync.models import Snapshot, now_ms
from setlist_sync.store import LocalStore
from setlist_sync.sync.tombstones import TombstoneStore

logger = logging.getLogger(__name__)


def validate_snapshot(candidate: str | bytes | dict[str, Any]) -> Snapshot:
    """Structurally validate a candidate snapshot document.

    Accepts raw JSON text/bytes or an already-decoded mapping.  Version 1
    documents have no ``tombstones`` key and parse with an empty list.

    Raises:
        SchemaError: If the JSON cannot be decoded or any field is
            missing or of the wrong type.  Nothing partial is returned.
    """
    if isinstance(candidate, (str, bytes)):
        try:
            candidate = json.loads(candidate)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SchemaError(f"Snapshot is not valid JSON: {exc}") from exc

    if not isinstance(candidate, dict):
        raise SchemaError("Snapshot must be a JSON object")

    try:
        return Snapshot.model_validate(candidate)
    except ValidationError as exc:
        raise SchemaError(f"Invalid snapshot: {exc}") from exc


def serialize_snapshot(snapshot: Snapshot) -> str:
    """Render a snapshot as pretty-printed wire JSON.

    Unset optional fields are omitted, and so is ``tombstones`` when it
    is empty, which keeps version 1 documents byte-compatible.
    """
    exclude = {"tombstones"} if not snapshot.tombstones else None
    return snapshot.model_dump_json(
        indent=2, by_alias=True, exclude_none=True, exclude=exclude
    )


class SnapshotCodec:
    """Bridges the local store and tombstone store to whole snapshots.

    Args:
        store: The profile's local record store.
        tombstones: The profile's tombstone store.
    """

    def __init__(self, store: LocalStore, tombstones: TombstoneStore) -> None:
        self._store = store
        self._tombstones = tombstones

    def export(self) -> Snapshot:
        """Read all local records and attach the live tombstones."""
        records = self._store.export_all()
        live = TombstoneStore.prune(self._tombstones.load())
        return records.replace_records(
            songs=list(records.songs),
            setlists=list(records.setlists),
            exported_at=now_ms(),
            tombstones=live,
        )

    def import_(self, snapshot: Snapshot) -> None:
        """Replace all local songs and setlists with the snapshot's records.

        The store performs the clear-and-insert atomically.
        """
        self._store.import_all(snapshot)
        logger.info(
            "Applied snapshot locally (%d songs, %d setlists)",
            len(snapshot.songs), len(snapshot.setlists),
        )

    @staticmethod
    def validate(candidate: str | bytes | dict[str, Any]) -> Snapshot:
        return validate_snapshot(candidate)
