"""Persistence of the last snapshot both sides agreed on.

The diff engine compares local and remote state against this baseline
to tell "changed here" from "changed there".
"""

from __future__ import annotations

import logging
from pathlib import Path

from setlist_sync.exceptions import SchemaError
from setlist_sync.models import Snapshot
from setlist_sync.store import atomic_write_text
from setlist_sync.sync.snapshot import serialize_snapshot, validate_snapshot

logger = logging.getLogger(__name__)


class BaselineStore:
    """Stores the last pushed (or confirmed up-to-date) snapshot.

    Args:
        baseline_file: Path to the JSON file holding the snapshot.
    """

    def __init__(self, baseline_file: Path) -> None:
        self._file = baseline_file

    def load(self) -> Snapshot | None:
        if not self._file.exists() or self._file.stat().st_size == 0:
            return None
        try:
            return validate_snapshot(self._file.read_bytes())
        except SchemaError as exc:
            # A lost baseline only degrades to first-sync semantics.
            logger.warning("Discarding unreadable baseline %s: %s", self._file, exc)
            return None

    def save(self, snapshot: Snapshot) -> None:
        atomic_write_text(self._file, serialize_snapshot(snapshot) + "\n")

    def clear(self) -> None:
        self._file.unlink(missing_ok=True)
