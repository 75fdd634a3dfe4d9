"""The capability every remote adapter provides to the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from setlist_sync.models import Snapshot


@dataclass(frozen=True)
class RemotePullResult:
    """Remote document content plus the opaque version token it was read at."""

    snapshot: Snapshot
    version_token: str


@runtime_checkable
class RemoteSyncPort(Protocol):
    """Byte-content pull/push over a single remote file.

    The version token is an optimistic-lock handle.  Passing it back to
    ``push`` makes the write conditional: if the remote moved on, the
    adapter raises ``ConflictError`` and writes nothing.
    """

    name: str

    def is_configured(self) -> bool:
        """Return True when all required connection fields are present."""
        ...

    async def test_connection(self) -> str:
        """Do one round-trip and return a human-readable remote identifier."""
        ...

    async def pull(self) -> RemotePullResult | None:
        """Fetch the remote document, or ``None`` if it does not exist yet."""
        ...

    async def push(self, snapshot: Snapshot, expected_version_token: str | None) -> str:
        """Write the document and return the new version token.

        A ``None`` token writes unconditionally (first write).
        """
        ...
