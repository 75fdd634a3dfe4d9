"""Sync orchestrator: pull, diff, merge, apply locally, push.

Coordinates one profile's sync against a ``RemoteSyncPort``.  Pushes are
conditional on the version token seen at pull time; when another device
wrote in between, the adapter raises ``ConflictError`` and the whole
attempt (fresh pull, fresh merge or diff) is replayed exactly once.

Two flows are supported:

- :meth:`SyncOrchestrator.sync` merges everything automatically.
- :meth:`SyncOrchestrator.pull_and_diff` followed by
  :meth:`SyncOrchestrator.push_selected` applies incoming changes right
  away and lets the caller choose which outgoing changes to publish.

Callers must not run two syncs for the same profile concurrently; a
second call while one is in flight raises ``SyncInProgressError``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeVar

from pydantic import BaseModel

from setlist_sync.exceptions import ConflictError, SyncInProgressError
from setlist_sync.models import RecordKind, Snapshot, Tombstone, now_ms
from setlist_sync.sync.baseline import BaselineStore
from setlist_sync.sync.config import SyncConfigStore
from setlist_sync.sync.diff import ChangeItem, ChangeType, SyncDiff, compute_diff
from setlist_sync.sync.merge import apply_incoming
from setlist_sync.sync.port import RemoteSyncPort
from setlist_sync.sync.snapshot import SnapshotCodec
from setlist_sync.sync.tombstones import TombstoneStore
from setlist_sync.sync.transposition import (
    TranspositionMismatch,
    detect_transposition_mismatches,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ------------------------------------------------------------------
# Result / state models
# ------------------------------------------------------------------


class SyncStatus(StrEnum):
    """Outcome of a successful sync."""

    CREATED = "created"
    SYNCED = "synced"
    UP_TO_DATE = "up-to-date"


class SyncPhase(StrEnum):
    """Where the orchestrator is in the sync state machine."""

    IDLE = "idle"
    PULLING = "pulling"
    REVIEW = "review"
    PUSHING = "pushing"
    SUCCESS = "success"
    ERROR = "error"


_BUSY_PHASES = frozenset({SyncPhase.PULLING, SyncPhase.PUSHING})


class SyncResult(BaseModel):
    """Outcome of a completed sync."""

    status: SyncStatus
    song_count: int
    setlist_count: int
    version_token: str | None = None


@dataclass
class SyncReviewContext:
    """Everything needed to resume a reviewed sync with ``push_selected``.

    ``local`` is the local snapshot after incoming changes were applied.
    """

    diff: SyncDiff
    remote: Snapshot
    version_token: str
    local: Snapshot
    baseline: Snapshot | None
    transposition_mismatches: list[TranspositionMismatch] = field(default_factory=list)


# ------------------------------------------------------------------
# Orchestrator
# ------------------------------------------------------------------


class SyncOrchestrator:
    """Runs the sync protocol for one profile.

    Args:
        port: Remote adapter to pull from and push to.
        codec: Snapshot codec over the profile's local store.
        tombstones: The profile's tombstone store.
        config_store: Where the new version token is recorded after a push.
        baseline_store: Where the last agreed snapshot is kept.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        port: RemoteSyncPort,
        codec: SnapshotCodec,
        tombstones: TombstoneStore,
        config_store: SyncConfigStore,
        baseline_store: BaselineStore,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._port = port
        self._codec = codec
        self._tombstones = tombstones
        self._config = config_store
        self._baseline = baseline_store
        self._clock = clock
        self.phase = SyncPhase.IDLE

    # ------------------------------------------------------------------
    # Automatic flow
    # ------------------------------------------------------------------

    async def sync(self) -> SyncResult:
        """Pull, merge, apply locally, and push the merged snapshot."""
        return await self._run(lambda: self._with_conflict_retry(self._sync_attempt))

    async def _sync_attempt(self) -> SyncResult:
        self._set_phase(SyncPhase.PULLING)
        pulled = await self._port.pull()
        local = self._codec.export()
        if pulled is None:
            return await self._push_first(local)

        remote = pulled.snapshot
        baseline = self._baseline.load()
        now = self._clock()
        diff = compute_diff(local, baseline, remote, local.tombstones, now=now)
        merged = apply_incoming(
            local, remote, baseline, diff.incoming, local.tombstones
        ).to_snapshot(exported_at=now)

        if not merged.same_records(local):
            self._codec.import_(merged)
        self._clear_revived_tombstones(merged, local.tombstones)

        if merged.same_records(remote):
            self._baseline.save(merged)
            logger.info("Local catalog and remote are up to date")
            return self._result(SyncStatus.UP_TO_DATE, merged)

        self._set_phase(SyncPhase.PUSHING)
        token = await self._port.push(merged, pulled.version_token)
        self._record_push(merged, token)
        return self._result(SyncStatus.SYNCED, merged, token)

    # ------------------------------------------------------------------
    # Reviewed flow
    # ------------------------------------------------------------------

    async def pull_and_diff(self) -> SyncReviewContext | SyncResult:
        """Pull and diff, applying incoming changes locally right away.

        Returns a final ``SyncResult`` when there is nothing to review
        (first sync or no changes), otherwise a ``SyncReviewContext``.
        """
        return await self._run(self._pull_and_diff_attempt)

    async def _pull_and_diff_attempt(self) -> SyncReviewContext | SyncResult:
        self._set_phase(SyncPhase.PULLING)
        pulled = await self._port.pull()
        local = self._codec.export()
        if pulled is None:
            return await self._push_first(local)

        remote = pulled.snapshot
        baseline = self._baseline.load()
        now = self._clock()
        diff = compute_diff(local, baseline, remote, local.tombstones, now=now)

        if diff.is_empty:
            if local.same_records(remote):
                self._baseline.save(remote)
            return self._result(SyncStatus.UP_TO_DATE, local)

        post_incoming = local
        if diff.incoming:
            post_incoming = apply_incoming(
                local, remote, baseline, diff.incoming, local.tombstones
            ).to_snapshot(exported_at=now, tombstones=local.tombstones)
            if not post_incoming.same_records(local):
                self._codec.import_(post_incoming)
            revived = self._clear_revived_tombstones(post_incoming, local.tombstones)
            if revived:
                diff = diff.model_copy(
                    update={
                        "outgoing": [
                            change for change in diff.outgoing
                            if not (change.key in revived and change.change == ChangeType.DELETED)
                        ]
                    }
                )
            # Everything the remote had is now folded in locally.
            self._baseline.save(remote)
            logger.info("Applied %d incoming change(s)", len(diff.incoming))

        self._set_phase(SyncPhase.REVIEW)
        return SyncReviewContext(
            diff=diff,
            remote=remote,
            version_token=pulled.version_token,
            local=post_incoming,
            baseline=baseline,
            transposition_mismatches=detect_transposition_mismatches(
                local.songs, remote.songs
            ),
        )

    async def push_selected(
        self, ctx: SyncReviewContext, selected_outgoing: Iterable[ChangeItem]
    ) -> SyncResult:
        """Push the remote state plus only the selected outgoing changes.

        On conflict the pull and diff are redone and the same selection,
        matched by record kind and id, is applied to the fresh diff.
        """
        selected = {change.key for change in selected_outgoing}

        async def attempt(context: SyncReviewContext) -> SyncResult:
            self._set_phase(SyncPhase.PUSHING)
            snapshot = build_push_snapshot(context, selected, self._clock())
            if snapshot.same_records(context.remote):
                self._baseline.save(snapshot)
                return self._result(SyncStatus.UP_TO_DATE, snapshot)
            token = await self._port.push(snapshot, context.version_token)
            self._record_push(snapshot, token)
            return self._result(SyncStatus.SYNCED, snapshot, token)

        async def operation() -> SyncResult:
            try:
                return await attempt(ctx)
            except ConflictError:
                logger.warning("Remote changed before push; pulling again and retrying once")
                fresh = await self._pull_and_diff_attempt()
                if isinstance(fresh, SyncResult):
                    return fresh
                return await attempt(fresh)

        return await self._run(operation)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _push_first(self, local: Snapshot) -> SyncResult:
        """No remote document yet: publish the local snapshot as-is."""
        logger.info("No remote document found; creating it from local state")
        self._set_phase(SyncPhase.PUSHING)
        token = await self._port.push(local, None)
        self._record_push(local, token)
        return self._result(SyncStatus.CREATED, local, token)

    def _clear_revived_tombstones(
        self, merged: Snapshot, tombstones: list[Tombstone]
    ) -> set[tuple[RecordKind, str]]:
        """Drop tombstones for records a newer remote edit brought back."""
        revived = {(t.type, t.id) for t in tombstones if t.id in merged.record_map(t.type)}
        for kind, record_id in sorted(revived):
            self._tombstones.remove(kind, record_id)
        if revived:
            logger.info("%d deleted record(s) were edited remotely and restored", len(revived))
        return revived

    def _record_push(self, snapshot: Snapshot, token: str) -> None:
        now = self._clock()
        self._config.record_push(token, now)
        self._baseline.save(snapshot)
        self._tombstones.prune_stored(now)
        logger.info(
            "Pushed %d songs and %d setlists to %s (version %s)",
            len(snapshot.songs), len(snapshot.setlists), self._port.name, token,
        )

    async def _with_conflict_retry(self, attempt: Callable[[], Awaitable[T]]) -> T:
        try:
            return await attempt()
        except ConflictError:
            logger.warning("Remote changed during sync; retrying with a fresh pull")
            return await attempt()

    async def _run(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self.phase in _BUSY_PHASES:
            raise SyncInProgressError("A sync is already running for this profile")
        try:
            result = await operation()
        except Exception:
            self._set_phase(SyncPhase.ERROR)
            raise
        if isinstance(result, SyncResult):
            self._set_phase(SyncPhase.SUCCESS)
        return result

    def _set_phase(self, phase: SyncPhase) -> None:
        logger.debug("Sync phase %s -> %s", self.phase, phase)
        self.phase = phase

    @staticmethod
    def _result(
        status: SyncStatus, snapshot: Snapshot, token: str | None = None
    ) -> SyncResult:
        return SyncResult(
            status=status,
            song_count=len(snapshot.songs),
            setlist_count=len(snapshot.setlists),
            version_token=token,
        )


def build_push_snapshot(
    ctx: SyncReviewContext,
    selected: set[tuple[RecordKind, str]],
    exported_at: int | None = None,
) -> Snapshot:
    """Start from the pulled remote records and apply the selected changes.

    Unselected outgoing changes stay local only.  A selected deletion is
    skipped when the record came back locally through a newer remote edit.
    """
    targets = {kind: ctx.remote.record_map(kind) for kind in RecordKind}
    local_maps = {kind: ctx.local.record_map(kind) for kind in RecordKind}

    for change in ctx.diff.outgoing:
        if change.key not in selected:
            continue
        target = targets[change.type]
        local_record = local_maps[change.type].get(change.id)
        if change.change == ChangeType.DELETED:
            if local_record is None:
                target.pop(change.id, None)
        elif local_record is not None:
            target[change.id] = local_record

    return ctx.remote.replace_records(
        songs=list(targets[RecordKind.SONG].values()),
        setlists=list(targets[RecordKind.SETLIST].values()),
        exported_at=exported_at,
        tombstones=[],
    )
