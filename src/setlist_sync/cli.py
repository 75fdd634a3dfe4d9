"""CLI entrypoint for setlist-sync.

Connects a profile to a remote file, runs automatic or reviewed syncs,
and imports/exports snapshot files.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click

from setlist_sync.config import settings
from setlist_sync.exceptions import SyncError
from setlist_sync.profile import ProfileWorkspace
from setlist_sync.remotes import create_drive_file, google_token_provider
from setlist_sync.sync.config import DEFAULT_GITHUB_PATH, GitHubConfig, GoogleDriveConfig
from setlist_sync.sync.diff import ChangeItem, SyncDiff
from setlist_sync.sync.invite import decode_invite, encode_invite, invite_for
from setlist_sync.sync.orchestrator import SyncResult
from setlist_sync.sync.snapshot import serialize_snapshot, validate_snapshot

T = TypeVar("T")

_CHANGE_MARKS = {"added": "+", "modified": "~", "deleted": "-"}


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, reporting sync failures as a clean CLI error."""
    try:
        return asyncio.run(coro)
    except SyncError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _workspace(ctx: click.Context) -> ProfileWorkspace:
    workspace: ProfileWorkspace = ctx.obj
    return workspace


def _echo_result(result: SyncResult) -> None:
    click.echo(
        f"{result.status.value}: {result.song_count} song(s), "
        f"{result.setlist_count} setlist(s)"
    )


def _format_change(change: ChangeItem) -> str:
    return f"{_CHANGE_MARKS[change.change.value]} {change.type.value} {change.name} ({change.id})"


def _echo_diff(diff: SyncDiff) -> None:
    click.echo(f"Incoming ({len(diff.incoming)}, applied):")
    for change in diff.incoming:
        click.echo(f"  {_format_change(change)}")
    click.echo(f"Outgoing ({len(diff.outgoing)}):")
    for change in diff.outgoing:
        click.echo(f"  {_format_change(change)}")


@click.group()
@click.option(
    "--profile",
    default=None,
    help="Profile to operate on (default: $SETLIST_SYNC_PROFILE or 'default').",
)
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr.")
@click.pass_context
def cli(ctx: click.Context, profile: str | None, verbose: bool) -> None:
    """Keep songs and setlists in sync through a remote file."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        ctx.obj = ProfileWorkspace(profile or settings.profile)
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc


# ------------------------------------------------------------------
# Remote connection
# ------------------------------------------------------------------


@cli.group()
def connect() -> None:
    """Connect the profile to a remote file."""


@connect.command("github")
@click.option("--owner", required=True, help="Repository owner.")
@click.option("--repo", required=True, help="Repository name.")
@click.option("--token", envvar="GITHUB_TOKEN", required=True, help="Personal access token.")
@click.option("--path", default=DEFAULT_GITHUB_PATH, show_default=True, help="File path in the repository.")
@click.option("--branch", default=None, help="Branch to read and write (default: repository default).")
@click.pass_context
def connect_github(
    ctx: click.Context, owner: str, repo: str, token: str, path: str, branch: str | None
) -> None:
    """Store the snapshot in a GitHub repository file."""
    workspace = _workspace(ctx)
    config = GitHubConfig(owner=owner, repo=repo, token=token, path=path, branch=branch)
    target = _run(workspace.connect(config))
    click.echo(f"Connected profile '{workspace.profile}' to GitHub repository {target}")


@connect.command("google-drive")
@click.option("--file-id", default=None, help="Existing Drive file id.")
@click.option("--create", is_flag=True, help="Create a new Drive file for this profile.")
@click.option("--parent", default=None, help="Folder id for --create.")
@click.pass_context
def connect_google_drive(
    ctx: click.Context, file_id: str | None, create: bool, parent: str | None
) -> None:
    """Store the snapshot in a Google Drive file."""
    if bool(file_id) == create:
        raise click.UsageError("Pass exactly one of --file-id or --create.")
    workspace = _workspace(ctx)
    if file_id is None:
        file_id = _run(create_drive_file(google_token_provider(settings), parent))
    name = _run(workspace.connect(GoogleDriveConfig(file_id=file_id)))
    click.echo(f"Connected profile '{workspace.profile}' to Drive file {name} ({file_id})")


@cli.command()
@click.pass_context
def disconnect(ctx: click.Context) -> None:
    """Forget the remote connection for this profile."""
    workspace = _workspace(ctx)
    workspace.disconnect()
    click.echo(f"Disconnected profile '{workspace.profile}'.")


@cli.command("test")
@click.pass_context
def test_connection(ctx: click.Context) -> None:
    """Check that the configured remote is reachable."""
    workspace = _workspace(ctx)

    async def check() -> str:
        return await workspace.adapter().test_connection()

    click.echo(f"OK: {_run(check())}")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the local catalog and remote connection state."""
    info = _workspace(ctx).status()
    click.echo(f"Profile:      {info.profile}")
    click.echo(f"Remote:       {info.adapter or 'not connected'}")
    click.echo(f"Last version: {info.last_version_token or '-'}")
    last = info.last_synced_at.isoformat() if info.last_synced_at else "never"
    click.echo(f"Last synced:  {last}")
    click.echo(f"Songs:        {info.song_count}")
    click.echo(f"Setlists:     {info.setlist_count}")
    click.echo(f"Tombstones:   {info.tombstone_count}")


# ------------------------------------------------------------------
# Sync
# ------------------------------------------------------------------


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Merge local and remote changes automatically and push."""
    workspace = _workspace(ctx)

    async def run() -> SyncResult:
        return await workspace.orchestrator().sync()

    _echo_result(_run(run()))


@cli.command()
@click.option("--all", "push_all", is_flag=True, help="Push every outgoing change without asking.")
@click.option("--none", "push_none", is_flag=True, help="Only apply incoming changes.")
@click.pass_context
def review(ctx: click.Context, push_all: bool, push_none: bool) -> None:
    """Apply incoming changes, then choose which local changes to push."""
    if push_all and push_none:
        raise click.UsageError("--all and --none are mutually exclusive.")
    workspace = _workspace(ctx)

    async def run() -> None:
        orchestrator = workspace.orchestrator()
        outcome = await orchestrator.pull_and_diff()
        if isinstance(outcome, SyncResult):
            _echo_result(outcome)
            return

        _echo_diff(outcome.diff)
        for mismatch in outcome.transposition_mismatches:
            click.echo(
                f"Note: '{mismatch.song_title}' is transposed "
                f"{mismatch.local_transposition:+d} here and "
                f"{mismatch.remote_transposition:+d} on the remote"
            )

        if push_none:
            selected: list[ChangeItem] = []
        elif push_all:
            selected = list(outcome.diff.outgoing)
        else:
            try:
                selected = [
                    change
                    for change in outcome.diff.outgoing
                    if click.confirm(f"Push {_format_change(change)}?", default=True)
                ]
            except click.Abort:
                click.echo("\nCancelled; incoming changes were kept, nothing was pushed.")
                return

        _echo_result(await orchestrator.push_selected(outcome, selected))

    _run(run())


# ------------------------------------------------------------------
# Snapshot files
# ------------------------------------------------------------------


@cli.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def export_snapshot(ctx: click.Context, path: Path) -> None:
    """Write the local catalog to a snapshot file."""
    snapshot = _workspace(ctx).codec.export()
    path.write_text(serialize_snapshot(snapshot) + "\n", encoding="utf-8")
    click.echo(
        f"Exported {len(snapshot.songs)} song(s) and {len(snapshot.setlists)} setlist(s) to {path}"
    )


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def import_snapshot(ctx: click.Context, path: Path, yes: bool) -> None:
    """Replace the local catalog with a snapshot file."""
    try:
        snapshot = validate_snapshot(path.read_bytes())
    except SyncError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    if not yes and not click.confirm(
        f"Replace the local catalog with {len(snapshot.songs)} song(s) "
        f"and {len(snapshot.setlists)} setlist(s)?"
    ):
        click.echo("Nothing imported.")
        return
    _workspace(ctx).codec.import_(snapshot)
    click.echo(f"Imported {path}")


# ------------------------------------------------------------------
# Invites
# ------------------------------------------------------------------


@cli.command()
@click.option("--name", default=None, help="Profile name shown to the invitee.")
@click.pass_context
def invite(ctx: click.Context, name: str | None) -> None:
    """Print an invite code for the profile's remote."""
    workspace = _workspace(ctx)
    config = workspace.sync_config.load()
    if config is None:
        click.echo("Error: this profile is not connected to a remote.", err=True)
        sys.exit(1)
    click.echo(encode_invite(invite_for(config, name or workspace.profile)))


@cli.command()
@click.argument("code")
@click.pass_context
def join(ctx: click.Context, code: str) -> None:
    """Connect the profile to the remote described by an invite code."""
    workspace = _workspace(ctx)
    try:
        payload = decode_invite(code)
        config = payload.to_config()
    except SyncError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    workspace.sync_config.save(config)
    workspace.baseline.clear()
    click.echo(
        f"Joined '{payload.profile.name}' on {config.adapter}; "
        "run 'setlist-sync sync' to pull the catalog."
    )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
