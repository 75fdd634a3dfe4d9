"""MCP tools for syncing a profile and checking its sync status."""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from setlist_sync.config import Settings
from setlist_sync.exceptions import SyncError
from setlist_sync.profile import ProfileWorkspace


def register_sync_tools(mcp: FastMCP, app_settings: Settings) -> None:
    """Register sync, status, and connection-test tools with the MCP server."""

    def workspace(profile: str | None) -> ProfileWorkspace:
        return ProfileWorkspace(profile or app_settings.profile, app_settings)

    @mcp.tool()
    async def sync_catalog(profile: str | None = None) -> dict[str, Any]:
        """Merge local and remote songs/setlists and push the result.

        Last-writer-wins per record; local deletions are kept.  Retries
        once if another device pushed in between.

        Args:
            profile: Profile to sync. Defaults to the configured profile.
        """
        try:
            result = await workspace(profile).orchestrator().sync()
        except (SyncError, ValueError) as exc:
            return {"success": False, "message": str(exc)}
        return {"success": True, **result.model_dump(mode="json")}

    @mcp.tool()
    def get_sync_status(profile: str | None = None) -> dict[str, Any]:
        """Report the remote connection and local record counts of a profile.

        Args:
            profile: Profile to inspect. Defaults to the configured profile.
        """
        try:
            info = workspace(profile).status()
        except ValueError as exc:
            return {"success": False, "message": str(exc)}
        return {
            "success": True,
            "profile": info.profile,
            "adapter": info.adapter,
            "last_version_token": info.last_version_token,
            "last_synced_at": info.last_synced_at.isoformat() if info.last_synced_at else None,
            "song_count": info.song_count,
            "setlist_count": info.setlist_count,
            "tombstone_count": info.tombstone_count,
        }

    @mcp.tool()
    async def test_remote_connection(profile: str | None = None) -> dict[str, Any]:
        """Do one round-trip to the profile's remote and name the target.

        Args:
            profile: Profile to check. Defaults to the configured profile.
        """
        try:
            target = await workspace(profile).adapter().test_connection()
        except (SyncError, ValueError) as exc:
            return {"success": False, "message": str(exc)}
        return {"success": True, "target": target}
