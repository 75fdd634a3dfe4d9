"""MCP server exposing setlist sync to assistants.

Run with:
    uv run setlist-sync-mcp
"""

from __future__ import annotations

import logging

from mcp.server.fastmcp import FastMCP

from setlist_sync.config import settings
from setlist_sync.tools.sync_tools import register_sync_tools

mcp = FastMCP(
    "setlist-sync",
    instructions=(
        "Setlist-Sync MCP server. Use these tools to synchronize a "
        "profile's songs and setlists with its remote file (GitHub or "
        "Google Drive) and to inspect sync status."
    ),
)


def _initialize() -> None:
    """Validate settings and register tools."""
    settings.validate()
    logging.basicConfig(level=settings.log_level.upper())
    register_sync_tools(mcp, settings)


def main() -> None:
    """Entry point for the MCP server."""
    _initialize()
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
