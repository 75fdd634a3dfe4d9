"""Remote adapters implementing ``RemoteSyncPort`` for specific file hosts."""

from __future__ import annotations

import httpx

from setlist_sync.config import Settings, settings
from setlist_sync.remotes.auth import (
    GoogleRefreshTokenProvider,
    StaticTokenProvider,
    TokenProvider,
    google_token_provider,
)
from setlist_sync.remotes.github import GitHubAdapter
from setlist_sync.remotes.google_drive import GoogleDriveAdapter, create_drive_file
from setlist_sync.sync.config import GitHubConfig, GoogleDriveConfig
from setlist_sync.sync.port import RemoteSyncPort


def build_adapter(
    config: GitHubConfig | GoogleDriveConfig,
    *,
    app_settings: Settings = settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RemoteSyncPort:
    """Return the adapter matching the config's ``adapter`` tag."""
    if isinstance(config, GitHubConfig):
        return GitHubAdapter(config, transport=transport)
    if isinstance(config, GoogleDriveConfig):
        return GoogleDriveAdapter(
            config,
            google_token_provider(app_settings, transport=transport),
            transport=transport,
        )
    raise ValueError(f"Unsupported sync adapter: {config!r}")


__all__ = [
    "GitHubAdapter",
    "GoogleDriveAdapter",
    "GoogleRefreshTokenProvider",
    "StaticTokenProvider",
    "TokenProvider",
    "build_adapter",
    "create_drive_file",
    "google_token_provider",
]
