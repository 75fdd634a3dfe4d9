from __future__ import annotations

import os
from pathlib import Path


def validate_profile_name(name: str) -> str:
    """Return *name* if it is usable as a profile directory name."""
    if not name or name in {".", ".."}:
        raise ValueError(f"Invalid profile name: {name!r}")
    if "/" in name or "\\" in name:
        raise ValueError(f"Invalid profile name: {name!r} contains a path separator")
    return name


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        self.home: Path = Path(
            os.environ.get("SETLIST_SYNC_HOME", "~/.setlist-sync")
        ).expanduser()
        self.profile: str = os.environ.get("SETLIST_SYNC_PROFILE", "default")
        self.log_level: str = os.environ.get("SETLIST_SYNC_LOG_LEVEL", "WARNING")
        self.google_access_token: str = os.environ.get("GOOGLE_ACCESS_TOKEN", "")
        self.google_client_id: str = os.environ.get("GOOGLE_CLIENT_ID", "")
        self.google_client_secret: str = os.environ.get("GOOGLE_CLIENT_SECRET", "")
        self.google_refresh_token: str = os.environ.get("GOOGLE_REFRESH_TOKEN", "")

    def has_google_refresh_credentials(self) -> bool:
        return bool(
            self.google_client_id
            and self.google_client_secret
            and self.google_refresh_token
        )

    def validate(self) -> None:
        validate_profile_name(self.profile)


settings = Settings()
