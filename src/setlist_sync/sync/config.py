"""Per-profile sync configuration persisted as JSON-backed Pydantic models.

Records which remote adapter a profile is connected to, the adapter's
connection fields, and the version token of the last successful push.
The configuration is a tagged union discriminated by ``adapter``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from setlist_sync.models import now_ms
from setlist_sync.store import atomic_write_text

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_PATH = "setlist-sync.json"


class _SyncConfigBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    last_version_token: str | None = None
    last_synced_at: int | None = None


class GitHubConfig(_SyncConfigBase):
    """Snapshot stored as a file in a GitHub repository."""

    adapter: Literal["github"] = "github"
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    token: str = Field(min_length=1)
    path: str = Field(default=DEFAULT_GITHUB_PATH, min_length=1)
    branch: str | None = None


class GoogleDriveConfig(_SyncConfigBase):
    """Snapshot stored as a file in Google Drive."""

    adapter: Literal["google-drive"] = "google-drive"
    file_id: str = Field(min_length=1)


SyncConfig = Annotated[
    Union[GitHubConfig, GoogleDriveConfig], Field(discriminator="adapter")
]

_SYNC_CONFIG = TypeAdapter(SyncConfig)


def parse_sync_config(data: object) -> GitHubConfig | GoogleDriveConfig:
    """Validate a decoded mapping into the matching config variant."""
    return _SYNC_CONFIG.validate_python(data)


class SyncConfigStore:
    """Loads and saves the sync configuration for one profile.

    Args:
        config_file: Path to the JSON config file.
    """

    def __init__(self, config_file: Path) -> None:
        self._file = config_file

    def load(self) -> GitHubConfig | GoogleDriveConfig | None:
        """Return the stored config, or ``None`` if missing or unreadable."""
        if not self._file.exists() or self._file.stat().st_size == 0:
            return None
        try:
            return _SYNC_CONFIG.validate_json(self._file.read_text(encoding="utf-8"))
        except ValidationError as exc:
            logger.warning("Ignoring unreadable sync config %s: %s", self._file, exc)
            return None

    def save(self, config: GitHubConfig | GoogleDriveConfig) -> None:
        atomic_write_text(
            self._file, config.model_dump_json(indent=2, by_alias=True) + "\n"
        )

    def clear(self) -> None:
        """Forget the remote connection (disconnect)."""
        self._file.unlink(missing_ok=True)

    def record_push(
        self, version_token: str, now: int | None = None
    ) -> GitHubConfig | GoogleDriveConfig | None:
        """Persist the version token returned by a successful push.

        Only the two protocol fields change.  Returns the updated config,
        or ``None`` when the profile has been disconnected meanwhile.
        """
        config = self.load()
        if config is None:
            return None
        updated = config.model_copy(
            update={
                "last_version_token": version_token,
                "last_synced_at": now_ms() if now is None else now,
            }
        )
        self.save(updated)
        return updated
