"""Shareable invite codes carrying a profile name and remote connection.

A band leader shares a code; a member decodes it into a profile whose
sync config points at the same remote file.  Codes are URL-safe base64
of compact JSON, without padding.
"""

from __future__ import annotations

import base64
import binascii
import json

from pydantic import BaseModel, ValidationError

from setlist_sync.exceptions import InviteError
from setlist_sync.sync.config import (
    GitHubConfig,
    GoogleDriveConfig,
    parse_sync_config,
)


class InviteProfile(BaseModel):
    name: str
    avatar: str | None = None


class InvitePayload(BaseModel):
    profile: InviteProfile
    sync: dict[str, str]

    def to_config(self) -> GitHubConfig | GoogleDriveConfig:
        """Build a fresh (never synced) config from the connection fields."""
        try:
            return parse_sync_config(self.sync)
        except ValidationError as exc:
            raise InviteError(f"Invite has invalid sync settings: {exc}") from exc


def invite_for(
    config: GitHubConfig | GoogleDriveConfig, profile_name: str, avatar: str | None = None
) -> InvitePayload:
    """Strip the protocol bookkeeping from *config* and wrap it in a payload."""
    fields = config.model_dump(
        by_alias=True,
        exclude_none=True,
        exclude={"last_version_token", "last_synced_at"},
    )
    return InvitePayload(
        profile=InviteProfile(name=profile_name, avatar=avatar),
        sync={key: str(value) for key, value in fields.items()},
    )


def encode_invite(payload: InvitePayload) -> str:
    raw = payload.model_dump_json(exclude_none=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_invite(code: str) -> InvitePayload:
    padded = code.strip() + "=" * (-len(code.strip()) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        return InvitePayload.model_validate(json.loads(raw))
    except (binascii.Error, UnicodeError, ValueError, ValidationError) as exc:
        raise InviteError(f"Invalid invite code: {exc}") from exc
