"""Error taxonomy shared by the sync engine and the remote adapters.

Adapters translate host-specific failures into these types so the
orchestrator never has to look at HTTP details:

- ``SchemaError`` -- a snapshot document failed validation.  Never retried.
- ``ConflictError`` -- the remote changed since it was pulled.  The
  orchestrator replays the whole attempt once before giving up.
- ``RemoteError`` / ``NetworkError`` -- the host refused the request or
  could not be reached.  Surfaced verbatim.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync failures."""


class SchemaError(SyncError):
    """Raised when a snapshot document does not match the expected shape."""


class ConflictError(SyncError):
    """Raised when a push is rejected because the remote version moved."""

    def __init__(self, message: str = "Remote file changed since last pull") -> None:
        super().__init__(message)


class RemoteError(SyncError):
    """Raised for a non-success response from the remote host.

    Args:
        message: The host-provided error message, when there is one.
        status_code: HTTP status code of the failed response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(RemoteError):
    """Raised when the remote host could not be reached at all."""


class NotConfiguredError(SyncError):
    """Raised when a sync is requested for a profile without a remote."""


class SyncInProgressError(SyncError):
    """Raised when a second sync is started on a busy orchestrator."""


class InviteError(SyncError):
    """Raised when an invite code cannot be decoded."""
