"""Keep a song and setlist catalog in sync through a user-owned remote file."""

__version__ = "0.1.0"
