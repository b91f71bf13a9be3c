"""edgesync exceptions.

Every error is fatal for the run. The CLI maps each class to its own exit
status so callers can tell a listing failure from an upload failure.
"""

from __future__ import annotations


class EdgeSyncError(Exception):
    """Base exception for edgesync."""

    exit_code = 1


class ConfigError(EdgeSyncError):
    """Configuration is missing or invalid."""

    exit_code = 2


class RemoteListError(EdgeSyncError):
    """The remote inventory could not be listed completely."""

    exit_code = 3


class LocalReadError(EdgeSyncError):
    """A local file or directory could not be read during the scan."""

    exit_code = 4

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class KeyCollisionError(LocalReadError):
    """Two local paths normalized to the same store key."""


class UploadError(EdgeSyncError):
    """A single object upload failed."""

    exit_code = 5

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class InvalidationError(EdgeSyncError):
    """The edge cache rejected the invalidation batch."""

    exit_code = 6
