"""
Exception types for Lethe Sync.

Only ManifestUnavailable ends a run early. DownloadFailed and FilesystemError
are per-file: the orchestrator records them in the run summary and moves on.
"""

from pathlib import Path
from typing import Optional, Union


class SyncError(Exception):
    """Base class for sync errors."""


class ManifestUnavailable(SyncError):
    """The manifest could not be fetched or parsed. Fatal to the run."""


class UnsafePathError(ValueError):
    """A manifest path is empty, absolute or escapes the destination root."""


class DownloadFailed(SyncError):
    """
    A single object-store transfer failed.

    Attributes:
        target: Manifest path (or URL) being fetched
        cause: Short description of what went wrong
        status: HTTP status when the server answered, else None
        retryable: True for transient causes (timeouts, resets, 5xx)
    """

    def __init__(self, target: str, cause: str, status: Optional[int] = None, retryable: bool = False):
        self.target = target
        self.cause = cause
        self.status = status
        self.retryable = retryable
        super().__init__(f"{target}: {cause}")


class FilesystemError(SyncError):
    """Writing a file to the destination failed (permissions, disk full, ...)."""

    def __init__(self, path: Union[str, Path], cause: Union[str, OSError]):
        self.path = str(path)
        self.cause = str(cause)
        super().__init__(f"{self.path}: {self.cause}")


class SyncCancelled(SyncError):
    """Raised between files or chunks once cancellation was requested."""
