"""
Error types for the remote media store.

- RemoteServiceError: any failure reported by (or while talking to) the host
- ListingFailed: enumeration of assets failed, fatal to a cleanup run
- UploadFailed: a store() call failed remotely, raised after local cleanup
- LocalCleanupWarning: a staged temp file could not be removed (logged only)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class MediaError(Exception):
    """Base class for media store errors."""


class RemoteServiceError(MediaError):
    """Failure from the media host (network, auth, quota, not-found)."""

    def __init__(
        self,
        operation: str,
        message: str,
        payload: Any = None,
    ):
        self.operation = operation
        self.message = message
        self.payload = payload
        super().__init__(f"{operation} failed: {message}")


class ListingFailed(RemoteServiceError):
    """Asset enumeration failed."""


class UploadFailed(MediaError):
    """Upload of a staged file to the media host failed."""

    def __init__(self, cause: RemoteServiceError):
        self.cause = cause
        super().__init__(f"Upload failed: {cause.message}")


class LocalCleanupWarning(Warning):
    """A local temp file could not be deleted."""

    def __init__(self, path: str | Path, cause: BaseException):
        self.path = str(path)
        self.cause = cause
        super().__init__(f"Could not delete temp file {self.path}: {cause}")
