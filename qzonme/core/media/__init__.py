"""Remote media store: client, upload orchestration and errors."""

from __future__ import annotations

from .errors import (
    MediaError,
    RemoteServiceError,
    ListingFailed,
    UploadFailed,
    LocalCleanupWarning,
)
from .client import (
    ASSET_FOLDER,
    ASSET_PREFIX,
    RemoteMediaClient,
    CloudinaryMediaClient,
    RemoteAsset,
    UploadResult,
    BatchResult,
    TransformSpec,
    owner_tag,
)
from .uploader import UploadOrchestrator, ensure_temp_dir, safe_delete

__all__ = [
    "MediaError",
    "RemoteServiceError",
    "ListingFailed",
    "UploadFailed",
    "LocalCleanupWarning",
    "ASSET_FOLDER",
    "ASSET_PREFIX",
    "RemoteMediaClient",
    "CloudinaryMediaClient",
    "RemoteAsset",
    "UploadResult",
    "BatchResult",
    "TransformSpec",
    "owner_tag",
    "UploadOrchestrator",
    "ensure_temp_dir",
    "safe_delete",
]
