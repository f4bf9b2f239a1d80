"""Remote media store client (Cloudinary)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import cloudinary.api
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from qzonme.core.expiration import parse_timestamp
from qzonme.core.media.errors import ListingFailed, RemoteServiceError
from qzonme.logging.setup import get_logger

logger = get_logger(__name__)

# Every quiz image lives under this folder on the media host.
ASSET_FOLDER = "quiz-images"
ASSET_PREFIX = f"{ASSET_FOLDER}/"

# The host refuses list pages larger than this.
MAX_LIST_RESULTS = 500


def owner_tag(owner_id: str | int) -> str:
    """Tag applied to every asset uploaded for one quiz."""
    return f"quiz_{owner_id}"


@dataclass(frozen=True)
class TransformSpec:
    """
    Transformation policy applied to uploaded images.

    The primary asset is bounded to ``max_width`` and delivered with
    automatic format/quality negotiation; one eager variant is generated
    per responsive width.
    """

    max_width: int = 800
    crop: str = "limit"
    fetch_format: str = "auto"
    quality: str = "auto"
    responsive_widths: tuple[int, ...] = (400, 800, 1200)

    def to_upload_options(self) -> dict[str, Any]:
        """Render the policy as Cloudinary upload options."""
        return {
            "transformation": [
                {"width": self.max_width, "crop": self.crop},
                {"fetch_format": self.fetch_format, "quality": self.quality},
            ],
            "eager": [
                {
                    "width": width,
                    "crop": self.crop,
                    "fetch_format": self.fetch_format,
                    "quality": self.quality,
                }
                for width in self.responsive_widths
            ],
            "eager_async": True,
        }


@dataclass(frozen=True)
class RemoteAsset:
    """Read-only view of an asset stored on the media host."""

    asset_id: str
    created_at: datetime | None
    tags: tuple[str, ...] = ()
    url: str | None = None

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> RemoteAsset:
        """Build from one entry of a Cloudinary resource listing."""
        return cls(
            asset_id=resource["public_id"],
            created_at=parse_timestamp(resource.get("created_at")),
            tags=tuple(resource.get("tags") or ()),
            url=resource.get("secure_url"),
        )


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a successful upload."""

    public_reference: str
    asset_id: str
    width: int | None = None
    height: int | None = None
    format: str | None = None
    bytes: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"imageUrl": self.public_reference, "publicId": self.asset_id}


@dataclass(frozen=True)
class BatchResult:
    """Outcome of a bulk delete by tag."""

    deleted: tuple[str, ...] = field(default_factory=tuple)
    partial: bool = False


class RemoteMediaClient(ABC):
    """
    Capability interface over the remote media host.

    Every operation is a blocking remote call that may fail independently
    with RemoteServiceError. Implementations do not retry.
    """

    @abstractmethod
    def upload(
        self,
        local_path: str | Path,
        tag: str,
        transform: TransformSpec,
    ) -> UploadResult:
        """
        Upload a local file with a transformation and tagging policy.

        Args:
            local_path: Path of the staged file
            tag: Owner tag (see owner_tag)
            transform: Transformation policy

        Returns:
            UploadResult with the public reference

        Raises:
            RemoteServiceError: If the upload fails
        """
        pass

    @abstractmethod
    def delete_by_id(self, asset_id: str) -> None:
        """
        Delete one asset.

        Raises:
            RemoteServiceError: If the host does not confirm the deletion
        """
        pass

    @abstractmethod
    def delete_by_tag(self, tag: str) -> BatchResult:
        """
        Delete every asset carrying ``tag`` in one remote operation.

        Raises:
            RemoteServiceError: If the bulk delete fails
        """
        pass

    @abstractmethod
    def list_by_prefix(
        self,
        prefix: str,
        max_results: int,
    ) -> list[RemoteAsset]:
        """
        List assets whose id starts with ``prefix``.

        Raises:
            ListingFailed: If the listing fails
        """
        pass

    @abstractmethod
    def ping(self) -> bool:
        """Return True if the host is reachable with the configured credentials."""
        pass


class CloudinaryMediaClient(RemoteMediaClient):
    """
    RemoteMediaClient backed by the Cloudinary SDK.

    Credentials are passed with every call instead of being written into the
    SDK's global configuration, and every call carries a bounded timeout.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str | None,
        api_secret: str | None,
        timeout: float = 60,
        folder: str = ASSET_FOLDER,
    ):
        self.cloud_name = cloud_name
        self.folder = folder
        self.timeout = timeout
        self._options = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
            "timeout": timeout,
        }

    @classmethod
    def from_settings(cls, media_settings: Any) -> CloudinaryMediaClient:
        """
        Create a client from MediaSettings.

        Credential values are read from the environment variables named in
        the settings.
        """
        credentials = media_settings.credentials()
        return cls(
            cloud_name=credentials["cloud_name"],
            api_key=credentials["api_key"],
            api_secret=credentials["api_secret"],
            timeout=media_settings.timeout_seconds,
            folder=media_settings.folder,
        )

    def upload(
        self,
        local_path: str | Path,
        tag: str,
        transform: TransformSpec,
    ) -> UploadResult:
        logger.debug(f"Uploading {local_path} to {self.folder} with tag {tag}")
        options = transform.to_upload_options()
        try:
            result = cloudinary.uploader.upload(
                str(local_path),
                folder=self.folder,
                tags=[tag],
                resource_type="image",
                **options,
                **self._options,
            )
        except (CloudinaryError, OSError) as e:
            logger.error(f"Cloudinary upload error: {e}")
            raise RemoteServiceError("upload", str(e), payload=e.args) from e

        try:
            public_reference = result["secure_url"]
            asset_id = result["public_id"]
        except (KeyError, TypeError) as e:
            logger.error(f"Malformed Cloudinary upload response: {result!r}")
            raise RemoteServiceError(
                "upload", f"malformed response, missing {e}", payload=result) from e

        return UploadResult(
            public_reference=public_reference,
            asset_id=asset_id,
            width=result.get("width"),
            height=result.get("height"),
            format=result.get("format"),
            bytes=result.get("bytes"),
        )

    def delete_by_id(self, asset_id: str) -> None:
        logger.debug(f"Deleting asset {asset_id}")
        try:
            result = cloudinary.uploader.destroy(asset_id, **self._options)
        except (CloudinaryError, OSError) as e:
            raise RemoteServiceError("delete", str(e), payload=e.args) from e

        outcome = result.get("result") if result else None
        if outcome != "ok":
            raise RemoteServiceError(
                "delete",
                f"asset {asset_id} not deleted (result: {outcome})",
                payload=result,
            )

    def delete_by_tag(self, tag: str) -> BatchResult:
        logger.debug(f"Deleting assets tagged {tag}")
        try:
            result = cloudinary.api.delete_resources_by_tag(
                tag, **self._options)
        except (CloudinaryError, OSError) as e:
            raise RemoteServiceError(
                "delete_by_tag", str(e), payload=e.args) from e

        deleted = result.get("deleted") or {}
        return BatchResult(
            deleted=tuple(
                asset_id for asset_id, state in deleted.items()
                if state == "deleted"
            ),
            partial=bool(result.get("partial", False)),
        )

    def list_by_prefix(
        self,
        prefix: str,
        max_results: int,
    ) -> list[RemoteAsset]:
        logger.debug(f"Listing assets under {prefix} (max {max_results})")
        try:
            result = cloudinary.api.resources(
                type="upload",
                prefix=prefix,
                max_results=min(max_results, MAX_LIST_RESULTS),
                tags=True,
                **self._options,
            )
        except (CloudinaryError, OSError) as e:
            raise ListingFailed("list", str(e), payload=e.args) from e

        return [
            RemoteAsset.from_resource(resource)
            for resource in result.get("resources", [])
        ]

    def ping(self) -> bool:
        try:
            result = cloudinary.api.ping(**self._options)
        except Exception as e:
            logger.error(f"Cloudinary connection error: {e}")
            return False
        logger.info(f"Cloudinary connection successful: {result}")
        return True
