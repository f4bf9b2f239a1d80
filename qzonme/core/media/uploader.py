"""
Upload orchestration for quiz images.

A file staged on local disk is pushed to the media host under the quiz
image folder, tagged with its owning quiz so the cleanup job (or a bulk
delete) can find it later. The staged file is removed on every exit path.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from fastapi import UploadFile

from qzonme.core.media.client import (
    RemoteMediaClient,
    TransformSpec,
    UploadResult,
    owner_tag,
)
from qzonme.core.media.errors import (
    LocalCleanupWarning,
    RemoteServiceError,
    UploadFailed,
)
from qzonme.logging.setup import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1 * 1024 * 1024  # 1 MiB


def ensure_temp_dir(temp_dir: str | Path) -> Path:
    """
    Create the temp upload directory if it does not exist.

    Safe to call concurrently and repeatedly.

    Raises:
        OSError: If the directory cannot be created
    """
    path = Path(temp_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Error creating temp directory {path}: {e}")
        raise OSError(
            f"Failed to create temporary upload directory: {path}") from e
    return path


def safe_delete(path: str | Path) -> bool:
    """
    Delete a local file, ignoring it if it is already gone.

    Failures are logged as LocalCleanupWarning and never raised.

    Returns:
        True if the file no longer exists
    """
    target = Path(path)
    try:
        target.unlink(missing_ok=True)
        return True
    except OSError as e:
        logger.warning(str(LocalCleanupWarning(target, e)))
        return False


@contextmanager
def staged_file(path: str | Path) -> Iterator[Path]:
    """Yield a staged file path and delete the file when the block exits."""
    target = Path(path)
    try:
        yield target
    finally:
        safe_delete(target)


async def stage_upload(upload: UploadFile, temp_dir: str | Path) -> Path:
    """
    Copy an incoming multipart upload into the temp directory.

    Args:
        upload: FastAPI upload
        temp_dir: Directory for staged files

    Returns:
        Path of the staged file (owned by the caller from now on)
    """
    directory = ensure_temp_dir(temp_dir)
    suffix = Path(upload.filename or "").suffix.lower()
    target = directory / f"{uuid.uuid4().hex}{suffix}"

    try:
        with target.open("wb") as sink:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                sink.write(chunk)
    except BaseException:
        safe_delete(target)
        raise

    logger.debug(f"Staged upload {upload.filename} at {target}")
    return target


class UploadOrchestrator:
    """Stores staged images on the media host."""

    def __init__(
        self,
        client: RemoteMediaClient,
        transform: TransformSpec | None = None,
    ):
        self.client = client
        self.transform = transform or TransformSpec()

    def store(self, local_path: str | Path, owner_id: str | int) -> UploadResult:
        """
        Upload a staged file for a quiz and remove the local copy.

        Args:
            local_path: Staged file, already written by the caller
            owner_id: Quiz the image belongs to

        Returns:
            UploadResult with the public URL and asset id

        Raises:
            FileNotFoundError: If the staged file does not exist
            UploadFailed: If the media host rejects the upload
        """
        path = Path(local_path)
        if not path.is_file():
            raise FileNotFoundError(f"Staged file not found: {path}")

        logger.info(f"Uploading file to media host: {path} for quiz {owner_id}")

        with staged_file(path):
            try:
                result = self.client.upload(
                    path, owner_tag(owner_id), self.transform)
            except RemoteServiceError as e:
                logger.error(f"Upload for quiz {owner_id} failed: {e}")
                raise UploadFailed(e) from e

        logger.info(
            f"Uploaded image for quiz {owner_id}: public_id={result.asset_id}")
        return result
