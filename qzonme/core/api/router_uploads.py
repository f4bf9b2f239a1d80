"""
Image upload API router.

The incoming file is staged in the configured temp directory and handed to
the UploadOrchestrator, which uploads it to the media host tagged with its
quiz and removes the staged copy.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, File, Form, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from qzonme.core.api.errors import (
    raise_error,
    storage_error,
    upload_failed_error,
    validation_error,
)
from qzonme.core.api.models import ImageUploadResponseModel
from qzonme.core.media.errors import UploadFailed
from qzonme.core.media.uploader import (
    UploadOrchestrator,
    safe_delete,
    stage_upload,
)
from qzonme.logging.setup import get_logger

logger = get_logger(__name__)
router = APIRouter()


def get_upload_orchestrator(request: Request) -> UploadOrchestrator:
    return request.app.state.upload_orchestrator


@router.post("/upload-image", response_model=ImageUploadResponseModel)
async def upload_image(
    request: Request,
    image: Optional[UploadFile] = File(None),
    quizId: Optional[str] = Form(None),
):
    """
    Upload a quiz image.

    Args:
        image: Image file (multipart/form-data)
        quizId: Quiz the image belongs to

    Returns:
        ``{"imageUrl", "publicId"}``

    Raises:
        HTTPException:
            - 400: Missing file or quiz id
            - 413: File too large
            - 500: File could not be staged locally
            - 502: Media host rejected the upload
    """
    if image is None or not image.filename:
        raise_error(
            message="No file uploaded",
            status_code=status.HTTP_400_BAD_REQUEST,
            code="MISSING_FILE"
        )
    if not quizId:
        validation_error(["quizId is required"], field="quizId")

    uploads = request.app.state.config_manager.uploads
    logger.info(f"Image upload request: filename={image.filename}, quiz_id={quizId}")

    try:
        staged = await stage_upload(image, uploads.temp_dir)
    except OSError as e:
        logger.error(f"Failed to stage upload: {e}")
        storage_error("stage upload")

    max_bytes = uploads.max_file_size_mb * 1024 * 1024
    if staged.stat().st_size > max_bytes:
        safe_delete(staged)
        raise_error(
            message="File too large",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            details=[f"Maximum size is {uploads.max_file_size_mb} MB"],
            code="FILE_TOO_LARGE"
        )

    orchestrator = get_upload_orchestrator(request)
    try:
        result = await run_in_threadpool(orchestrator.store, staged, quizId)
    except UploadFailed as e:
        logger.error(f"Upload for quiz {quizId} failed: {e}")
        upload_failed_error()

    return result.to_dict()
