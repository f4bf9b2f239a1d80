"""
Cleanup monitoring API router.

Exposes the state of the image cleanup scheduler: the run in flight (if
any), the last ten finished runs, and the last/next run times.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from qzonme.core.api.models import CleanupStatusResponseModel
from qzonme.core.cleanup.scheduler import CleanupScheduler
from qzonme.logging.setup import get_logger

logger = get_logger(__name__)
router = APIRouter()

_EMPTY_STATUS = {
    "currentJob": None,
    "history": [],
    "lastRun": None,
    "nextRun": None,
}


def get_cleanup_scheduler(request: Request) -> CleanupScheduler | None:
    """Return the app's scheduler, or None when cleanup is disabled."""
    return getattr(request.app.state, "cleanup_scheduler", None)


@router.get("/cleanup/status", response_model=CleanupStatusResponseModel)
def cleanup_status(request: Request):
    """
    Report the cleanup scheduler state.

    Always answers 200; fields are null (and history empty) when nothing
    has run yet or the scheduler is disabled.
    """
    scheduler = get_cleanup_scheduler(request)
    if scheduler is None:
        logger.debug("Cleanup status requested while scheduler is disabled")
        return _EMPTY_STATUS
    return scheduler.status().to_dict()
