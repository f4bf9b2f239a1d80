"""
Cleanup job: one pass over the quiz image folder.

Listing failure aborts the run (there is nothing to iterate); a failed
delete is recorded against its asset and the loop moves on. Images expire
under the same RETENTION_DAYS window as the quizzes that own them.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from qzonme.core.expiration import (
    is_expired,
    retention_cutoff,
    utc_now,
)
from qzonme.core.media.client import (
    ASSET_PREFIX,
    MAX_LIST_RESULTS,
    BatchResult,
    RemoteMediaClient,
    owner_tag,
)
from qzonme.logging.setup import get_logger

logger = get_logger(__name__)


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class ErrorRecord:
    """One failure recorded during a run."""

    message: str
    resource_id: str | None = None
    occurred_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "resource_id": self.resource_id,
            "occurred_at": _isoformat(self.occurred_at),
        }


@dataclass
class RunStats:
    """
    Statistics of one cleanup run.

    Mutable while the run is in flight; ``finish()`` stamps ``end_time``
    once and freezes the record.
    """

    start_time: datetime = field(default_factory=utc_now)
    end_time: datetime | None = None
    processed_count: int = 0
    deleted_count: int = 0
    errors: list[ErrorRecord] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.end_time is not None

    def _check_open(self) -> None:
        if self.finished:
            raise RuntimeError("RunStats is finished and can no longer change")

    def set_processed(self, count: int) -> None:
        self._check_open()
        if count < 0:
            raise ValueError("processed count must be non-negative")
        self.processed_count = count

    def record_deletion(self) -> None:
        self._check_open()
        if self.deleted_count >= self.processed_count:
            raise ValueError("cannot delete more assets than were processed")
        self.deleted_count += 1

    def add_error(self, message: str, resource_id: str | None = None) -> None:
        self._check_open()
        self.errors.append(ErrorRecord(message=message, resource_id=resource_id))

    def finish(self, end_time: datetime | None = None) -> None:
        """Stamp ``end_time``. Raises RuntimeError if already finished."""
        self._check_open()
        self.end_time = end_time or utc_now()

    def to_dict(self) -> dict[str, Any]:
        """JSON view used by the status endpoint."""
        return {
            "startTime": _isoformat(self.start_time),
            "endTime": _isoformat(self.end_time),
            "imagesProcessed": self.processed_count,
            "imagesDeleted": self.deleted_count,
            "errors": [error.to_dict() for error in self.errors],
        }


@dataclass(frozen=True)
class PurgeOutcome:
    """Result of deleting all images of one quiz by tag."""

    owner_id: str
    success: bool
    result: BatchResult | None = None
    error: str | None = None


class CleanupJob:
    """Deletes expired quiz images from the media host."""

    def __init__(
        self,
        client: RemoteMediaClient,
        prefix: str = ASSET_PREFIX,
        page_size: int = MAX_LIST_RESULTS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.prefix = prefix
        self.page_size = page_size
        self.clock = clock

    def run(
        self,
        now: datetime | None = None,
        stats: RunStats | None = None,
    ) -> RunStats:
        """
        Execute one cleanup pass.

        Args:
            now: Reference time (defaults to the job's clock)
            stats: In-flight record to fill (a fresh one is created if omitted)

        Returns:
            The finished RunStats
        """
        now = now or self.clock()
        stats = stats or RunStats(start_time=now)
        cutoff = retention_cutoff(now)
        logger.info(
            f"Cleanup run started: prefix={self.prefix}, "
            f"cutoff={cutoff.isoformat()}")

        try:
            assets = self.client.list_by_prefix(self.prefix, self.page_size)
        except Exception as e:
            logger.error(f"Cleanup listing failed: {e}")
            stats.add_error(str(e))
            stats.finish(self.clock())
            return stats

        stats.set_processed(len(assets))
        if len(assets) >= self.page_size:
            logger.warning(
                f"Listing returned a full page of {self.page_size} assets; "
                "remaining assets are left for the next run")

        for asset in assets:
            if not is_expired(asset.created_at, now):
                continue
            try:
                self.client.delete_by_id(asset.asset_id)
            except Exception as e:
                logger.warning(f"Failed to delete {asset.asset_id}: {e}")
                stats.add_error(str(e), resource_id=asset.asset_id)
                continue
            stats.record_deletion()
            logger.debug(f"Deleted expired asset {asset.asset_id}")

        stats.finish(self.clock())
        logger.info(
            f"Cleanup run finished: processed={stats.processed_count}, "
            f"deleted={stats.deleted_count}, errors={len(stats.errors)}")
        return stats

    def purge_owners(
        self,
        owner_ids: Iterable[str | int],
        pause_seconds: float = 0.1,
    ) -> list[PurgeOutcome]:
        """
        Delete every image of the given (expired) quizzes by owner tag.

        Each quiz is handled independently; a failure is recorded and the
        next quiz is processed. A short pause between quizzes keeps the
        request rate under the host's limits.

        Args:
            owner_ids: Quiz identifiers
            pause_seconds: Delay between consecutive bulk deletes

        Returns:
            One PurgeOutcome per quiz, in input order
        """
        owner_ids = [str(owner_id) for owner_id in owner_ids]
        logger.info(
            f"Starting cleanup of images for {len(owner_ids)} expired quizzes")

        outcomes: list[PurgeOutcome] = []
        for index, owner_id in enumerate(owner_ids):
            if index and pause_seconds > 0:
                time.sleep(pause_seconds)
            try:
                result = self.client.delete_by_tag(owner_tag(owner_id))
            except Exception as e:
                logger.warning(f"Error deleting images for quiz {owner_id}: {e}")
                outcomes.append(
                    PurgeOutcome(owner_id=owner_id, success=False, error=str(e)))
                continue
            outcomes.append(
                PurgeOutcome(owner_id=owner_id, success=True, result=result))

        failed = sum(1 for outcome in outcomes if not outcome.success)
        logger.info(
            f"Completed cleanup of expired quiz images: "
            f"{len(outcomes) - failed} succeeded, {failed} failed")
        return outcomes
