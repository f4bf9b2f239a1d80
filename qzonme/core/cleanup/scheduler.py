"""
Background scheduler for the image cleanup job.

A single asyncio task sleeps for the startup delay, then alternates between
running the job and sleeping for the interval. The next sleep only starts
once the previous run has completed, so runs never overlap and the spacing
is measured from completion.
"""

from __future__ import annotations

import asyncio
import functools
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable

from qzonme.core.cleanup.job import CleanupJob, RunStats
from qzonme.core.expiration import utc_now
from qzonme.logging.setup import get_logger

logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 24 * 60 * 60
DEFAULT_INITIAL_DELAY_SECONDS = 5 * 60
HISTORY_SIZE = 10


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class ScheduleState:
    """Mutable scheduler state. Written only by the owning scheduler."""

    def __init__(self, history_size: int = HISTORY_SIZE):
        self.current_run: RunStats | None = None
        self.history: deque[RunStats] = deque(maxlen=history_size)
        self.last_run_end: datetime | None = None
        self.next_run_estimate: datetime | None = None


@dataclass(frozen=True)
class ScheduleStatus:
    """Point-in-time copy of the scheduler state."""

    current_run: RunStats | None
    history: tuple[RunStats, ...]
    last_run_end: datetime | None
    next_run_estimate: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentJob": self.current_run.to_dict() if self.current_run else None,
            "history": [stats.to_dict() for stats in self.history],
            "lastRun": _isoformat(self.last_run_end),
            "nextRun": _isoformat(self.next_run_estimate),
        }


class CleanupScheduler:
    """
    Runs CleanupJob periodically and keeps run history for observability.

    Args:
        job: Job to run
        interval_seconds: Delay between the end of one run and the next
        initial_delay_seconds: Delay before the first run after start()
        clock: Source of the current time (defaults to the job's clock so
            run start, end and next-run times share one time source)
    """

    def __init__(
        self,
        job: CleanupJob,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        initial_delay_seconds: float = DEFAULT_INITIAL_DELAY_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ):
        self.job = job
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self._clock = clock or getattr(job, "clock", utc_now)
        self._state = ScheduleState()
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        """True while a run is in flight."""
        return self._state.current_run is not None

    @property
    def is_started(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the worker task. Does nothing if it is already running."""
        if self.is_started:
            logger.debug("Cleanup scheduler already started")
            return
        self._state.next_run_estimate = self._clock() + timedelta(
            seconds=self.initial_delay_seconds)
        self._task = asyncio.create_task(
            self._worker(), name="image-cleanup-scheduler")
        logger.info(
            f"Cleanup scheduler started (first run in "
            f"{self.initial_delay_seconds}s, interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Cancel the worker task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.debug("Cleanup scheduler task cancelled successfully")
        self._task = None
        logger.info("Cleanup scheduler stopped")

    async def _worker(self) -> None:
        await asyncio.sleep(self.initial_delay_seconds)
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    async def run_once(self) -> RunStats | None:
        """
        Run the job now unless a run is already in flight.

        Never raises for job failures: they are logged and recorded in the
        run's errors, and the scheduler stays usable.

        Returns:
            The finished RunStats, or None if another run was in flight
        """
        if self._state.current_run is not None:
            logger.warning("Cleanup run requested while another is in flight")
            return None

        now = self._clock()
        stats = RunStats(start_time=now)
        self._state.current_run = stats

        future = asyncio.ensure_future(
            asyncio.to_thread(self.job.run, now, stats))
        try:
            # asyncio.wait does not cancel the future when we are cancelled
            await asyncio.wait({future})
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted. The run stays in
            # flight, and blocks new runs, until the thread returns.
            logger.info(
                "Cleanup scheduler cancelled during a run; "
                "the run will be recorded when it finishes")
            future.add_done_callback(functools.partial(self._settle, stats))
            raise

        self._settle(stats, future)
        return stats

    def _settle(self, stats: RunStats, future: asyncio.Future) -> None:
        """Record the outcome of the job future and close the run."""
        if future.cancelled():
            self._complete(stats, "Cleanup run cancelled")
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Error in cleanup run: {error}", exc_info=error)
            self._complete(stats, str(error))
        else:
            self._complete(stats)

    def _complete(self, stats: RunStats, error: str | None = None) -> None:
        if not stats.finished:
            if error:
                stats.add_error(error)
            stats.finish(self._clock())
        self._state.history.append(stats)
        self._state.current_run = None
        self._state.last_run_end = stats.end_time
        self._state.next_run_estimate = stats.end_time + timedelta(
            seconds=self.interval_seconds)

    def status(self) -> ScheduleStatus:
        """Return a snapshot of the current state. Safe during a run."""
        state = self._state
        current = state.current_run
        if current is not None:
            current = replace(current, errors=list(current.errors))
        return ScheduleStatus(
            current_run=current,
            history=tuple(state.history),
            last_run_end=state.last_run_end,
            next_run_estimate=state.next_run_estimate,
        )
