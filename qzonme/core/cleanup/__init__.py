"""Expired image cleanup: single-run job and its background scheduler."""

from __future__ import annotations

from .job import CleanupJob, RunStats, ErrorRecord, PurgeOutcome
from .scheduler import CleanupScheduler, ScheduleState, ScheduleStatus

__all__ = [
    "CleanupJob",
    "RunStats",
    "ErrorRecord",
    "PurgeOutcome",
    "CleanupScheduler",
    "ScheduleState",
    "ScheduleStatus",
]
