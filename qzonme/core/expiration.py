"""
Expiration policy for QzonMe.

Quizzes and the images uploaded for them share one retention window.
Everything that needs to decide whether a dated entity is expired goes
through this module, so the retention constant lives here and nowhere else.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

# Days a quiz (and its images) stays available after creation.
RETENTION_DAYS = 7


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def retention_cutoff(
        now: datetime,
        retention_days: int = RETENTION_DAYS) -> datetime:
    """
    Compute the creation time at which entities start to count as expired.

    Args:
        now: Reference time
        retention_days: Retention window in days

    Returns:
        ``now`` minus the retention window
    """
    return _as_utc(now) - timedelta(days=retention_days)


def is_expired(
        created_at: datetime | None,
        now: datetime,
        retention_days: int = RETENTION_DAYS) -> bool:
    """
    Check whether an entity created at ``created_at`` has outlived retention.

    The comparison is strict: an entity exactly ``retention_days`` old is
    still alive. A missing creation time counts as expired.

    Args:
        created_at: Creation timestamp (naive values are read as UTC)
        now: Reference time
        retention_days: Retention window in days

    Returns:
        True if the entity should be removed
    """
    if created_at is None:
        return True
    age = _as_utc(now) - _as_utc(created_at)
    return age > timedelta(days=retention_days)


def is_quiz_expired(
        created_at: datetime | None,
        now: datetime | None = None) -> bool:
    """Quiz-record flavour of :func:`is_expired`, defaulting ``now`` to UTC now."""
    return is_expired(created_at, now or utc_now())


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """
    Parse a timestamp reported by the media host.

    Args:
        value: ISO-8601 string (a trailing ``Z`` is accepted), datetime or None

    Returns:
        Aware datetime, or None if the value is missing or unparseable
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    return _as_utc(parsed)
