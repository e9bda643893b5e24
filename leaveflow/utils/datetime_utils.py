"""
UTC helpers. Timestamps are stored and compared in UTC; SQLite hands them back naive.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional

UTC = timezone.utc


def now_utc() -> datetime:
    return datetime.now(UTC)


def today_utc() -> date:
    return now_utc().date()


def after_minutes(minutes: float, start: Optional[datetime] = None) -> datetime:
    """When a deferred rule action becomes due"""
    return (start or now_utc()) + timedelta(minutes=minutes)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Naive values are read as UTC; aware values are converted."""
    if dt is None:
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def iso_8601_utc(dt: Optional[datetime]) -> Optional[str]:
    """e.g. 2026-03-02T09:30:00Z"""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")
