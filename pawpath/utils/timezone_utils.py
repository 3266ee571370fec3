"""Centralized Timezone Utilities - All datetime operations should use these functions."""

from datetime import date, datetime, timedelta, timezone

UTC = timezone.utc


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes coming back from the store as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes elapsed from start to end."""
    return int((ensure_utc(end) - ensure_utc(start)).total_seconds() // 60)


def local_date(dt: datetime, tz_offset_minutes: int) -> date:
    """Calendar date of a UTC instant in a fixed-offset local zone."""
    local_tz = timezone(timedelta(minutes=tz_offset_minutes))
    return ensure_utc(dt).astimezone(local_tz).date()


def iso_date(day: date) -> str:
    """Format a date the way walk requests store it (YYYY-MM-DD)."""
    return day.strftime("%Y-%m-%d")
