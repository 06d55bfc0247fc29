"""Date/time helpers shared by models and services."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, the form stored in DATETIME columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def format_utc_datetime(dt: datetime | None) -> str | None:
    """Format a stored UTC datetime as ISO 8601 with a Z suffix.

    Example: 2026-01-10T10:30:00Z
    """
    if dt is None:
        return None
    return f"{dt.isoformat()}Z"
