"""Time utilities."""
from datetime import UTC, date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    """Return current UTC time with timezone awareness."""

    return datetime.now(tz=UTC)


def start_of_day(moment: datetime | None = None) -> datetime:
    """Return UTC midnight for ``moment`` (today by default)."""

    moment = moment or utcnow()
    return datetime.combine(moment.date(), time.min, tzinfo=timezone.utc)


def days_ago(days: int) -> datetime:
    return utcnow() - timedelta(days=days)


def parse_iso_utc(value: str) -> datetime:
    """Parse an ISO 8601 string and normalize it to UTC."""

    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_range_bound(value: str, *, end: bool = False) -> datetime:
    """Parse a date filter bound.

    A bare ``YYYY-MM-DD`` upper bound covers the whole day so that
    ``date_to=2024-01-31`` still matches rows created that afternoon.
    Raises ``ValueError`` on malformed input.
    """

    text = value.strip()
    if len(text) == 10:
        day = date.fromisoformat(text)
        bound = time.max if end else time.min
        return datetime.combine(day, bound, tzinfo=timezone.utc)
    return parse_iso_utc(text)


def elapsed_seconds(start: datetime | None, end: datetime | None) -> float | None:
    if start is None or end is None:
        return None
    if (start.tzinfo is None) != (end.tzinfo is None):
        start = start.replace(tzinfo=None)
        end = end.replace(tzinfo=None)
    return (end - start).total_seconds()


__all__ = [
    "utcnow",
    "start_of_day",
    "days_ago",
    "parse_iso_utc",
    "parse_range_bound",
    "elapsed_seconds",
]
