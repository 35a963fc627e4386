"""UTC time helpers shared by the store and the realtime merge code."""

from datetime import datetime, timedelta, timezone

# Smallest step used to keep per-row write stamps strictly increasing
TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes for timezone-aware columns; every
    value stored by this service is UTC, so a naive value is tagged rather
    than converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_write_stamp(previous: datetime | None) -> datetime:
    """Stamp for a row write that sorts after the row's previous stamp."""
    now = utcnow()
    if previous is None:
        return now
    previous = ensure_utc(previous)
    return now if now > previous else previous + TICK
