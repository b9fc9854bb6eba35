from datetime import datetime, timedelta, timezone


# "Not yet scheduled, open anytime"
SENTINEL_TIME = datetime(1970, 1, 1, 0, 0, 0)
SENTINEL_YEAR_CUTOFF = 2000


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC (remove tzinfo). If already naive, assume UTC and return as-is.
    Returns None if input is None.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # assume naive datetimes are already UTC
        return dt
    # convert to UTC and drop tzinfo
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def is_sentinel(dt: datetime | None) -> bool:
    return dt is not None and dt.year < SENTINEL_YEAR_CUTOFF


def is_real_time(dt: datetime | None) -> bool:
    """True for a usable, scheduled time: present and not the sentinel."""
    return dt is not None and not is_sentinel(dt)


def add_minutes(dt: datetime, minutes: int) -> datetime:
    return dt + timedelta(minutes=minutes)


def minutes_between(start: datetime, end: datetime) -> int:
    # floor, so sub-minute drift never inflates the allotted time
    return int((end - start).total_seconds() // 60)
