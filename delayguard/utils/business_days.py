"""
Business-day arithmetic for delivery windows.

All calculations happen in UTC. Saturdays and Sundays are the only
non-business days; carrier holidays are not modelled.
"""

from datetime import datetime, time, timedelta, timezone


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day_utc(value: datetime) -> datetime:
    """Midnight UTC of the given instant's UTC date."""
    return datetime.combine(_as_utc(value).date(), time.min, tzinfo=timezone.utc)


def end_of_day_utc(value: datetime) -> datetime:
    """23:59:59.999 UTC of the given instant's UTC date."""
    return start_of_day_utc(value) + timedelta(days=1, milliseconds=-1)


def is_business_day(value: datetime) -> bool:
    return _as_utc(value).weekday() < 5


def next_business_day(value: datetime) -> datetime:
    """Start of the given day, rolled forward to Monday if it is a weekend."""
    current = start_of_day_utc(value)
    while not is_business_day(current):
        current += timedelta(days=1)
    return current


def add_business_days(start: datetime, business_days: int) -> datetime:
    """
    Add business days to a date.

    A weekend start is first moved to the following Monday without counting
    it, then each weekday after it counts as one business day.

    Args:
        start: Starting instant (only its UTC date is used)
        business_days: Non-negative number of business days

    Returns:
        Start of the resulting UTC day

    Raises:
        ValueError: If business_days is negative
    """
    if business_days < 0:
        raise ValueError("business_days must be non-negative")

    current = start_of_day_utc(start)
    if business_days == 0:
        return current

    current = next_business_day(current)
    remaining = business_days
    while remaining > 0:
        current += timedelta(days=1)
        if is_business_day(current):
            remaining -= 1

    return current


def calculate_expected_delivery_date(ship_date: datetime, business_days: int) -> datetime:
    return add_business_days(ship_date, business_days)


def calendar_days_between(start: datetime, end: datetime) -> int:
    """Whole UTC calendar days from start to end (negative if end is earlier)."""
    return (start_of_day_utc(end) - start_of_day_utc(start)).days


def delivery_deadline(expected: datetime, grace_hours: int = 8) -> datetime:
    """End of the expected delivery day plus the grace period."""
    return end_of_day_utc(expected) + timedelta(hours=grace_hours)


def is_past_deadline(expected: datetime, grace_hours: int, now: datetime) -> bool:
    return _as_utc(now) > delivery_deadline(expected, grace_hours)


def calculate_days_delayed(expected: datetime, now: datetime) -> int:
    return max(0, calendar_days_between(expected, now))
