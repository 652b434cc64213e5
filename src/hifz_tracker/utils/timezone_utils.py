"""
Shared timezone utility functions.

The tracker reasons in calendar days (a verse is "due today", a streak counts
consecutive days), so "today" must always be taken in the learner's configured
timezone rather than the server clock's.
"""

from datetime import date, datetime, time
import pytz

from hifz_tracker.config.config import TIMEZONE


def get_now_in_timezone(timezone: str = None) -> datetime:
    """
    Get current datetime in the specified timezone.

    Args:
        timezone: IANA timezone string, defaults to HIFZ_TIMEZONE

    Returns:
        Current datetime in the specified timezone (timezone-aware)
    """
    tz = pytz.timezone(timezone or TIMEZONE)
    return datetime.now(tz)


def get_today_in_timezone(timezone: str = None) -> date:
    """
    Get today's date in the specified timezone.

    Example:
        >>> get_today_in_timezone('Asia/Kuala_Lumpur')  # 8 hours ahead of UTC
        datetime.date(2025, 3, 2)  # already tomorrow after 4 PM UTC
    """
    return get_now_in_timezone(timezone).date()


def localize(value: datetime, timezone: str = None) -> datetime:
    """
    Make a datetime timezone-aware.

    Naive datetimes are interpreted as wall-clock time in `timezone`;
    aware ones are converted to it.
    """
    tz = pytz.timezone(timezone or TIMEZONE)
    if value.tzinfo is None:
        return tz.localize(value)
    return value.astimezone(tz)


def midnight_in_zone_of(day: date, reference: datetime) -> datetime:
    """
    Midnight of `day` in the same zone as `reference`.

    Naive when reference is naive, so the result can always be subtracted from it.
    """
    midnight = datetime.combine(day, time.min)
    tz = reference.tzinfo
    if tz is None:
        return midnight
    if hasattr(tz, 'localize'):
        # pytz zones need localize() to pick the right offset
        return tz.localize(midnight)
    return midnight.replace(tzinfo=tz)


def as_aware(value: datetime, timezone: str = None) -> datetime:
    """
    Attach the configured zone to a naive datetime.

    Aware datetimes are returned unchanged, so the calendar day the caller
    saw is kept. Every timestamp the services store or compare goes through
    here: naive and aware values cannot be compared.
    """
    if value.tzinfo is not None:
        return value
    return pytz.timezone(timezone or TIMEZONE).localize(value)


def aware_or_now(value: datetime = None, timezone: str = None) -> datetime:
    """`value` made timezone-aware, or the current time when it is None."""
    if value is None:
        return get_now_in_timezone(timezone)
    return as_aware(value, timezone)
