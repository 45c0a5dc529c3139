"""
Date helpers for the front desk board.

Stored timestamps are naive UTC; the board's notion of "a day" is always
local to an explicit clinic timezone.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from .clock import Clock

END_OF_DAY = time(23, 59, 59, 999000)


def get_timezone(name: str):
    """Look up a timezone by IANA name

    Raises:
        ValueError: If the zone is unknown
    """
    try:
        return pytz.timezone(name)
    except pytz.exceptions.UnknownTimeZoneError:
        raise ValueError(f"Unknown timezone: {name}")


def calculate_age(date_of_birth: date, today: date) -> int:
    """Whole years between ``date_of_birth`` and ``today``"""
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def local_today(clock: Clock, tz) -> date:
    """Current calendar date in ``tz``"""
    return pytz.utc.localize(clock.now()).astimezone(tz).date()


def resolve_board_date(value: Optional[str], tz, clock: Clock) -> date:
    """
    Parse the board's ``date`` parameter.

    Accepts ``YYYY-MM-DD`` or a full ISO timestamp. A timestamp with an offset
    is converted to ``tz`` before its date is taken; a naive one is read as
    already local. Falls back to today in ``tz`` when empty.

    Raises:
        ValueError: If the value is not an ISO date
    """
    if not value:
        return local_today(clock, tz)
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")
    if parsed.tzinfo is not None:
        return parsed.astimezone(tz).date()
    return parsed.date()


def day_window(day: date, tz) -> tuple[datetime, datetime]:
    """
    Inclusive ``[00:00:00.000, 23:59:59.999]`` bounds of ``day`` in ``tz``,
    returned as naive UTC for querying stored timestamps.
    """
    start_local = tz.localize(datetime.combine(day, time.min))
    end_local = tz.localize(datetime.combine(day, END_OF_DAY))
    return (
        start_local.astimezone(pytz.utc).replace(tzinfo=None),
        end_local.astimezone(pytz.utc).replace(tzinfo=None),
    )


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Tag a stored naive timestamp as UTC"""
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(pytz.utc)
    return pytz.utc.localize(value)


def to_utc_naive(value: datetime, tz) -> datetime:
    """Normalise an incoming timestamp for storage; naive input is read as local to ``tz``"""
    if value.tzinfo is None:
        value = tz.localize(value)
    return value.astimezone(pytz.utc).replace(tzinfo=None)


def minutes_after(start: datetime, minutes: int) -> datetime:
    return start + timedelta(minutes=minutes)
