"""
Time and date helpers shared by the matching core.

Times are compared as integer minutes since midnight. The `HH:MM` text form
only appears at the edges (parser output, API payloads, booking ids).
"""

from datetime import date, datetime, time, timezone
from typing import Union

MINUTES_PER_DAY = 24 * 60

TimeValue = Union[str, time]


class InvalidTimeError(ValueError):
    """Raised for a time that is not a valid 24-hour `HH:MM` value."""


def to_minutes(value: TimeValue) -> int:
    """
    Convert a time of day to minutes since midnight.

    Args:
        value: `HH:MM` string (one or two hour digits) or datetime.time

    Returns:
        Minutes since midnight

    Raises:
        InvalidTimeError: If the value is malformed or out of range
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    text = str(value).strip()
    if ':' not in text:
        raise InvalidTimeError(f'Invalid time "{value}": expected HH:MM')

    hours_part, minutes_part = text.split(':', 1)
    if not (hours_part.isdigit() and minutes_part.isdigit()):
        raise InvalidTimeError(f'Invalid time "{value}": expected HH:MM')
    if len(hours_part) > 2 or len(minutes_part) != 2:
        raise InvalidTimeError(f'Invalid time "{value}": expected HH:MM')

    hours, minutes = int(hours_part), int(minutes_part)
    if hours > 23 or minutes > 59:
        raise InvalidTimeError(f'Invalid time "{value}": out of range')
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as zero-padded `HH:MM`."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InvalidTimeError(f'Minutes out of range: {minutes}')
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def normalize_time(value: TimeValue) -> str:
    """Return the canonical zero-padded `HH:MM` form of a time."""
    return format_minutes(to_minutes(value))


def to_time(value: TimeValue) -> time:
    minutes = to_minutes(value)
    return time(minutes // 60, minutes % 60)


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """True if the half-open intervals [a_start, a_end) and [b_start, b_end) intersect."""
    return a_start < b_end and a_end > b_start


def time_ranges_overlap(a_start: TimeValue, a_end: TimeValue, b_start: TimeValue, b_end: TimeValue) -> bool:
    return overlaps(to_minutes(a_start), to_minutes(a_end), to_minutes(b_start), to_minutes(b_end))


def to_utc_date(value: Union[date, datetime, str]) -> date:
    """
    Resolve a calendar date in UTC.

    Aware datetimes are converted to UTC first; naive datetimes are taken as
    UTC already. Strings are parsed as ISO dates or datetimes.
    """
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        value = datetime.fromisoformat(text.replace('Z', '+00:00'))

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()

    return value


def date_key(value: Union[date, datetime, str]) -> str:
    """UTC `YYYY-MM-DD` key used for every same-day comparison."""
    return to_utc_date(value).isoformat()
