"""
Booking slot builder.

Turns a validated booking request into one slot per requested date. Slot ids
are derived from the date and start time so that storing the same request
twice overwrites rather than duplicates.
"""

import calendar
import logging
from datetime import date
from typing import List, Optional, Sequence, Union

from .timeutils import InvalidTimeError, TimeValue, normalize_time, to_minutes
from .types import (
    MONTH_NAMES,
    WEEKDAY_NAMES,
    BookingResult,
    BookingSlot,
    CalendarUserRecord,
    ParsedBookingRequest,
)

logger = logging.getLogger(__name__)


def make_booking_id(on_date: Union[date, str], start_time: TimeValue) -> str:
    """
    Derive the storage id of a booking, e.g. `2025-12-10_09-00_UTC`.

    Raises:
        InvalidTimeError: If start_time is malformed
    """
    day = on_date if isinstance(on_date, str) else on_date.isoformat()
    return f"{day}_{normalize_time(start_time).replace(':', '-')}_UTC"


def weekday_number(name: str) -> Optional[int]:
    """Weekday number for a day name (0=Monday), or None if unknown."""
    try:
        return WEEKDAY_NAMES.index(name.strip().lower())
    except ValueError:
        return None


def month_name(month: int) -> str:
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return 'Unknown'


def dates_for_month(year: int, month: int, weekday_names: Sequence[str]) -> List[date]:
    """All dates in the month falling on one of the named weekdays."""
    weekdays = {n for n in (weekday_number(name) for name in weekday_names) if n is not None}
    if not weekdays or not 1 <= month <= 12:
        return []

    last_day = calendar.monthrange(year, month)[1]
    return [
        date(year, month, day)
        for day in range(1, last_day + 1)
        if date(year, month, day).weekday() in weekdays
    ]


def resolve_request_dates(request: ParsedBookingRequest) -> List[date]:
    """Dates a request asks for: its explicit day of month, else its weekdays."""
    if request.day_of_month is not None:
        try:
            return [date(request.year, request.month, request.day_of_month)]
        except ValueError:
            return []
    return dates_for_month(request.year, request.month, request.days_of_week)


def normalize_attendee_name(name: str, known_names: Sequence[str]) -> Optional[str]:
    """
    Resolve an attendee name against known user names.

    An exact (case-insensitive) match wins; otherwise the first known name
    that contains the input, or is contained in it.
    """
    wanted = name.strip().lower()
    if not wanted:
        return None

    for known in known_names:
        if known.lower() == wanted:
            return known

    for known in known_names:
        lowered = known.lower()
        if wanted in lowered or lowered in wanted:
            return known

    return None


def create_booking_slots(request: ParsedBookingRequest, users: Sequence[CalendarUserRecord]) -> BookingResult:
    """
    Build one booking slot per requested date for the resolved attendees.

    Args:
        request: Validated booking request
        users: Known calendar users the attendees are resolved against

    Returns:
        BookingResult; on failure no slots are produced. Attendees that do
        not resolve are listed in the message while the rest are booked.
    """
    errors = []
    resolved_users = []
    known_names = [user.name for user in users]

    for attendee in request.attendees:
        name = normalize_attendee_name(attendee, known_names)
        if name is None:
            errors.append(f'User "{attendee}" not found')
            continue
        user = next(u for u in users if u.name == name)
        if user not in resolved_users:
            resolved_users.append(user)

    if not resolved_users:
        return BookingResult.failure(
            f'No valid attendees found. Available users: {", ".join(known_names)}',
            errors,
        )

    if not request.days_of_week and request.day_of_month is None:
        return BookingResult.failure(
            'No days of week specified. Please specify days like Monday, Wednesday, etc.',
            errors,
        )

    try:
        start_time = normalize_time(request.start_time)
        end_time = normalize_time(request.end_time)
    except InvalidTimeError as exc:
        return BookingResult.failure(str(exc), errors)
    if to_minutes(start_time) >= to_minutes(end_time):
        return BookingResult.failure('Start time must be before end time', errors)

    dates = resolve_request_dates(request)
    if not dates:
        return BookingResult.failure(
            f'No dates found for the specified days in {month_name(request.month)} {request.year}',
            errors,
        )

    attendee_ids = [user.id for user in resolved_users]
    description = f'Booked for: {", ".join(user.name for user in resolved_users)}'
    slots = [
        BookingSlot(
            id=make_booking_id(on_date, start_time),
            user_id=attendee_ids[0],
            date=on_date,
            start_time=start_time,
            end_time=end_time,
            title=request.title,
            attendees=list(attendee_ids),
            description=description,
        )
        for on_date in dates
    ]

    if errors:
        message = f'Created {len(slots)} bookings. Note: {"; ".join(errors)}'
    else:
        message = f'Successfully created {len(slots)} bookings for {request.title}'

    logger.debug('Built %d slot(s) for %s', len(slots), request.title)
    return BookingResult(success=True, message=message, bookings=slots, errors=errors)
