"""Conflict checks between a candidate time range and existing bookings."""

from datetime import date
from typing import Iterable, List, Union

from .timeutils import TimeValue, date_key, overlaps, to_minutes
from .types import BookingRecord, BookingSlot


def has_conflict(
    on_date: Union[date, str],
    start_time: TimeValue,
    end_time: TimeValue,
    existing_bookings: Iterable[BookingRecord]
) -> bool:
    """
    Check whether a candidate range overlaps any booking on the same date.

    Args:
        on_date: Candidate calendar date
        start_time: Candidate start (HH:MM)
        end_time: Candidate end (HH:MM)
        existing_bookings: Bookings already held by the worker

    Returns:
        True if any booking on that UTC date overlaps the candidate
    """
    key = date_key(on_date)
    start, end = to_minutes(start_time), to_minutes(end_time)

    for booking in existing_bookings:
        if date_key(booking.date) != key:
            continue
        if overlaps(start, end, to_minutes(booking.start_time), to_minutes(booking.end_time)):
            return True
    return False


def find_conflicts(new_slot: BookingSlot, existing_slots: Iterable[BookingSlot]) -> List[BookingSlot]:
    """Slots sharing an attendee with new_slot that overlap it on the same date."""
    key = date_key(new_slot.date)
    start, end = to_minutes(new_slot.start_time), to_minutes(new_slot.end_time)
    attendees = set(new_slot.attendees)

    return [
        slot for slot in existing_slots
        if attendees.intersection(slot.attendees)
        and date_key(slot.date) == key
        and overlaps(start, end, to_minutes(slot.start_time), to_minutes(slot.end_time))
    ]
