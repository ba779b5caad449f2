"""Browsing helpers over the worker directory and a worker's day."""

from datetime import date
from typing import Iterable, List, Optional, Tuple

from .availability import window_entry
from .timeutils import date_key, format_minutes, to_minutes, to_utc_date
from .types import BookingRecord, WorkerProfile, WorkerSearchFilters


def search_workers(workers: Iterable[WorkerProfile], filters: WorkerSearchFilters) -> List[WorkerProfile]:
    """
    Filter and sort workers for the directory view.

    Args:
        workers: Workers to search
        filters: Keyword, rate, location, specialty and weekday filters

    Returns:
        New list of matching workers, sorted by rate or name when asked
    """
    results = list(workers)

    if filters.keyword:
        keyword = filters.keyword.lower()
        results = [
            w for w in results
            if keyword in w.full_name.lower()
            or keyword in w.location.lower()
            or keyword in ' '.join(w.specialties).lower()
        ]

    if filters.min_rate is not None:
        results = [w for w in results if w.hourly_rate >= filters.min_rate]
    if filters.max_rate is not None:
        results = [w for w in results if w.hourly_rate <= filters.max_rate]

    if filters.location:
        location = filters.location.lower()
        results = [w for w in results if location in w.location.lower()]

    if filters.specialty:
        specialty = filters.specialty.lower()
        results = [w for w in results if any(specialty in s.lower() for s in w.specialties)]

    if filters.available_weekdays:
        wanted = set(filters.available_weekdays)
        results = [w for w in results if wanted.intersection(a.weekday for a in w.availability)]

    if filters.sort_by == 'rate':
        results.sort(key=lambda w: w.hourly_rate)
    elif filters.sort_by == 'name':
        results.sort(key=lambda w: w.full_name.lower())

    return results


def worker_window_for_date(worker: WorkerProfile, on_date: date) -> Optional[Tuple[str, str]]:
    """The (start, end) of the worker's first window on that date's weekday."""
    entry = window_entry(worker, to_utc_date(on_date).weekday())
    if entry is None:
        return None
    return entry.start_time, entry.end_time


def bookings_on_date(worker: WorkerProfile, on_date: date) -> List[BookingRecord]:
    key = date_key(on_date)
    return [b for b in worker.bookings if date_key(b.date) == key]


def available_time_windows(worker: WorkerProfile, on_date: date) -> List[Tuple[str, str]]:
    """
    Free (start, end) gaps on a date between the worker's bookings.

    Gaps are cut from the first availability window for the weekday.
    """
    window = worker_window_for_date(worker, on_date)
    if window is None:
        return []

    cursor, window_end = to_minutes(window[0]), to_minutes(window[1])
    bookings = sorted(bookings_on_date(worker, on_date), key=lambda b: to_minutes(b.start_time))

    windows = []
    for booking in bookings:
        start, end = to_minutes(booking.start_time), to_minutes(booking.end_time)
        if start >= window_end:
            break
        if cursor < start:
            windows.append((format_minutes(cursor), format_minutes(start)))
        cursor = max(cursor, end)

    if cursor < window_end:
        windows.append((format_minutes(cursor), format_minutes(window_end)))

    return windows
