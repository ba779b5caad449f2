"""
Availability index over a worker's weekly windows.

Only recurring windows take part in matching. Date-bounded (one-off) windows
are considered when `include_date_bounded` is switched on and the date in
question lies inside their range.
"""

from datetime import date
from typing import Optional

from .timeutils import TimeValue, to_minutes
from .types import WorkerAvailability, WorkerProfile


def _counts_on(entry: WorkerAvailability, on_date: Optional[date], include_date_bounded: bool) -> bool:
    """Whether an entry is eligible for matching on the given date."""
    if entry.is_recurring:
        return True
    if not include_date_bounded or on_date is None or entry.date_range is None:
        return False
    return entry.date_range.contains(on_date)


def is_available(
    worker: WorkerProfile,
    weekday: int,
    *,
    on_date: Optional[date] = None,
    include_date_bounded: bool = False
) -> bool:
    """
    Check whether a worker nominally works on a weekday.

    Args:
        worker: Worker record with availability windows
        weekday: Day of week (0=Monday, 6=Sunday)
        on_date: Concrete date, needed only for date-bounded windows
        include_date_bounded: Also accept one-off windows covering on_date

    Returns:
        True if at least one eligible window falls on that weekday
    """
    return any(
        entry.weekday == weekday and _counts_on(entry, on_date, include_date_bounded)
        for entry in worker.availability
    )


def window_entry(
    worker: WorkerProfile,
    weekday: int,
    *,
    on_date: Optional[date] = None,
    include_date_bounded: bool = False
) -> Optional[WorkerAvailability]:
    """
    Return the first availability window stored for a weekday.

    With the date-bounded capability off, the first entry for the weekday is
    returned as stored. With it on, the first entry that counts on `on_date`.
    """
    for entry in worker.availability:
        if entry.weekday != weekday:
            continue
        if include_date_bounded and not _counts_on(entry, on_date, include_date_bounded):
            continue
        return entry
    return None


def window_for(
    worker: WorkerProfile,
    weekday: int,
    request_start: TimeValue,
    request_end: TimeValue,
    *,
    on_date: Optional[date] = None,
    include_date_bounded: bool = False
) -> bool:
    """
    Check the requested interval lies inside the weekday's window.

    Only the first window found for the weekday is checked; several windows
    on one day are not merged.
    """
    entry = window_entry(
        worker,
        weekday,
        on_date=on_date,
        include_date_bounded=include_date_bounded,
    )
    if entry is None:
        return False

    return (
        to_minutes(request_start) >= to_minutes(entry.start_time)
        and to_minutes(request_end) <= to_minutes(entry.end_time)
    )
