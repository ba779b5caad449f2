"""
Worker matching for client booking requests.

A worker qualifies for a request only when every requested date passes the
per-date check: the worker works that weekday, the requested range sits
inside the day's window and nothing already booked overlaps it. Qualifying
workers are ranked by a score penalized by distance from the client.
"""

import enum
from datetime import date
from typing import Callable, Iterable, List, Optional, Sequence

from .availability import is_available, window_for
from .conflicts import has_conflict
from .timeutils import TimeValue, to_utc_date
from .types import ClientProfile, MatchedWorker, WorkerProfile

LocationDistance = Callable[[str, str], float]

MAX_SCORE = 100
MAX_DISTANCE_PENALTY = 20
DISTANCE_PENALTY_PER_UNIT = 2


class DateCheck(enum.Enum):
    AVAILABLE = 'available'
    UNAVAILABLE_DAY = 'unavailable_day'
    OUTSIDE_WINDOW = 'outside_window'
    BOOKING_CONFLICT = 'booking_conflict'


def character_overlap_distance(location_a: str, location_b: str) -> float:
    """
    Placeholder distance between two free-text locations.

    Counts how much of `location_a` is missing from `location_b` plus the
    difference in length. Identical strings (ignoring case) are 0 apart.
    This is a string heuristic, not a geographic distance.
    """
    a = (location_a or '').lower()
    b = (location_b or '').lower()
    if a == b:
        return 0

    shared = sum(1 for char in a if char in b)
    return abs(len(a) - len(b)) + (len(a) - shared)


def score_for_distance(distance: float) -> float:
    """100 minus a distance penalty capped at 20 points, floored at 0."""
    penalty = min(distance * DISTANCE_PENALTY_PER_UNIT, MAX_DISTANCE_PENALTY) if distance > 0 else 0
    return max(0, MAX_SCORE - penalty)


def check_worker_date(
    worker: WorkerProfile,
    on_date: date,
    start_time: TimeValue,
    end_time: TimeValue,
    *,
    include_date_bounded: bool = False
) -> DateCheck:
    """
    Decide whether one requested date is bookable with a worker.

    Args:
        worker: Worker record with availability and bookings
        on_date: Requested calendar date
        start_time: Requested start (HH:MM)
        end_time: Requested end (HH:MM)
        include_date_bounded: Also accept one-off availability windows

    Returns:
        DateCheck verdict; DateCheck.AVAILABLE when bookable
    """
    on_date = to_utc_date(on_date)
    weekday = on_date.weekday()

    if not is_available(worker, weekday, on_date=on_date, include_date_bounded=include_date_bounded):
        return DateCheck.UNAVAILABLE_DAY

    if not window_for(
        worker,
        weekday,
        start_time,
        end_time,
        on_date=on_date,
        include_date_bounded=include_date_bounded,
    ):
        return DateCheck.OUTSIDE_WINDOW

    if has_conflict(on_date, start_time, end_time, worker.bookings):
        return DateCheck.BOOKING_CONFLICT

    return DateCheck.AVAILABLE


def find_available_workers(
    client: ClientProfile,
    workers: Iterable[WorkerProfile],
    dates: Sequence[date],
    start_time: TimeValue,
    end_time: TimeValue,
    include_distance: bool = True,
    location_distance: LocationDistance = character_overlap_distance,
    include_date_bounded: bool = False
) -> List[MatchedWorker]:
    """
    Find every worker free on all requested dates, best first.

    Args:
        client: Client the booking is for
        workers: Candidate workers
        dates: Requested dates; a worker must be free on all of them
        start_time: Requested start (HH:MM)
        end_time: Requested end (HH:MM)
        include_distance: Penalize by distance from the client's location
        location_distance: Distance measure between two locations
        include_date_bounded: Also accept one-off availability windows

    Returns:
        New list of MatchedWorker sorted by score, highest first; workers
        with equal scores keep their input order

    Raises:
        InvalidTimeError: If start_time or end_time is malformed
    """
    matched = []

    for worker in workers:
        conflicts = sum(
            1 for on_date in dates
            if check_worker_date(
                worker,
                on_date,
                start_time,
                end_time,
                include_date_bounded=include_date_bounded,
            ) is not DateCheck.AVAILABLE
        )
        if conflicts:
            continue

        distance = location_distance(client.location, worker.location) if include_distance else 0
        matched.append(MatchedWorker(
            worker=worker,
            conflicts=conflicts,
            distance=distance,
            hourly_rate=worker.hourly_rate,
            score=score_for_distance(distance),
        ))

    return sorted(matched, key=lambda match: match.score, reverse=True)


def find_best_match(
    client: ClientProfile,
    workers: Iterable[WorkerProfile],
    dates: Sequence[date],
    start_time: TimeValue,
    end_time: TimeValue,
    location_distance: LocationDistance = character_overlap_distance,
    include_date_bounded: bool = False
) -> Optional[MatchedWorker]:
    """Top-ranked worker for the request, or None when nobody qualifies."""
    matches = find_available_workers(
        client,
        workers,
        dates,
        start_time,
        end_time,
        include_distance=True,
        location_distance=location_distance,
        include_date_bounded=include_date_bounded,
    )
    return matches[0] if matches else None


def is_worker_available_for_booking(
    worker: WorkerProfile,
    dates: Sequence[date],
    start_time: TimeValue,
    end_time: TimeValue,
    include_date_bounded: bool = False
) -> bool:
    """True if one specific worker is free on every requested date."""
    return all(
        check_worker_date(
            worker,
            on_date,
            start_time,
            end_time,
            include_date_bounded=include_date_bounded,
        ) is DateCheck.AVAILABLE
        for on_date in dates
    )
