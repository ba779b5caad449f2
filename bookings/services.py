"""
Service layer for booking business logic.

Services load plain records through a BookingRepository, run the matching
core over them and write results back. Request-level failures come back as
BookingResult / MatchResult values; illegal status changes raise ValueError.
"""

import logging
import random
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from .matching import DateCheck, check_worker_date, find_available_workers
from .models import Availability, Booking, CalendarUser, Client, PSWWorker
from .parser import BookingParser, ParserError
from .repository import BookingRepository, SlotTakenError
from .search import available_time_windows, search_workers
from .slots import (
    create_booking_slots,
    make_booking_id,
    month_name,
    resolve_request_dates,
    weekday_number,
)
from .timeutils import normalize_time, to_minutes, to_utc_date
from .types import (
    DEFAULT_END_TIME,
    DEFAULT_START_TIME,
    FAILURE_CONFLICT,
    FAILURE_INVALID,
    FAILURE_NO_MATCH,
    FAILURE_NOT_FOUND,
    FAILURE_UNAVAILABLE,
    BookingResult,
    BookingSlot,
    MatchResult,
    ParsedBookingRequest,
    WorkerProfile,
    WorkerSearchFilters,
)

logger = logging.getLogger(__name__)


def include_date_bounded() -> bool:
    """Whether one-off availability windows take part in matching."""
    return bool(getattr(settings, 'BOOKINGS_INCLUDE_DATE_BOUNDED', False))


def parse_booking_request(
    text: str,
    parser: Optional[BookingParser] = None
) -> Tuple[Optional[ParsedBookingRequest], List[ParserError]]:
    """
    Turn free text into a structured booking request.

    Args:
        text: Natural-language booking request
        parser: Parser to use (defaults to one configured from settings)

    Returns:
        Tuple of (ParsedBookingRequest or None, parser errors)
    """
    parser = parser or BookingParser()
    return parser.parse(text)


def match_workers(
    client_id,
    dates: Sequence,
    start_time: str,
    end_time: str,
    find_best: bool = False,
    repository: Optional[BookingRepository] = None
) -> MatchResult:
    """
    Find workers free for a client on every requested date.

    Args:
        client_id: Client the booking is for
        dates: Requested dates (date objects or ISO strings)
        start_time: Requested start (HH:MM)
        end_time: Requested end (HH:MM)
        find_best: Return only the top match
        repository: Data source (defaults to a new BookingRepository)

    Returns:
        MatchResult with all matches, or the best match when find_best
    """
    repository = repository or BookingRepository()

    try:
        requested_dates = [to_utc_date(d) for d in dates]
        start_time, end_time = normalize_time(start_time), normalize_time(end_time)
    except ValueError as exc:
        return MatchResult(success=False, message=str(exc), code=FAILURE_INVALID)
    if not requested_dates:
        return MatchResult(success=False, message='No dates requested', code=FAILURE_INVALID)
    if to_minutes(start_time) >= to_minutes(end_time):
        return MatchResult(success=False, message='Start time must be before end time', code=FAILURE_INVALID)

    client = repository.get_client(client_id)
    if client is None:
        return MatchResult(success=False, message='Client not found', code=FAILURE_NOT_FOUND)

    matches = find_available_workers(
        client,
        repository.list_workers(),
        requested_dates,
        start_time,
        end_time,
        include_date_bounded=include_date_bounded(),
    )
    logger.info('Matched %d worker(s) for client %s', len(matches), client.id)

    if not matches:
        return MatchResult(success=False, message='No available workers found', code=FAILURE_NO_MATCH)

    if find_best:
        best = matches[0]
        return MatchResult(
            success=True,
            message=f'Found best match: {best.worker.full_name}',
            best_match=best,
        )

    return MatchResult(
        success=True,
        message=f'Found {len(matches)} available workers',
        matches=matches,
    )


def resolve_booking_date(request: ParsedBookingRequest) -> date:
    """
    Pick the single date a named-worker booking is for.

    An explicit day of month wins; otherwise the first date in the month
    falling on the first named weekday; otherwise the first of the month.

    Raises:
        ValueError: If an explicit day does not exist in the month
    """
    if request.day_of_month is not None:
        dates = resolve_request_dates(request)
        if not dates:
            raise ValueError(
                f'day {request.day_of_month} does not exist in '
                f'{month_name(request.month)} {request.year}'
            )
        return dates[0]

    if request.days_of_week:
        target = weekday_number(request.days_of_week[0])
        for day in range(1, 8):
            candidate = date(request.year, request.month, day)
            if candidate.weekday() == target:
                return candidate

    return date(request.year, request.month, 1)


def book_with_worker(
    text: str,
    client_id,
    parser: Optional[BookingParser] = None,
    repository: Optional[BookingRepository] = None
) -> BookingResult:
    """
    Book a named worker for a client from a natural-language request.

    The first attendee in the request names the worker.

    Args:
        text: Booking request, e.g. "book Barbara Johnson 9am-12pm on monday"
        client_id: Client making the booking
        parser: Parser to use (defaults to one configured from settings)
        repository: Data source (defaults to a new BookingRepository)

    Returns:
        BookingResult holding the stored Booking on success
    """
    repository = repository or BookingRepository()

    parsed, parse_errors = parse_booking_request(text, parser)
    errors = [f'{e.provider}: {e.message}' for e in parse_errors]
    if parsed is None:
        return BookingResult.failure('Failed to parse booking request', errors)

    client = repository.get_client(client_id)
    if client is None:
        return BookingResult.failure('Client not found', errors, code=FAILURE_NOT_FOUND)

    if not parsed.attendees:
        return BookingResult.failure('No worker name found in booking request', errors)

    worker_name = parsed.attendees[0]
    worker = repository.find_worker_by_name(worker_name)
    if worker is None:
        return BookingResult.failure(
            f'PSW worker "{worker_name}" not found in database',
            errors,
            code=FAILURE_NOT_FOUND,
        )

    try:
        booking_date = resolve_booking_date(parsed)
    except ValueError as exc:
        return BookingResult.failure(f'Could not determine booking date: {exc}', errors)

    start_time = parsed.start_time or DEFAULT_START_TIME
    end_time = parsed.end_time or DEFAULT_END_TIME

    return place_worker_booking(
        worker,
        client,
        booking_date,
        start_time,
        end_time,
        repository=repository,
        errors=errors,
    )


def place_worker_booking(
    worker: WorkerProfile,
    client,
    booking_date: date,
    start_time: str,
    end_time: str,
    repository: Optional[BookingRepository] = None,
    errors: Optional[List[str]] = None
) -> BookingResult:
    """
    Validate one worker for one date and store the booking.

    Returns:
        BookingResult with the stored Booking, or a failure naming why the
        worker cannot take the slot
    """
    repository = repository or BookingRepository()
    errors = errors or []

    verdict = check_worker_date(
        worker,
        booking_date,
        start_time,
        end_time,
        include_date_bounded=include_date_bounded(),
    )
    if verdict is DateCheck.UNAVAILABLE_DAY:
        return BookingResult.failure(
            f'{worker.full_name} is not available on {booking_date.strftime("%A")}',
            errors,
            code=FAILURE_UNAVAILABLE,
        )
    if verdict is DateCheck.OUTSIDE_WINDOW:
        return BookingResult.failure(
            f'{worker.full_name} is not available between {start_time} and {end_time} '
            f'on {booking_date.strftime("%A")}',
            errors,
            code=FAILURE_UNAVAILABLE,
        )
    if verdict is DateCheck.BOOKING_CONFLICT:
        return BookingResult.failure(
            f'{worker.full_name} has a conflict at that time',
            errors,
            code=FAILURE_CONFLICT,
        )

    booking_id = make_booking_id(booking_date, start_time)
    try:
        booking = repository.upsert_worker_booking(
            booking_id,
            worker,
            client,
            booking_date,
            start_time,
            end_time,
        )
    except SlotTakenError as exc:
        logger.warning('Refused booking %s: %s', booking_id, exc)
        return BookingResult.failure(str(exc), errors, code=FAILURE_CONFLICT)
    except ValidationError as exc:
        logger.warning('Rejected booking %s: %s', booking_id, exc.messages)
        return BookingResult.failure('Invalid booking: ' + '; '.join(exc.messages), errors)

    return BookingResult(
        success=True,
        message=f'Booking confirmed with {worker.full_name}',
        bookings=[booking],
        errors=errors,
    )


def create_bookings_from_request(
    request: ParsedBookingRequest,
    repository: Optional[BookingRepository] = None
) -> BookingResult:
    """
    Build generic slots for a parsed request and store them.

    Args:
        request: Validated booking request naming calendar users
        repository: Data source (defaults to a new BookingRepository)

    Returns:
        BookingResult holding the stored Booking rows on success
    """
    repository = repository or BookingRepository()

    result = create_booking_slots(request, repository.list_users())
    if not result.success:
        return result

    try:
        stored = repository.upsert_slots(result.bookings)
    except SlotTakenError as exc:
        return BookingResult.failure(str(exc), result.errors, code=FAILURE_CONFLICT)
    except ValidationError as exc:
        return BookingResult.failure('Invalid booking: ' + '; '.join(exc.messages), result.errors)

    result.bookings = stored
    return result


def save_slots(slots: Iterable[BookingSlot], repository: Optional[BookingRepository] = None) -> List[Booking]:
    """
    Upsert already built slots.

    Raises:
        SlotTakenError: If an id is held by a worker booking
    """
    repository = repository or BookingRepository()
    return repository.upsert_slots(slots)


def search_worker_directory(
    filters: WorkerSearchFilters,
    repository: Optional[BookingRepository] = None
) -> List[WorkerProfile]:
    repository = repository or BookingRepository()
    return search_workers(repository.list_workers(), filters)


def worker_time_windows(
    worker_id,
    on_date: date,
    repository: Optional[BookingRepository] = None
) -> Optional[List[Tuple[str, str]]]:
    """Free (start, end) windows left for a worker on a date, or None if no such worker."""
    repository = repository or BookingRepository()
    worker = repository.get_worker(worker_id)
    if worker is None:
        return None
    return available_time_windows(worker, on_date)


def upsert_users(users: Iterable[dict], repository: Optional[BookingRepository] = None) -> List[CalendarUser]:
    """
    Merge calendar users into the directory.

    Entries with a known id update only the fields they carry; the rest are
    created.
    """
    repository = repository or BookingRepository()
    return repository.upsert_users(users)


@transaction.atomic
def confirm_booking(booking: Booking) -> Booking:
    """
    Confirm a pending booking.

    Raises:
        ValueError: If the booking is not pending
    """
    if booking.status != 'pending':
        raise ValueError(f"Only pending bookings can be confirmed (status is {booking.status})")

    booking.status = 'confirmed'
    booking.save()
    return booking


@transaction.atomic
def cancel_booking(booking: Booking) -> Booking:
    """
    Cancel a booking.

    Raises:
        ValueError: If booking is already cancelled or completed
    """
    if booking.status == 'cancelled':
        raise ValueError("Booking is already cancelled")

    if booking.status == 'completed':
        raise ValueError("Cannot cancel a completed booking")

    booking.status = 'cancelled'
    booking.save()
    logger.info('Cancelled booking %s', booking.pk)
    return booking


@transaction.atomic
def complete_booking(booking: Booking) -> Booking:
    """
    Mark a booking as completed.

    Raises:
        ValueError: If booking is already completed or cancelled
    """
    if booking.status == 'completed':
        raise ValueError("Booking is already completed")

    if booking.status == 'cancelled':
        raise ValueError("Cannot complete a cancelled booking")

    booking.status = 'completed'
    booking.save()
    return booking


SAMPLE_LOCATIONS = [
    '123 Main St, Toronto, ON',
    '456 Oak Ave, Ottawa, ON',
    '789 Elm St, Hamilton, ON',
    '321 Maple Dr, London, ON',
    '654 Pine Rd, Mississauga, ON',
    '987 Cedar Ln, Brampton, ON',
    '111 Birch Way, Markham, ON',
    '222 Ash Ct, Windsor, ON',
    '333 Hickory Pl, Kitchener, ON',
    '444 Walnut St, Waterloo, ON',
    '555 Queen St, Burlington, ON',
    '666 King St, Oshawa, ON',
    '777 Yonge St, Barrie, ON',
    '888 Bay St, Thunder Bay, ON',
    '999 Front St, Sudbury, ON',
]

SAMPLE_FIRST_NAMES = [
    'John', 'Michael', 'Robert', 'James', 'David', 'Richard', 'Joseph', 'Thomas', 'Charles', 'Christopher',
    'Mary', 'Patricia', 'Jennifer', 'Linda', 'Barbara', 'Susan', 'Jessica', 'Sarah', 'Karen', 'Nancy',
]

SAMPLE_LAST_NAMES = [
    'Smith', 'Johnson', 'Williams', 'Brown', 'Jones', 'Garcia', 'Miller', 'Davis', 'Rodriguez', 'Martinez',
    'Hernandez', 'Lopez', 'Gonzalez', 'Wilson', 'Anderson', 'Thomas', 'Taylor', 'Moore', 'Jackson', 'Martin',
]

SPECIALTIES = [
    'elderly care',
    'mobility assist',
    'personal hygiene',
    'medication management',
    'companionship',
    'meal preparation',
    'light housekeeping',
    'dementia care',
]


def _sample_person(rng: random.Random, index: int, role: str) -> dict:
    first_name = rng.choice(SAMPLE_FIRST_NAMES)
    last_name = rng.choice(SAMPLE_LAST_NAMES)
    return {
        'first_name': first_name,
        'last_name': last_name,
        'location': rng.choice(SAMPLE_LOCATIONS),
        'email': f'{first_name.lower()}.{last_name.lower()}.{role}.{index}@example.com',
        'phone': f'+1{rng.randint(2000000000, 9999999999)}',
    }


@transaction.atomic
def seed_sample_data(
    clients: int = 50,
    workers: int = 30,
    seed: Optional[int] = None,
    clear: bool = True
) -> Tuple[int, int]:
    """
    Populate the database with sample clients and workers.

    Each worker gets 3-5 weekday windows from 08:00 to 17:00.

    Args:
        clients: Number of clients to create
        workers: Number of workers to create
        seed: Random seed for reproducible data
        clear: Delete existing clients and workers first

    Returns:
        Tuple of (clients created, workers created)
    """
    rng = random.Random(seed)

    if clear:
        Client.objects.all().delete()
        PSWWorker.objects.all().delete()

    for index in range(1, clients + 1):
        Client.objects.create(age=rng.randint(18, 85), **_sample_person(rng, index, 'client'))

    for index in range(1, workers + 1):
        worker = PSWWorker.objects.create(
            age=rng.randint(22, 65),
            specialties=[rng.choice(SPECIALTIES), rng.choice(SPECIALTIES)],
            hourly_rate=rng.randint(15, 35),
            **_sample_person(rng, index, 'psw')
        )
        for weekday in sorted(rng.sample(range(5), rng.randint(3, 5))):
            Availability.objects.create(
                worker=worker,
                weekday=weekday,
                start_time='08:00',
                end_time='17:00',
                is_recurring=True,
            )

    logger.info('Seeded %d clients and %d PSW workers', clients, workers)
    return clients, workers
