"""
Data types and constants for the PSW booking system.

This module contains:
- Plain records the matching core operates on (no ORM objects past this line)
- DTOs for service layer operations and their outcomes
- Constants used across the application
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from .timeutils import InvalidTimeError, normalize_time, to_minutes


WEEKDAY_NAMES = [
    'monday',
    'tuesday',
    'wednesday',
    'thursday',
    'friday',
    'saturday',
    'sunday',
]

MONTH_NAMES = [
    'January',
    'February',
    'March',
    'April',
    'May',
    'June',
    'July',
    'August',
    'September',
    'October',
    'November',
    'December',
]

BOOKING_STATUSES = ['pending', 'confirmed', 'completed', 'cancelled']

KIND_WORKER_BOOKING = 'worker-booking'
KIND_CLIENT_BOOKING = 'client-booking'
KIND_GENERIC_SLOT = 'generic-slot'

DEFAULT_TITLE = 'Team Meeting'
TITLE_MAX_LENGTH = 200
DEFAULT_START_TIME = '09:00'
DEFAULT_END_TIME = '10:00'

FAILURE_INVALID = 'invalid'
FAILURE_NOT_FOUND = 'not_found'
FAILURE_UNAVAILABLE = 'unavailable'
FAILURE_CONFLICT = 'conflict'
FAILURE_NO_MATCH = 'no_match'


class BookingRequestError(ValueError):
    """Raised when a parsed booking request is structurally invalid."""

    def __init__(self, problems: List[str]):
        self.problems = problems
        super().__init__('; '.join(problems))


@dataclass(frozen=True)
class DateRange:
    """Inclusive date bounds of a one-off availability window."""
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class WorkerAvailability:
    """One availability window; weekday uses 0=Monday .. 6=Sunday."""
    weekday: int
    start_time: str
    end_time: str
    is_recurring: bool = True
    date_range: Optional[DateRange] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class BookingRecord:
    """
    One side's denormalized copy of a booking.

    Worker-side copies (kind='worker-booking') name the client as the
    counterparty; client-side copies (kind='client-booking') name the worker.
    """
    id: str
    counterparty_id: Optional[str]
    counterparty_name: str
    date: date
    start_time: str
    end_time: str
    status: str = 'confirmed'
    created_at: Optional[datetime] = None
    kind: str = KIND_WORKER_BOOKING


@dataclass(frozen=True)
class BookingSlot:
    """A generic calendar slot shared by one or more calendar users."""
    id: str
    user_id: Optional[str]
    date: date
    start_time: str
    end_time: str
    title: str
    attendees: List[str] = field(default_factory=list)
    description: str = ''
    kind: str = KIND_GENERIC_SLOT


@dataclass(frozen=True)
class WorkerProfile:
    id: str
    first_name: str
    last_name: str
    location: str = ''
    hourly_rate: float = 0
    specialties: List[str] = field(default_factory=list)
    availability: List[WorkerAvailability] = field(default_factory=list)
    bookings: List[BookingRecord] = field(default_factory=list)
    email: str = ''
    phone: str = ''
    age: Optional[int] = None

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'.strip()


@dataclass(frozen=True)
class ClientProfile:
    id: str
    first_name: str
    last_name: str
    location: str = ''
    bookings: List[BookingRecord] = field(default_factory=list)
    email: str = ''
    phone: str = ''
    age: Optional[int] = None

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'.strip()


@dataclass(frozen=True)
class CalendarUserRecord:
    id: str
    name: str
    email: str = ''


@dataclass(frozen=True)
class MatchedWorker:
    """Ranking result for one qualifying worker; never persisted."""
    worker: WorkerProfile
    conflicts: int
    distance: float
    hourly_rate: float
    score: float


@dataclass
class ParsedBookingRequest:
    """
    Structured booking request handed over by the language-model parser.

    Either `days_of_week` (weekday names) or `day_of_month` selects the dates.
    """
    attendees: List[str]
    days_of_week: List[str]
    start_time: str
    end_time: str
    month: int
    year: int
    title: str = DEFAULT_TITLE
    day_of_month: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Any, today: Optional[date] = None) -> 'ParsedBookingRequest':
        """
        Validate untrusted parser output and build a request.

        Args:
            payload: Decoded JSON object from the parser
            today: Reference date for missing month/year (defaults to UTC today)

        Returns:
            ParsedBookingRequest with normalized fields

        Raises:
            BookingRequestError: Listing every structural problem found
        """
        if not isinstance(payload, dict):
            raise BookingRequestError(['Parsed request must be a JSON object'])

        today = today or datetime.now(timezone.utc).date()
        problems = []

        attendees = _string_list(payload.get('attendees'), 'attendees', problems)
        days_of_week = _string_list(payload.get('daysOfWeek'), 'daysOfWeek', problems)
        unknown_days = [d for d in days_of_week if d not in WEEKDAY_NAMES]
        if unknown_days:
            problems.append(f'Unknown day names: {", ".join(unknown_days)}')

        times = {}
        for key, default in (('startTime', DEFAULT_START_TIME), ('endTime', DEFAULT_END_TIME)):
            value = payload.get(key) or default
            try:
                times[key] = normalize_time(str(value))
            except InvalidTimeError as exc:
                problems.append(f'{key}: {exc}')
        if len(times) == 2 and to_minutes(times['startTime']) >= to_minutes(times['endTime']):
            problems.append('startTime must be before endTime')

        month = _optional_int(payload.get('month'), 'month', problems)
        if month is None:
            month = today.month
        if not 1 <= month <= 12:
            problems.append('month must be between 1 and 12')
        year = _optional_int(payload.get('year'), 'year', problems)
        if year is None:
            year = today.year
        if not 1000 <= year <= 9999:
            problems.append('year must have four digits')

        day_of_month = _optional_int(payload.get('day'), 'day', problems)

        title = payload.get('title')
        if title is not None and not isinstance(title, str):
            problems.append('title must be a string')
            title = None
        elif title is not None and len(title.strip()) > TITLE_MAX_LENGTH:
            problems.append(f'title must be at most {TITLE_MAX_LENGTH} characters')

        if problems:
            raise BookingRequestError(problems)

        return cls(
            attendees=attendees,
            days_of_week=days_of_week,
            start_time=times['startTime'],
            end_time=times['endTime'],
            month=month,
            year=year,
            title=(title or '').strip() or DEFAULT_TITLE,
            day_of_month=day_of_month,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            'attendees': self.attendees,
            'daysOfWeek': self.days_of_week,
            'startTime': self.start_time,
            'endTime': self.end_time,
            'month': self.month,
            'year': self.year,
            'title': self.title,
        }
        if self.day_of_month is not None:
            payload['day'] = self.day_of_month
        return payload


@dataclass
class BookingResult:
    """Success/failure outcome of building or placing bookings."""
    success: bool
    message: str
    bookings: List[Any] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    code: str = ''

    @classmethod
    def failure(
        cls,
        message: str,
        errors: Optional[List[str]] = None,
        code: str = FAILURE_INVALID
    ) -> 'BookingResult':
        return cls(success=False, message=message, bookings=[], errors=errors or [], code=code)


@dataclass
class MatchResult:
    """Outcome of a worker search: all matches or a single best match."""
    success: bool
    message: str
    matches: List[MatchedWorker] = field(default_factory=list)
    best_match: Optional[MatchedWorker] = None
    code: str = ''


@dataclass
class WorkerSearchFilters:
    """Filters for browsing the worker directory."""
    keyword: Optional[str] = None
    min_rate: Optional[float] = None
    max_rate: Optional[float] = None
    location: Optional[str] = None
    specialty: Optional[str] = None
    available_weekdays: List[int] = field(default_factory=list)
    sort_by: Optional[str] = None


def _string_list(value, name: str, problems: List[str]) -> List[str]:
    """Coerce a JSON list of strings to lowercase stripped names."""
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        problems.append(f'{name} must be a list of strings')
        return []
    return [v.strip().lower() for v in value if v.strip()]


def _optional_int(value, name: str, problems: List[str]) -> Optional[int]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        problems.append(f'{name} must be an integer')
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        problems.append(f'{name} must be an integer')
        return None
