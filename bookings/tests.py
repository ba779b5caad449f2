"""
Tests for the PSW booking system.

Tests cover:
- Time helpers, availability index, conflict checks and worker matching
- Booking slot builder and parsed request validation
- Worker directory search and free time windows
- Language-model parser (httpx.MockTransport, no network)
- Models, repository and service layer
- API endpoints
- Management commands
"""

from datetime import date, datetime, time, timedelta, timezone
from io import StringIO
from unittest.mock import patch

import httpx
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from .availability import is_available, window_entry, window_for
from .conflicts import find_conflicts, has_conflict
from .matching import (
    DateCheck,
    character_overlap_distance,
    check_worker_date,
    find_available_workers,
    find_best_match,
    is_worker_available_for_booking,
    score_for_distance,
)
from .models import Availability, Booking, CalendarUser, Client, PSWWorker
from .parser import BookingParser, ParserError, Provider, extract_json_object, providers_from_settings
from .repository import BookingRepository, SlotTakenError
from .search import available_time_windows, search_workers
from . import services
from .slots import (
    create_booking_slots,
    dates_for_month,
    make_booking_id,
    normalize_attendee_name,
    resolve_request_dates,
)
from .timeutils import InvalidTimeError, date_key, normalize_time, overlaps, to_minutes
from .types import (
    FAILURE_CONFLICT,
    FAILURE_NO_MATCH,
    FAILURE_NOT_FOUND,
    FAILURE_UNAVAILABLE,
    BookingRecord,
    BookingRequestError,
    BookingSlot,
    CalendarUserRecord,
    ClientProfile,
    DateRange,
    ParsedBookingRequest,
    WorkerAvailability,
    WorkerProfile,
    WorkerSearchFilters,
)

# December 2025: Mondays are the 1st, 8th, 15th, 22nd and 29th.
MONDAY = date(2025, 12, 1)
TUESDAY = date(2025, 12, 2)
WEDNESDAY = date(2025, 12, 3)


def make_worker(worker_id='1', weekdays=(0, 2, 4), start='09:00', end='17:00',
                location='Toronto', bookings=(), first_name='Pat', last_name='Lee',
                hourly_rate=20, specialties=()):
    return WorkerProfile(
        id=worker_id,
        first_name=first_name,
        last_name=last_name,
        location=location,
        hourly_rate=hourly_rate,
        specialties=list(specialties),
        availability=[WorkerAvailability(weekday=d, start_time=start, end_time=end) for d in weekdays],
        bookings=list(bookings),
    )


def make_booking(on_date, start, end, booking_id='b1'):
    return BookingRecord(
        id=booking_id,
        counterparty_id='c1',
        counterparty_name='Client One',
        date=on_date,
        start_time=start,
        end_time=end,
    )


CLIENT = ClientProfile(id='c1', first_name='Ann', last_name='Client', location='Toronto')


class TimeUtilsTests(SimpleTestCase):
    """Test minutes-since-midnight conversion and overlap."""

    def test_to_minutes(self):
        self.assertEqual(to_minutes('09:30'), 570)
        self.assertEqual(to_minutes('9:05'), 545)
        self.assertEqual(to_minutes('00:00'), 0)
        self.assertEqual(to_minutes('23:59'), 1439)
        self.assertEqual(to_minutes(time(13, 15)), 795)

    def test_to_minutes_rejects_malformed_values(self):
        for value in ['0930', '24:00', '12:60', 'ab:cd', '9:5', '', '-1:00', '123:00']:
            with self.subTest(value=value):
                with self.assertRaises(InvalidTimeError):
                    to_minutes(value)

    def test_invalid_time_is_a_value_error(self):
        with self.assertRaises(ValueError):
            to_minutes('noon')

    def test_normalize_time_pads(self):
        self.assertEqual(normalize_time('9:00'), '09:00')
        self.assertEqual(normalize_time('14:05'), '14:05')

    def test_overlap_is_symmetric(self):
        self.assertTrue(overlaps(540, 600, 570, 630))
        self.assertTrue(overlaps(570, 630, 540, 600))
        self.assertFalse(overlaps(540, 600, 700, 760))
        self.assertFalse(overlaps(700, 760, 540, 600))

    def test_back_to_back_intervals_do_not_overlap(self):
        self.assertFalse(overlaps(540, 600, 600, 660))
        self.assertFalse(overlaps(600, 660, 540, 600))

    def test_strict_overlap(self):
        # 10:30-11:30 against 11:00-12:00
        self.assertTrue(overlaps(630, 690, 660, 720))

    def test_date_key_uses_utc(self):
        eastern = timezone(timedelta(hours=-5))
        late_evening = datetime(2025, 12, 10, 23, 30, tzinfo=eastern)
        self.assertEqual(date_key(late_evening), '2025-12-11')
        self.assertEqual(date_key('2025-12-10T10:00:00Z'), '2025-12-10')
        self.assertEqual(date_key('2025-12-10'), '2025-12-10')
        self.assertEqual(date_key(date(2025, 12, 10)), '2025-12-10')


class AvailabilityTests(SimpleTestCase):
    """Test the availability index."""

    def test_recurring_weekday_is_available(self):
        worker = make_worker(weekdays=(0, 2))
        self.assertTrue(is_available(worker, 0))
        self.assertTrue(is_available(worker, 2))
        self.assertFalse(is_available(worker, 1))

    def test_date_bounded_entries_ignored_by_default(self):
        worker = WorkerProfile(
            id='1',
            first_name='Pat',
            last_name='Lee',
            availability=[WorkerAvailability(
                weekday=1,
                start_time='09:00',
                end_time='17:00',
                is_recurring=False,
                date_range=DateRange(date(2025, 12, 1), date(2025, 12, 31)),
            )],
        )
        self.assertFalse(is_available(worker, 1, on_date=TUESDAY))
        self.assertTrue(is_available(worker, 1, on_date=TUESDAY, include_date_bounded=True))
        self.assertFalse(is_available(worker, 1, on_date=date(2026, 1, 6), include_date_bounded=True))

    def test_window_containment(self):
        worker = make_worker(weekdays=(0,), start='09:00', end='17:00')
        self.assertTrue(window_for(worker, 0, '09:00', '17:00'))
        self.assertTrue(window_for(worker, 0, '10:00', '11:00'))
        self.assertFalse(window_for(worker, 0, '08:30', '10:00'))
        self.assertFalse(window_for(worker, 0, '16:00', '17:30'))
        self.assertFalse(window_for(worker, 1, '10:00', '11:00'))

    def test_only_first_window_is_checked(self):
        """Two windows on one day are not merged."""
        worker = WorkerProfile(
            id='1',
            first_name='Pat',
            last_name='Lee',
            availability=[
                WorkerAvailability(weekday=0, start_time='09:00', end_time='12:00'),
                WorkerAvailability(weekday=0, start_time='13:00', end_time='17:00'),
            ],
        )
        self.assertTrue(window_for(worker, 0, '09:00', '10:00'))
        self.assertFalse(window_for(worker, 0, '14:00', '15:00'))

    def test_window_entry_returns_first_entry_as_stored(self):
        one_off = WorkerAvailability(
            weekday=0,
            start_time='06:00',
            end_time='08:00',
            is_recurring=False,
            date_range=DateRange(date(2025, 1, 1), date(2025, 1, 31)),
        )
        recurring = WorkerAvailability(weekday=0, start_time='09:00', end_time='17:00')
        worker = WorkerProfile(id='1', first_name='Pat', last_name='Lee', availability=[one_off, recurring])

        self.assertEqual(window_entry(worker, 0), one_off)
        self.assertEqual(window_entry(worker, 0, on_date=MONDAY, include_date_bounded=True), recurring)


class ConflictTests(SimpleTestCase):
    """Test conflict detection against existing bookings."""

    def test_overlap_on_same_date(self):
        bookings = [make_booking(MONDAY, '10:00', '11:00')]
        self.assertTrue(has_conflict(MONDAY, '10:30', '11:30', bookings))

    def test_other_date_does_not_conflict(self):
        bookings = [make_booking(MONDAY, '10:00', '11:00')]
        self.assertFalse(has_conflict(TUESDAY, '10:00', '11:00', bookings))

    def test_back_to_back_does_not_conflict(self):
        bookings = [make_booking(MONDAY, '10:00', '11:00')]
        self.assertFalse(has_conflict(MONDAY, '11:00', '12:00', bookings))
        self.assertFalse(has_conflict(MONDAY, '09:00', '10:00', bookings))

    def test_dates_compared_as_utc_keys(self):
        bookings = [make_booking('2025-12-01', '10:00', '11:00')]
        self.assertTrue(has_conflict(datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc), '10:00', '11:00', bookings))

    def test_find_conflicts_needs_shared_attendee(self):
        new_slot = BookingSlot(
            id='n', user_id='1', date=MONDAY, start_time='10:00', end_time='11:00',
            title='Standup', attendees=['1', '2'],
        )
        clash = BookingSlot(
            id='a', user_id='2', date=MONDAY, start_time='10:30', end_time='11:30',
            title='Review', attendees=['2'],
        )
        stranger = BookingSlot(
            id='b', user_id='3', date=MONDAY, start_time='10:00', end_time='11:00',
            title='Other', attendees=['3'],
        )
        next_day = BookingSlot(
            id='c', user_id='1', date=TUESDAY, start_time='10:00', end_time='11:00',
            title='Standup', attendees=['1'],
        )
        self.assertEqual(find_conflicts(new_slot, [clash, stranger, next_day]), [clash])


class MatchingTests(SimpleTestCase):
    """Test worker matching and scoring."""

    def test_character_overlap_distance(self):
        self.assertEqual(character_overlap_distance('Toronto', 'toronto'), 0)
        self.assertEqual(character_overlap_distance('abc', 'abd'), 1)
        self.assertEqual(character_overlap_distance('abc', 'abcdef'), 3)

    def test_score_for_distance(self):
        self.assertEqual(score_for_distance(0), 100)
        self.assertEqual(score_for_distance(3), 94)
        self.assertEqual(score_for_distance(10), 80)
        self.assertEqual(score_for_distance(500), 80)

    def test_worker_must_be_free_on_every_date(self):
        """A Mon/Wed/Fri worker is excluded when a Tuesday is requested."""
        worker = make_worker(weekdays=(0, 2, 4))
        matches = find_available_workers(CLIENT, [worker], [MONDAY, TUESDAY], '10:00', '11:00')
        self.assertEqual(matches, [])

        matches = find_available_workers(CLIENT, [worker], [MONDAY, WEDNESDAY], '10:00', '11:00')
        self.assertEqual(len(matches), 1)
        self.assertEqual(matches[0].conflicts, 0)

    def test_booking_conflict_excludes_worker(self):
        busy = make_worker('1', bookings=[make_booking(MONDAY, '10:00', '12:00')])
        free = make_worker('2')
        matches = find_available_workers(CLIENT, [busy, free], [MONDAY], '11:00', '11:30')
        self.assertEqual([m.worker.id for m in matches], ['2'])

    def test_sorted_by_score_with_stable_ties(self):
        far = make_worker('1', location='Thunder Bay, Ontario')
        near_a = make_worker('2', location='Toronto')
        near_b = make_worker('3', location='Toronto')
        matches = find_available_workers(CLIENT, [far, near_a, near_b], [MONDAY], '10:00', '11:00')

        self.assertEqual([m.worker.id for m in matches], ['2', '3', '1'])
        self.assertEqual(matches[0].score, 100)
        self.assertEqual(matches[2].score, 80)

    def test_distance_can_be_switched_off(self):
        far = make_worker('1', location='Thunder Bay, Ontario')
        matches = find_available_workers(CLIENT, [far], [MONDAY], '10:00', '11:00', include_distance=False)
        self.assertEqual(matches[0].distance, 0)
        self.assertEqual(matches[0].score, 100)

    def test_custom_location_distance(self):
        worker = make_worker('1', location='Anywhere')
        matches = find_available_workers(
            CLIENT, [worker], [MONDAY], '10:00', '11:00',
            location_distance=lambda a, b: 5,
        )
        self.assertEqual(matches[0].score, 90)

    def test_rate_is_surfaced_but_not_scored(self):
        cheap = make_worker('1', hourly_rate=15)
        pricey = make_worker('2', hourly_rate=35)
        matches = find_available_workers(CLIENT, [pricey, cheap], [MONDAY], '10:00', '11:00')
        self.assertEqual([m.worker.id for m in matches], ['2', '1'])
        self.assertEqual(matches[0].hourly_rate, 35)

    def test_inputs_are_not_mutated(self):
        workers = [make_worker('1'), make_worker('2')]
        snapshot = list(workers)
        first = find_available_workers(CLIENT, workers, [MONDAY], '10:00', '11:00')
        second = find_available_workers(CLIENT, workers, [MONDAY], '10:00', '11:00')
        self.assertEqual(workers, snapshot)
        self.assertIsNot(first, second)

    def test_find_best_match(self):
        self.assertIsNone(find_best_match(CLIENT, [], [MONDAY], '10:00', '11:00'))
        best = find_best_match(CLIENT, [make_worker('1', location='Ottawa'), make_worker('2')],
                               [MONDAY], '10:00', '11:00')
        self.assertEqual(best.worker.id, '2')

    def test_check_worker_date_verdicts(self):
        worker = make_worker(weekdays=(0,), bookings=[make_booking(MONDAY, '13:00', '14:00')])
        self.assertIs(check_worker_date(worker, MONDAY, '10:00', '11:00'), DateCheck.AVAILABLE)
        self.assertIs(check_worker_date(worker, TUESDAY, '10:00', '11:00'), DateCheck.UNAVAILABLE_DAY)
        self.assertIs(check_worker_date(worker, MONDAY, '16:00', '18:00'), DateCheck.OUTSIDE_WINDOW)
        self.assertIs(check_worker_date(worker, MONDAY, '13:30', '14:30'), DateCheck.BOOKING_CONFLICT)

    def test_is_worker_available_for_booking(self):
        worker = make_worker(weekdays=(0, 2))
        self.assertTrue(is_worker_available_for_booking(worker, [MONDAY, WEDNESDAY], '10:00', '11:00'))
        self.assertFalse(is_worker_available_for_booking(worker, [MONDAY, TUESDAY], '10:00', '11:00'))

    def test_malformed_time_raises(self):
        with self.assertRaises(InvalidTimeError):
            find_available_workers(CLIENT, [make_worker()], [MONDAY], '10', '11:00')


class SlotBuilderTests(SimpleTestCase):
    """Test booking ids and slot creation."""

    def setUp(self):
        self.users = [
            CalendarUserRecord(id='1', name='Alice'),
            CalendarUserRecord(id='2', name='Bob'),
        ]

    def make_request(self, **overrides):
        fields = {
            'attendees': ['alice'],
            'days_of_week': ['wednesday'],
            'start_time': '09:00',
            'end_time': '10:00',
            'month': 12,
            'year': 2025,
            'title': 'Standup',
        }
        fields.update(overrides)
        return ParsedBookingRequest(**fields)

    def test_booking_id_is_deterministic(self):
        self.assertEqual(make_booking_id(date(2025, 12, 10), '09:00'), '2025-12-10_09-00_UTC')
        self.assertEqual(make_booking_id(date(2025, 12, 10), '9:00'), '2025-12-10_09-00_UTC')

    def test_dates_for_month(self):
        self.assertEqual(
            dates_for_month(2025, 12, ['monday']),
            [date(2025, 12, d) for d in (1, 8, 15, 22, 29)],
        )
        self.assertEqual(
            dates_for_month(2025, 12, ['Monday', 'someday', 'friday'])[:3],
            [date(2025, 12, 1), date(2025, 12, 5), date(2025, 12, 8)],
        )
        self.assertEqual(dates_for_month(2025, 12, []), [])

    def test_explicit_day_wins(self):
        request = self.make_request(day_of_month=10)
        self.assertEqual(resolve_request_dates(request), [date(2025, 12, 10)])
        self.assertEqual(resolve_request_dates(self.make_request(month=11, day_of_month=31)), [])

    def test_normalize_attendee_name(self):
        names = ['Alice Smith', 'Bob']
        self.assertEqual(normalize_attendee_name('bob', names), 'Bob')
        self.assertEqual(normalize_attendee_name('alice', names), 'Alice Smith')
        self.assertEqual(normalize_attendee_name('bobby', names), 'Bob')
        self.assertIsNone(normalize_attendee_name('carol', names))

    def test_full_success(self):
        result = create_booking_slots(self.make_request(attendees=['alice', 'bob']), self.users)

        self.assertTrue(result.success)
        self.assertEqual(len(result.bookings), 5)
        self.assertEqual(result.message, 'Successfully created 5 bookings for Standup')
        slot = result.bookings[1]
        self.assertEqual(slot.id, '2025-12-10_09-00_UTC')
        self.assertEqual(slot.user_id, '1')
        self.assertEqual(slot.attendees, ['1', '2'])
        self.assertEqual(slot.description, 'Booked for: Alice, Bob')
        self.assertEqual(slot.kind, 'generic-slot')

    def test_partial_success_notes_missing_users(self):
        result = create_booking_slots(self.make_request(attendees=['alice', 'zed']), self.users)

        self.assertTrue(result.success)
        self.assertEqual(result.message, 'Created 5 bookings. Note: User "zed" not found')
        self.assertEqual(result.errors, ['User "zed" not found'])

    def test_no_valid_attendees(self):
        result = create_booking_slots(self.make_request(attendees=['zed']), self.users)

        self.assertFalse(result.success)
        self.assertEqual(result.message, 'No valid attendees found. Available users: Alice, Bob')
        self.assertEqual(result.bookings, [])

    def test_no_days(self):
        result = create_booking_slots(self.make_request(days_of_week=[]), self.users)

        self.assertFalse(result.success)
        self.assertEqual(
            result.message,
            'No days of week specified. Please specify days like Monday, Wednesday, etc.',
        )

    def test_no_dates_found(self):
        result = create_booking_slots(self.make_request(month=11, day_of_month=31), self.users)

        self.assertFalse(result.success)
        self.assertEqual(result.message, 'No dates found for the specified days in November 2025')

    def test_malformed_time_is_a_failure_result(self):
        result = create_booking_slots(self.make_request(start_time='9am'), self.users)
        self.assertFalse(result.success)
        self.assertEqual(result.bookings, [])


class ParsedBookingRequestTests(SimpleTestCase):
    """Test validation of parser output."""

    def test_defaults(self):
        request = ParsedBookingRequest.from_payload({'attendees': [' Alice ']}, today=date(2025, 12, 1))

        self.assertEqual(request.attendees, ['alice'])
        self.assertEqual(request.days_of_week, [])
        self.assertEqual(request.start_time, '09:00')
        self.assertEqual(request.end_time, '10:00')
        self.assertEqual(request.month, 12)
        self.assertEqual(request.year, 2025)
        self.assertEqual(request.title, 'Team Meeting')
        self.assertIsNone(request.day_of_month)

    def test_normalizes_fields(self):
        request = ParsedBookingRequest.from_payload({
            'attendees': ['Bob'],
            'daysOfWeek': ['Monday', 'FRIDAY'],
            'startTime': '9:30',
            'endTime': '11:00',
            'month': '3',
            'year': 2026,
            'day': 4,
            'title': 'Check-in',
        })

        self.assertEqual(request.days_of_week, ['monday', 'friday'])
        self.assertEqual(request.start_time, '09:30')
        self.assertEqual(request.month, 3)
        self.assertEqual(request.day_of_month, 4)
        self.assertEqual(request.to_payload()['day'], 4)

    def test_collects_every_problem(self):
        with self.assertRaises(BookingRequestError) as ctx:
            ParsedBookingRequest.from_payload({
                'attendees': 'alice',
                'daysOfWeek': ['funday'],
                'startTime': '25:00',
                'month': 13,
                'year': True,
            })

        problems = ctx.exception.problems
        self.assertEqual(len(problems), 5)
        self.assertIn('attendees must be a list of strings', problems)
        self.assertIn('Unknown day names: funday', problems)
        self.assertIn('month must be between 1 and 12', problems)

    def test_start_must_precede_end(self):
        with self.assertRaises(BookingRequestError):
            ParsedBookingRequest.from_payload({'startTime': '11:00', 'endTime': '10:00'})

    def test_rejects_non_object(self):
        with self.assertRaises(BookingRequestError):
            ParsedBookingRequest.from_payload(['alice'])

    def test_title_length_is_limited(self):
        with self.assertRaises(BookingRequestError) as ctx:
            ParsedBookingRequest.from_payload({'attendees': ['alice'], 'title': 'x' * 250})

        self.assertEqual(ctx.exception.problems, ['title must be at most 200 characters'])


class SearchTests(SimpleTestCase):
    """Test worker directory search and free windows."""

    def setUp(self):
        self.workers = [
            make_worker('1', first_name='Zoe', last_name='Brown', location='Ottawa', hourly_rate=30,
                        weekdays=(0, 1), specialties=['dementia care']),
            make_worker('2', first_name='Adam', last_name='Smith', location='Toronto', hourly_rate=18,
                        weekdays=(5,), specialties=['companionship']),
            make_worker('3', first_name='Mia', last_name='Jones', location='Toronto', hourly_rate=25,
                        weekdays=(2,), specialties=['elderly care']),
        ]

    def ids(self, workers):
        return [w.id for w in workers]

    def test_no_filters_keeps_order(self):
        self.assertEqual(self.ids(search_workers(self.workers, WorkerSearchFilters())), ['1', '2', '3'])

    def test_keyword_matches_name_location_and_specialty(self):
        self.assertEqual(self.ids(search_workers(self.workers, WorkerSearchFilters(keyword='zoe'))), ['1'])
        self.assertEqual(self.ids(search_workers(self.workers, WorkerSearchFilters(keyword='toronto'))), ['2', '3'])
        self.assertEqual(self.ids(search_workers(self.workers, WorkerSearchFilters(keyword='Dementia'))), ['1'])

    def test_rate_location_specialty_and_days(self):
        filters = WorkerSearchFilters(min_rate=20, max_rate=28)
        self.assertEqual(self.ids(search_workers(self.workers, filters)), ['3'])
        self.assertEqual(self.ids(search_workers(self.workers, WorkerSearchFilters(location='otta'))), ['1'])
        self.assertEqual(self.ids(search_workers(self.workers, WorkerSearchFilters(specialty='care'))), ['1', '3'])
        filters = WorkerSearchFilters(available_weekdays=[1, 5])
        self.assertEqual(self.ids(search_workers(self.workers, filters)), ['1', '2'])

    def test_sorting(self):
        self.assertEqual(self.ids(search_workers(self.workers, WorkerSearchFilters(sort_by='rate'))), ['2', '3', '1'])
        self.assertEqual(self.ids(search_workers(self.workers, WorkerSearchFilters(sort_by='name'))), ['2', '3', '1'])
        self.assertEqual(self.ids(search_workers(self.workers, WorkerSearchFilters(sort_by='location'))), ['1', '2', '3'])

    def test_available_time_windows(self):
        worker = make_worker(weekdays=(0,), bookings=[
            make_booking(MONDAY, '13:00', '14:00', 'b2'),
            make_booking(MONDAY, '10:00', '11:00', 'b1'),
            make_booking(TUESDAY, '09:00', '17:00', 'b3'),
        ])

        self.assertEqual(
            available_time_windows(worker, MONDAY),
            [('09:00', '10:00'), ('11:00', '13:00'), ('14:00', '17:00')],
        )
        self.assertEqual(available_time_windows(worker, TUESDAY), [])


def chat_reply(content):
    return {'choices': [{'message': {'role': 'assistant', 'content': content}}]}


class BookingParserTests(SimpleTestCase):
    """Test the language-model parser against a mocked transport."""

    openrouter = Provider('openrouter', 'https://openrouter.test/v1', 'or-key', 'openai/gpt-4o-mini')
    openai = Provider('openai', 'https://openai.test/v1', 'oa-key', 'gpt-4o-mini')

    def make_parser(self, handler, providers=None):
        return BookingParser(
            providers=providers if providers is not None else [self.openrouter, self.openai],
            timeout=5,
            transport=httpx.MockTransport(handler),
        )

    def test_parses_json_inside_markdown(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=chat_reply(
                '```json\n{"attendees": ["Alice"], "daysOfWeek": ["Monday"], "startTime": "9:00", '
                '"endTime": "10:30", "month": 12, "year": 2025, "title": "Standup"}\n```'
            ))

        parsed, errors = self.make_parser(handler).parse('standup with alice on mondays')

        self.assertEqual(errors, [])
        self.assertEqual(parsed.attendees, ['alice'])
        self.assertEqual(parsed.days_of_week, ['monday'])
        self.assertEqual(parsed.start_time, '09:00')
        self.assertEqual(parsed.title, 'Standup')
        self.assertEqual(len(seen), 1)
        self.assertEqual(str(seen[0].url), 'https://openrouter.test/v1/chat/completions')
        self.assertEqual(seen[0].headers['Authorization'], 'Bearer or-key')

    def test_falls_back_to_second_provider(self):
        def handler(request):
            if request.url.host == 'openrouter.test':
                return httpx.Response(500, json={'error': {'message': 'upstream down'}})
            return httpx.Response(200, json=chat_reply('{"attendees": ["bob"], "daysOfWeek": ["friday"]}'))

        parsed, errors = self.make_parser(handler).parse('meet bob friday')

        self.assertEqual(parsed.attendees, ['bob'])
        self.assertEqual([e.to_dict() for e in errors], [{'provider': 'openrouter', 'message': 'upstream down'}])

    def test_no_providers(self):
        parsed, errors = self.make_parser(lambda request: httpx.Response(200), providers=[]).parse('anything')

        self.assertIsNone(parsed)
        self.assertEqual(errors[0].provider, 'none')

    def test_reply_without_json(self):
        parsed, errors = self.make_parser(
            lambda request: httpx.Response(200, json=chat_reply('Sorry, I cannot help.'))
        ).parse('anything')

        self.assertIsNone(parsed)
        self.assertEqual(errors[-1].message, 'No JSON found in model response')

    def test_invalid_booking_payload(self):
        parsed, errors = self.make_parser(
            lambda request: httpx.Response(200, json=chat_reply('{"startTime": "noon"}'))
        ).parse('anything')

        self.assertIsNone(parsed)
        self.assertTrue(errors[-1].message.startswith('Invalid booking request'))

    def test_malformed_completion_tries_next_provider(self):
        def handler(request):
            if request.url.host == 'openrouter.test':
                return httpx.Response(200, json=[{'choices': []}])
            return httpx.Response(200, json={'choices': ['not a choice']})

        parsed, errors = self.make_parser(handler).parse('anything')

        self.assertIsNone(parsed)
        self.assertEqual(
            [(e.provider, e.message) for e in errors],
            [
                ('openrouter', 'Empty response'),
                ('openai', 'Empty response'),
                ('none', 'No provider returned a response'),
            ],
        )

    def test_all_providers_fail(self):
        parsed, errors = self.make_parser(
            lambda request: httpx.Response(401, text='bad key')
        ).parse('anything')

        self.assertIsNone(parsed)
        self.assertEqual([e.provider for e in errors], ['openrouter', 'openai', 'none'])

    def test_extract_json_object(self):
        self.assertEqual(extract_json_object('{"a": 1}'), {'a': 1})
        self.assertEqual(extract_json_object('Here you go: {"a": {"b": 2}} thanks'), {'a': {'b': 2}})
        self.assertIsNone(extract_json_object('[1, 2]'))
        self.assertIsNone(extract_json_object(''))

    @override_settings(OPENROUTER_API_KEY='', OPENAI_API_KEY='sk-test', OPENAI_MODEL='gpt-4o-mini',
                       OPENAI_API_BASE_URL='https://api.openai.com/v1/')
    def test_providers_from_settings(self):
        providers = providers_from_settings()
        self.assertEqual([p.name for p in providers], ['openai'])
        self.assertEqual(providers[0].base_url, 'https://api.openai.com/v1')


class FakeParser:
    """Stands in for BookingParser with a fixed outcome."""

    def __init__(self, parsed, errors=None):
        self.parsed = parsed
        self.errors = errors or []

    def parse(self, text):
        return self.parsed, self.errors


def parsed_request(**fields):
    payload = {
        'attendees': ['barbara johnson'],
        'daysOfWeek': ['monday'],
        'startTime': '09:00',
        'endTime': '12:00',
        'month': 12,
        'year': 2025,
    }
    payload.update(fields)
    return ParsedBookingRequest.from_payload(payload)


class BookingDataMixin:
    """Creates a client and two workers (Mon/Wed/Fri 08:00-17:00)."""

    def setUp(self):
        self.client_row = Client.objects.create(
            first_name='Ann',
            last_name='Client',
            location='123 Main St, Toronto, ON',
            email='ann@example.com',
        )
        self.other_client = Client.objects.create(
            first_name='Omar',
            last_name='Other',
            location='456 Oak Ave, Ottawa, ON',
            email='omar@example.com',
        )
        self.barbara = self.make_worker('Barbara', 'Johnson', '123 Main St, Toronto, ON', 25)
        self.maria = self.make_worker('Maria', 'Lopez', '999 Front St, Sudbury, ON', 18)

    def make_worker(self, first_name, last_name, location, rate, weekdays=(0, 2, 4)):
        worker = PSWWorker.objects.create(
            first_name=first_name,
            last_name=last_name,
            location=location,
            email=f'{first_name.lower()}@example.com',
            hourly_rate=rate,
            specialties=['elderly care'],
        )
        for weekday in weekdays:
            Availability.objects.create(
                worker=worker,
                weekday=weekday,
                start_time=time(8, 0),
                end_time=time(17, 0),
            )
        return worker

    def make_stored_booking(self, worker, client, on_date, start, end, booking_status='confirmed'):
        return Booking.objects.create(
            id=make_booking_id(on_date, start),
            kind='worker-booking',
            worker=worker,
            client=client,
            worker_name=worker.full_name,
            client_name=client.full_name,
            date=on_date,
            start_time=start,
            end_time=end,
            status=booking_status,
        )


class ModelTests(TestCase):
    """Test model validation."""

    def setUp(self):
        self.worker = PSWWorker.objects.create(
            first_name='Pat', last_name='Lee', location='Toronto', email='pat@example.com', hourly_rate=20,
        )

    def test_availability_requires_start_before_end(self):
        with self.assertRaises(ValidationError):
            Availability.objects.create(worker=self.worker, weekday=0, start_time=time(17, 0), end_time=time(9, 0))

    def test_availability_range_needs_both_ends(self):
        with self.assertRaises(ValidationError):
            Availability.objects.create(
                worker=self.worker, weekday=0, start_time=time(9, 0), end_time=time(17, 0),
                is_recurring=False, range_start=date(2025, 12, 1),
            )

    def test_weekday_name(self):
        entry = Availability.objects.create(worker=self.worker, weekday=2, start_time=time(9, 0), end_time=time(17, 0))
        self.assertEqual(entry.weekday_name, 'Wednesday')

    def test_worker_booking_needs_worker(self):
        with self.assertRaises(ValidationError):
            Booking.objects.create(
                id='2025-12-01_09-00_UTC', kind='worker-booking',
                date=MONDAY, start_time=time(9, 0), end_time=time(10, 0),
            )

    def test_matches_name(self):
        self.assertTrue(self.worker.matches_name('pat lee'))
        self.assertTrue(self.worker.matches_name('Lee'))
        self.assertTrue(self.worker.matches_name('book with pat please'))
        self.assertFalse(self.worker.matches_name('Sam'))
        self.assertFalse(self.worker.matches_name('  '))

    def test_blank_name_part_does_not_match_everything(self):
        worker = PSWWorker.objects.create(
            first_name='Cher', last_name='', location='Toronto', email='cher@example.com', hourly_rate=20,
        )

        self.assertTrue(worker.matches_name('book cher tomorrow'))
        self.assertFalse(worker.matches_name('Barbara Johnson'))

    def test_booking_manager_active_excludes_cancelled(self):
        Booking.objects.create(
            id='a', kind='generic-slot', date=MONDAY, start_time=time(9, 0), end_time=time(10, 0), title='A',
        )
        Booking.objects.create(
            id='b', kind='generic-slot', date=MONDAY, start_time=time(11, 0), end_time=time(12, 0), title='B',
            status='cancelled',
        )
        self.assertEqual(list(Booking.objects.active().values_list('id', flat=True)), ['a'])
        self.assertEqual(Booking.objects.generic_slots().count(), 2)


class RepositoryTests(BookingDataMixin, TestCase):
    """Test conversion to core records and the conditional upsert."""

    def setUp(self):
        super().setUp()
        self.repository = BookingRepository()

    def test_worker_record(self):
        record = self.repository.get_worker(self.barbara.pk)

        self.assertEqual(record.id, str(self.barbara.pk))
        self.assertEqual(record.full_name, 'Barbara Johnson')
        self.assertEqual(record.hourly_rate, 25.0)
        self.assertEqual([a.weekday for a in record.availability], [0, 2, 4])
        self.assertEqual(record.availability[0].start_time, '08:00')

    def test_missing_rows_are_none(self):
        self.assertIsNone(self.repository.get_worker(9999))
        self.assertIsNone(self.repository.get_client(9999))

    def test_cancelled_bookings_do_not_block(self):
        self.make_stored_booking(self.barbara, self.client_row, MONDAY, time(9, 0), time(10, 0), 'cancelled')
        self.make_stored_booking(self.barbara, self.client_row, WEDNESDAY, time(9, 0), time(10, 0))

        record = self.repository.get_worker(self.barbara.pk)
        self.assertEqual([b.date for b in record.bookings], [WEDNESDAY])
        self.assertEqual(record.bookings[0].counterparty_name, 'Ann Client')

        client = self.repository.get_client(self.client_row.pk)
        self.assertEqual(client.bookings[0].counterparty_name, 'Barbara Johnson')
        self.assertEqual(client.bookings[0].kind, 'client-booking')

    def test_find_worker_by_name(self):
        self.assertEqual(self.repository.find_worker_by_name('barbara johnson').id, str(self.barbara.pk))
        self.assertEqual(self.repository.find_worker_by_name('Lopez').id, str(self.maria.pk))
        self.assertIsNone(self.repository.find_worker_by_name('nobody here'))

    def test_upsert_is_idempotent_for_same_parties(self):
        worker = self.repository.get_worker(self.barbara.pk)
        client = self.repository.get_client(self.client_row.pk)

        self.repository.upsert_worker_booking('2025-12-01_09-00_UTC', worker, client, MONDAY, '09:00', '10:00')
        self.repository.upsert_worker_booking('2025-12-01_09-00_UTC', worker, client, MONDAY, '09:00', '11:00')

        self.assertEqual(Booking.objects.count(), 1)
        self.assertEqual(Booking.objects.get().end_time, time(11, 0))

    def test_upsert_refuses_other_parties(self):
        worker = self.repository.get_worker(self.barbara.pk)
        other_worker = self.repository.get_worker(self.maria.pk)
        client = self.repository.get_client(self.client_row.pk)

        self.repository.upsert_worker_booking('2025-12-01_09-00_UTC', worker, client, MONDAY, '09:00', '10:00')
        with self.assertRaises(SlotTakenError) as ctx:
            self.repository.upsert_worker_booking(
                '2025-12-01_09-00_UTC', other_worker, client, MONDAY, '09:00', '10:00'
            )
        self.assertIn('one booking per date and start time', str(ctx.exception))

    def test_upsert_may_reuse_cancelled_slot(self):
        self.make_stored_booking(self.maria, self.other_client, MONDAY, time(9, 0), time(10, 0), 'cancelled')
        worker = self.repository.get_worker(self.barbara.pk)
        client = self.repository.get_client(self.client_row.pk)

        booking = self.repository.upsert_worker_booking(
            '2025-12-01_09-00_UTC', worker, client, MONDAY, '09:00', '10:00'
        )

        self.assertEqual(booking.worker_id, self.barbara.pk)
        self.assertEqual(booking.status, 'confirmed')

    def test_generic_slot_cannot_replace_worker_booking(self):
        self.make_stored_booking(self.barbara, self.client_row, MONDAY, time(9, 0), time(10, 0))
        slot = BookingSlot(
            id='2025-12-01_09-00_UTC', user_id='1', date=MONDAY, start_time='09:00', end_time='10:00',
            title='Standup', attendees=['1'],
        )
        with self.assertRaises(SlotTakenError):
            self.repository.upsert_slots([slot])

    def test_upsert_users_merges(self):
        alice, = self.repository.upsert_users([{'name': 'Alice', 'email': 'alice@example.com'}])
        self.repository.upsert_users([{'id': alice.pk, 'availability': 'Monday-Friday 9-5'}])

        alice.refresh_from_db()
        self.assertEqual(alice.name, 'Alice')
        self.assertEqual(alice.availability, 'Monday-Friday 9-5')
        self.assertEqual(self.repository.list_users()[0].id, str(alice.pk))


class MatchWorkersServiceTests(BookingDataMixin, TestCase):
    """Test services.match_workers."""

    def test_all_matches(self):
        result = services.match_workers(self.client_row.pk, [MONDAY, WEDNESDAY], '09:00', '12:00')

        self.assertTrue(result.success)
        self.assertEqual(result.message, 'Found 2 available workers')
        self.assertEqual(result.matches[0].worker.full_name, 'Barbara Johnson')
        self.assertEqual(result.matches[0].score, 100)

    def test_best_match(self):
        result = services.match_workers(self.client_row.pk, ['2025-12-01'], '09:00', '12:00', find_best=True)

        self.assertTrue(result.success)
        self.assertEqual(result.message, 'Found best match: Barbara Johnson')
        self.assertEqual(result.best_match.worker.id, str(self.barbara.pk))

    def test_booked_worker_drops_out(self):
        self.make_stored_booking(self.barbara, self.other_client, MONDAY, time(10, 0), time(11, 0))
        result = services.match_workers(self.client_row.pk, [MONDAY], '09:00', '12:00')
        self.assertEqual([m.worker.full_name for m in result.matches], ['Maria Lopez'])

    def test_no_match(self):
        result = services.match_workers(self.client_row.pk, [TUESDAY], '09:00', '12:00')

        self.assertFalse(result.success)
        self.assertEqual(result.message, 'No available workers found')
        self.assertEqual(result.code, FAILURE_NO_MATCH)

    def test_client_not_found(self):
        result = services.match_workers(9999, [MONDAY], '09:00', '12:00')

        self.assertFalse(result.success)
        self.assertEqual(result.message, 'Client not found')
        self.assertEqual(result.code, FAILURE_NOT_FOUND)

    def test_malformed_time_is_a_failure(self):
        result = services.match_workers(self.client_row.pk, [MONDAY], '9am', '12:00')
        self.assertFalse(result.success)

    @override_settings(BOOKINGS_INCLUDE_DATE_BOUNDED=True)
    def test_date_bounded_availability_when_enabled(self):
        Availability.objects.create(
            worker=self.maria,
            weekday=1,
            start_time=time(8, 0),
            end_time=time(17, 0),
            is_recurring=False,
            range_start=date(2025, 12, 1),
            range_end=date(2025, 12, 7),
        )
        result = services.match_workers(self.client_row.pk, [TUESDAY], '09:00', '12:00')
        self.assertEqual([m.worker.full_name for m in result.matches], ['Maria Lopez'])


class BookWithWorkerServiceTests(BookingDataMixin, TestCase):
    """Test services.book_with_worker."""

    def book(self, parsed, client=None, errors=None):
        return services.book_with_worker(
            'book barbara johnson',
            (client or self.client_row).pk,
            parser=FakeParser(parsed, errors),
        )

    def test_books_first_matching_weekday(self):
        result = self.book(parsed_request())

        self.assertTrue(result.success)
        self.assertEqual(result.message, 'Booking confirmed with Barbara Johnson')
        booking = result.bookings[0]
        self.assertEqual(booking.pk, '2025-12-01_09-00_UTC')
        self.assertEqual(booking.date, MONDAY)
        self.assertEqual(booking.status, 'confirmed')
        self.assertEqual(booking.kind, 'worker-booking')
        self.assertEqual(booking.client_name, 'Ann Client')
        self.assertEqual(Booking.objects.worker_bookings().count(), 1)

    def test_explicit_day_of_month(self):
        result = self.book(parsed_request(daysOfWeek=[], day=10))
        self.assertEqual(result.bookings[0].date, date(2025, 12, 10))

    def test_day_missing_from_month_is_a_failure(self):
        result = self.book(parsed_request(daysOfWeek=['monday'], day=31, month=11))

        self.assertFalse(result.success)
        self.assertEqual(
            result.message,
            'Could not determine booking date: day 31 does not exist in November 2025',
        )
        self.assertEqual(Booking.objects.count(), 0)

    def test_defaults_to_first_of_month(self):
        result = self.book(parsed_request(daysOfWeek=[]))
        self.assertEqual(result.bookings[0].date, MONDAY)

    def test_unavailable_day(self):
        result = self.book(parsed_request(daysOfWeek=['tuesday']))

        self.assertFalse(result.success)
        self.assertEqual(result.message, 'Barbara Johnson is not available on Tuesday')
        self.assertEqual(result.code, FAILURE_UNAVAILABLE)

    def test_outside_window(self):
        result = self.book(parsed_request(startTime='16:00', endTime='18:00'))

        self.assertFalse(result.success)
        self.assertEqual(result.code, FAILURE_UNAVAILABLE)
        self.assertEqual(Booking.objects.count(), 0)

    def test_conflict(self):
        self.assertTrue(self.book(parsed_request()).success)
        result = self.book(parsed_request(startTime='10:00', endTime='11:00'), client=self.other_client)

        self.assertFalse(result.success)
        self.assertEqual(result.message, 'Barbara Johnson has a conflict at that time')
        self.assertEqual(result.code, FAILURE_CONFLICT)

    def test_worker_not_found(self):
        result = self.book(parsed_request(attendees=['nobody']))

        self.assertFalse(result.success)
        self.assertEqual(result.message, 'PSW worker "nobody" not found in database')
        self.assertEqual(result.code, FAILURE_NOT_FOUND)

    def test_no_worker_named(self):
        result = self.book(parsed_request(attendees=[]))
        self.assertEqual(result.message, 'No worker name found in booking request')

    def test_client_not_found(self):
        result = services.book_with_worker('book barbara', 9999, parser=FakeParser(parsed_request()))
        self.assertEqual(result.message, 'Client not found')

    def test_parse_failure(self):
        result = self.book(None, errors=[ParserError('none', 'No provider configured.')])

        self.assertFalse(result.success)
        self.assertEqual(result.message, 'Failed to parse booking request')
        self.assertEqual(result.errors, ['none: No provider configured.'])


class BookingServiceTests(BookingDataMixin, TestCase):
    """Test slot creation, status changes and helpers in the service layer."""

    def setUp(self):
        super().setUp()
        self.alice = CalendarUser.objects.create(name='Alice')
        self.bob = CalendarUser.objects.create(name='Bob')

    def test_create_bookings_from_request(self):
        request = ParsedBookingRequest.from_payload({
            'attendees': ['alice', 'bob'],
            'daysOfWeek': ['wednesday'],
            'startTime': '14:00',
            'endTime': '15:00',
            'month': 12,
            'year': 2025,
            'title': 'Review',
        })

        result = services.create_bookings_from_request(request)

        self.assertTrue(result.success)
        self.assertEqual(Booking.objects.generic_slots().count(), 5)
        stored = Booking.objects.get(pk='2025-12-03_14-00_UTC')
        self.assertEqual(stored.attendees, [str(self.alice.pk), str(self.bob.pk)])
        self.assertEqual(stored.description, 'Booked for: Alice, Bob')

        services.create_bookings_from_request(request)
        self.assertEqual(Booking.objects.count(), 5)

    def test_rejected_row_is_a_failure_result(self):
        request = ParsedBookingRequest(
            attendees=['alice'],
            days_of_week=['monday'],
            start_time='09:00',
            end_time='10:00',
            month=12,
            year=2025,
            title='x' * 250,
        )

        result = services.create_bookings_from_request(request)

        self.assertFalse(result.success)
        self.assertTrue(result.message.startswith('Invalid booking: '))
        self.assertEqual(Booking.objects.count(), 0)

    def test_create_bookings_failure_stores_nothing(self):
        request = ParsedBookingRequest.from_payload({'attendees': ['zed'], 'daysOfWeek': ['monday']})
        result = services.create_bookings_from_request(request)

        self.assertFalse(result.success)
        self.assertEqual(Booking.objects.count(), 0)

    def test_status_transitions(self):
        booking = self.make_stored_booking(
            self.barbara, self.client_row, MONDAY, time(9, 0), time(10, 0), 'pending'
        )

        services.confirm_booking(booking)
        self.assertEqual(booking.status, 'confirmed')
        with self.assertRaises(ValueError):
            services.confirm_booking(booking)

        services.complete_booking(booking)
        self.assertEqual(booking.status, 'completed')
        with self.assertRaisesMessage(ValueError, 'Cannot cancel a completed booking'):
            services.cancel_booking(booking)

    def test_cancel_then_complete(self):
        booking = self.make_stored_booking(self.barbara, self.client_row, MONDAY, time(9, 0), time(10, 0))

        services.cancel_booking(booking)
        booking.refresh_from_db()
        self.assertEqual(booking.status, 'cancelled')
        with self.assertRaisesMessage(ValueError, 'Booking is already cancelled'):
            services.cancel_booking(booking)
        with self.assertRaisesMessage(ValueError, 'Cannot complete a cancelled booking'):
            services.complete_booking(booking)

    def test_worker_time_windows(self):
        self.make_stored_booking(self.barbara, self.client_row, MONDAY, time(9, 0), time(10, 0))

        windows = services.worker_time_windows(self.barbara.pk, MONDAY)

        self.assertEqual(windows, [('08:00', '09:00'), ('10:00', '17:00')])
        self.assertIsNone(services.worker_time_windows(9999, MONDAY))

    def test_seed_sample_data(self):
        created = services.seed_sample_data(clients=4, workers=3, seed=42)

        self.assertEqual(created, (4, 3))
        self.assertEqual(Client.objects.count(), 4)
        self.assertEqual(PSWWorker.objects.count(), 3)
        for worker in PSWWorker.objects.all():
            weekdays = list(worker.availability.values_list('weekday', flat=True))
            self.assertTrue(3 <= len(weekdays) <= 5)
            self.assertTrue(all(0 <= d <= 4 for d in weekdays))
            self.assertTrue(15 <= worker.hourly_rate <= 35)
            self.assertEqual(len(worker.specialties), 2)

    def test_seed_can_keep_existing_rows(self):
        services.seed_sample_data(clients=1, workers=1, seed=1, clear=False)
        self.assertEqual(Client.objects.count(), 3)
        self.assertEqual(PSWWorker.objects.count(), 3)


class MatchWorkerAPITests(BookingDataMixin, APITestCase):
    """Test /api/match-worker/."""

    url = '/api/match-worker/'

    def test_usage_hint(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('findBest', response.data['message'])

    def test_matches(self):
        response = self.client.post(self.url, {
            'clientId': self.client_row.pk,
            'dates': ['2025-12-01', '2025-12-03'],
            'startTime': '9:00',
            'endTime': '12:00',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(len(response.data['matches']), 2)
        first = response.data['matches'][0]
        self.assertEqual(first['worker']['fullName'], 'Barbara Johnson')
        self.assertEqual(first['score'], 100)
        self.assertEqual(first['hourlyRate'], 25.0)

    def test_best_match(self):
        response = self.client.post(self.url, {
            'clientId': self.client_row.pk,
            'dates': ['2025-12-01'],
            'startTime': '09:00',
            'endTime': '12:00',
            'findBest': True,
        }, format='json')

        self.assertEqual(response.data['bestMatch']['worker']['firstName'], 'Barbara')
        self.assertNotIn('matches', response.data)

    def test_no_match_is_not_an_error(self):
        response = self.client.post(self.url, {
            'clientId': self.client_row.pk,
            'dates': ['2025-12-02'],
            'startTime': '09:00',
            'endTime': '12:00',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['message'], 'No available workers found')

    def test_unknown_client(self):
        response = self.client.post(self.url, {
            'clientId': 9999,
            'dates': ['2025-12-01'],
            'startTime': '09:00',
            'endTime': '12:00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_invalid_body(self):
        response = self.client.post(self.url, {
            'clientId': self.client_row.pk,
            'dates': [],
            'startTime': '12:00',
            'endTime': '9am',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('dates', response.data)
        self.assertIn('endTime', response.data)


class BookWithWorkerAPITests(BookingDataMixin, APITestCase):
    """Test /api/book-with-worker/."""

    url = '/api/book-with-worker/'

    def post(self, parsed, client_id=None):
        with patch('bookings.services.BookingParser', return_value=FakeParser(parsed)):
            return self.client.post(self.url, {
                'input': 'book barbara johnson 9am-12pm on monday',
                'clientId': client_id or self.client_row.pk,
            }, format='json')

    def test_creates_booking(self):
        response = self.post(parsed_request())

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['message'], 'Booking confirmed with Barbara Johnson')
        self.assertEqual(response.data['booking']['id'], '2025-12-01_09-00_UTC')
        self.assertEqual(response.data['booking']['startTime'], '09:00')
        self.assertEqual(response.data['booking']['workerId'], self.barbara.pk)

    def test_unknown_worker(self):
        response = self.post(parsed_request(attendees=['nobody']))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unavailable(self):
        response = self.post(parsed_request(daysOfWeek=['sunday']))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_parse_failure(self):
        response = self.post(None)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_usage_hint(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class ParseBookingAPITests(APITestCase):
    """Test /api/parse-booking/."""

    @override_settings(OPENROUTER_API_KEY='', OPENAI_API_KEY='')
    def test_without_provider(self):
        response = self.client.post('/api/parse-booking/', {'input': 'standup with alice'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['errors'][0]['provider'], 'none')

    def test_parsed(self):
        parsed = ParsedBookingRequest.from_payload({'attendees': ['alice'], 'daysOfWeek': ['monday']})
        with patch('bookings.services.BookingParser', return_value=FakeParser(parsed)):
            response = self.client.post('/api/parse-booking/', {'input': 'standup with alice'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['used'], 'ai')
        self.assertEqual(response.data['parsed']['attendees'], ['alice'])
        self.assertEqual(response.data['parsed']['daysOfWeek'], ['monday'])

    def test_missing_input(self):
        response = self.client.post('/api/parse-booking/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class WorkerDirectoryAPITests(BookingDataMixin, APITestCase):
    """Test /api/psw-workers/ and /api/clients/."""

    def test_list_workers(self):
        response = self.client.get('/api/psw-workers/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(
            [w['fullName'] for w in response.data['workers']],
            ['Barbara Johnson', 'Maria Lopez'],
        )

    def test_filters(self):
        response = self.client.get('/api/psw-workers/', {'maxRate': '20', 'sortBy': 'rate'})
        self.assertEqual([w['firstName'] for w in response.data['workers']], ['Maria'])

        response = self.client.get('/api/psw-workers/', {'availableDays': '1,3'})
        self.assertEqual(response.data['total'], 0)

        response = self.client.get('/api/psw-workers/', {'keyword': 'sudbury'})
        self.assertEqual(response.data['total'], 1)

    def test_invalid_days(self):
        response = self.client.get('/api/psw-workers/', {'availableDays': '0,9'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_worker_detail(self):
        response = self.client.get(f'/api/psw-workers/{self.barbara.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['worker']['lastName'], 'Johnson')
        self.assertEqual(response.data['worker']['availability'][0]['dayOfWeek'], 0)

    def test_worker_detail_not_found(self):
        response = self.client.get('/api/psw-workers/9999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_worker_windows(self):
        self.make_stored_booking(self.barbara, self.client_row, MONDAY, time(12, 0), time(13, 0))

        response = self.client.get(f'/api/psw-workers/{self.barbara.pk}/windows/', {'date': '2025-12-01'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['windows'], [
            {'startTime': '08:00', 'endTime': '12:00'},
            {'startTime': '13:00', 'endTime': '17:00'},
        ])

    def test_list_clients(self):
        response = self.client.get('/api/clients/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['clients']), 2)
        self.assertEqual(response.data['clients'][0]['fullName'], 'Ann Client')


class CalendarUserAPITests(APITestCase):
    """Test /api/users/."""

    def test_create_and_merge(self):
        response = self.client.post('/api/users/', {
            'users': [{'name': 'Alice', 'email': 'alice@example.com'}, {'name': 'Bob'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        alice = CalendarUser.objects.get(name='Alice')
        self.client.post('/api/users/', {
            'users': [{'id': alice.pk, 'availability': 'Monday-Friday 9-5'}],
        }, format='json')

        response = self.client.get('/api/users/')
        users = {u['name']: u for u in response.data['users']}
        self.assertEqual(users['Alice']['email'], 'alice@example.com')
        self.assertEqual(users['Alice']['availability'], 'Monday-Friday 9-5')

    def test_new_user_needs_name(self):
        response = self.client.post('/api/users/', {'users': [{'email': 'x@example.com'}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class BookingAPITests(BookingDataMixin, APITestCase):
    """Test /api/bookings/ endpoints."""

    def setUp(self):
        super().setUp()
        self.alice = CalendarUser.objects.create(name='Alice')

    def test_upsert_generic_slots(self):
        payload = {'bookings': [{
            'date': '2025-12-10',
            'startTime': '9:00',
            'endTime': '10:00',
            'title': 'Standup',
            'attendees': [str(self.alice.pk)],
        }]}

        response = self.client.post('/api/bookings/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['bookings'][0]['id'], '2025-12-10_09-00_UTC')

        self.client.post('/api/bookings/', payload, format='json')
        response = self.client.get('/api/bookings/')
        self.assertEqual(len(response.data['bookings']), 1)
        self.assertEqual(response.data['bookings'][0]['kind'], 'generic-slot')

    def test_upsert_refuses_worker_slot(self):
        self.make_stored_booking(self.barbara, self.client_row, MONDAY, time(9, 0), time(10, 0))

        response = self.client.post('/api/bookings/', {'bookings': [{
            'date': '2025-12-01',
            'startTime': '09:00',
            'endTime': '10:00',
            'title': 'Standup',
        }]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_create_from_request(self):
        response = self.client.post('/api/bookings/create/', {
            'attendees': ['alice', 'carol'],
            'daysOfWeek': ['wednesday'],
            'startTime': '09:00',
            'endTime': '10:00',
            'month': 12,
            'year': 2025,
            'title': 'Standup',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['bookings']), 5)
        self.assertEqual(response.data['message'], 'Created 5 bookings. Note: User "carol" not found')

    def test_create_from_invalid_request(self):
        response = self.client.post('/api/bookings/create/', {
            'attendees': 'alice',
            'startTime': '25:00',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('request', response.data)

    def test_create_from_request_with_overlong_title(self):
        response = self.client.post('/api/bookings/create/', {
            'attendees': ['alice'],
            'daysOfWeek': ['wednesday'],
            'title': 'x' * 250,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('request', response.data)
        self.assertEqual(Booking.objects.count(), 0)

    def test_create_from_request_without_users(self):
        response = self.client.post('/api/bookings/create/', {
            'attendees': ['carol'],
            'daysOfWeek': ['monday'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_detail_and_status_changes(self):
        booking = self.make_stored_booking(self.barbara, self.client_row, MONDAY, time(9, 0), time(10, 0))
        url = f'/api/bookings/{booking.pk}/'

        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['workerName'], 'Barbara Johnson')

        response = self.client.post(url + 'confirm/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.post(url + 'complete/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_cancel(self):
        booking = self.make_stored_booking(self.barbara, self.client_row, MONDAY, time(9, 0), time(10, 0))

        response = self.client.delete(f'/api/bookings/{booking.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        booking.refresh_from_db()
        self.assertEqual(booking.status, 'cancelled')

    def test_missing_booking(self):
        response = self.client.get('/api/bookings/2030-01-01_09-00_UTC/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ManagementCommandTests(TestCase):
    """Test management commands."""

    def test_seed_psw_data(self):
        out = StringIO()
        call_command('seed_psw_data', clients=5, workers=3, seed=7, stdout=out)

        self.assertEqual(Client.objects.count(), 5)
        self.assertEqual(PSWWorker.objects.count(), 3)
        self.assertIn('Successfully seeded 5 client(s) and 3 PSW worker(s)', out.getvalue())

    def test_seed_is_reproducible(self):
        call_command('seed_psw_data', clients=3, workers=3, seed=11, stdout=StringIO())
        first = list(PSWWorker.objects.values_list('first_name', 'last_name', 'hourly_rate'))

        call_command('seed_psw_data', clients=3, workers=3, seed=11, stdout=StringIO())
        second = list(PSWWorker.objects.values_list('first_name', 'last_name', 'hourly_rate'))

        self.assertEqual(first, second)
