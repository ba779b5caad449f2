"""
Repository between the ORM and the matching core.

Loads clients, workers and calendar users as plain records, and writes
bookings back with a conditional upsert keyed on the derived booking id.
"""

import logging
from typing import Iterable, List, Optional

from django.db import transaction
from django.db.models import Prefetch

from .models import Availability, Booking, CalendarUser, Client, PSWWorker
from .timeutils import normalize_time, to_time
from .types import (
    KIND_CLIENT_BOOKING,
    KIND_GENERIC_SLOT,
    KIND_WORKER_BOOKING,
    BookingRecord,
    BookingSlot,
    CalendarUserRecord,
    ClientProfile,
    DateRange,
    WorkerAvailability,
    WorkerProfile,
)

logger = logging.getLogger(__name__)


class SlotTakenError(ValueError):
    """Raised when a booking id is already held by someone else."""


class BookingRepository:
    """Reads and writes booking data for one request."""

    def get_client(self, client_id) -> Optional[ClientProfile]:
        client = self._clients().filter(pk=client_id).first()
        return client_to_record(client) if client else None

    def get_worker(self, worker_id) -> Optional[WorkerProfile]:
        worker = self._workers().filter(pk=worker_id).first()
        return worker_to_record(worker) if worker else None

    def list_workers(self) -> List[WorkerProfile]:
        return [worker_to_record(worker) for worker in self._workers()]

    def list_clients(self) -> List[ClientProfile]:
        return [client_to_record(client) for client in self._clients()]

    def find_worker_by_name(self, name: str) -> Optional[WorkerProfile]:
        """First worker (by id) whose name loosely matches."""
        for worker in self._workers():
            if worker.matches_name(name):
                return worker_to_record(worker)
        return None

    def list_users(self) -> List[CalendarUserRecord]:
        return [
            CalendarUserRecord(id=str(user.pk), name=user.name, email=user.email)
            for user in CalendarUser.objects.all()
        ]

    @transaction.atomic
    def upsert_users(self, users: Iterable[dict]) -> List[CalendarUser]:
        """Create or merge calendar users; known ids only update the given fields."""
        stored = []
        for entry in users:
            fields = {k: entry[k] for k in ('name', 'email', 'availability') if k in entry}
            user_id = entry.get('id')
            user = CalendarUser.objects.filter(pk=user_id).first() if user_id is not None else None

            if user is None:
                user = CalendarUser.objects.create(**fields)
            else:
                for name, value in fields.items():
                    setattr(user, name, value)
                user.save(update_fields=list(fields) or None)
            stored.append(user)

        logger.info('Upserted %d calendar user(s)', len(stored))
        return stored

    @transaction.atomic
    def upsert_worker_booking(
        self,
        booking_id: str,
        worker: WorkerProfile,
        client: ClientProfile,
        on_date,
        start_time: str,
        end_time: str,
        status: str = 'confirmed'
    ) -> Booking:
        """
        Store a worker booking under its derived id.

        Raises:
            SlotTakenError: If the id is held by another worker or client and
                not cancelled
        """
        existing = Booking.objects.select_for_update().filter(pk=booking_id).first()
        if existing and existing.status != 'cancelled' and (
            existing.kind != KIND_WORKER_BOOKING
            or str(existing.worker_id) != worker.id
            or str(existing.client_id) != client.id
        ):
            raise SlotTakenError(
                f'Booking slot {booking_id} is already taken (one booking per date and start time)'
            )

        booking, created = Booking.objects.update_or_create(
            pk=booking_id,
            defaults={
                'kind': KIND_WORKER_BOOKING,
                'worker_id': int(worker.id),
                'client_id': int(client.id),
                'worker_name': worker.full_name,
                'client_name': client.full_name,
                'date': on_date,
                'start_time': to_time(start_time),
                'end_time': to_time(end_time),
                'status': status,
                'title': '',
                'attendees': [],
                'description': '',
            }
        )
        logger.info('%s worker booking %s', 'Created' if created else 'Updated', booking_id)
        return booking

    @transaction.atomic
    def upsert_slots(self, slots: Iterable[BookingSlot]) -> List[Booking]:
        """
        Store generic slots under their derived ids.

        Raises:
            SlotTakenError: If an id is held by a worker booking
        """
        stored = []
        for slot in slots:
            existing = Booking.objects.select_for_update().filter(pk=slot.id).first()
            if existing and existing.status != 'cancelled' and existing.kind != KIND_GENERIC_SLOT:
                raise SlotTakenError(
                    f'Booking slot {slot.id} is already taken (one booking per date and start time)'
                )

            booking, _ = Booking.objects.update_or_create(
                pk=slot.id,
                defaults={
                    'kind': KIND_GENERIC_SLOT,
                    'worker': None,
                    'client': None,
                    'worker_name': '',
                    'client_name': '',
                    'status': 'confirmed',
                    'date': slot.date,
                    'start_time': to_time(slot.start_time),
                    'end_time': to_time(slot.end_time),
                    'title': slot.title,
                    'attendees': list(slot.attendees),
                    'description': slot.description,
                }
            )
            stored.append(booking)

        logger.info('Stored %d generic slot(s)', len(stored))
        return stored

    def _clients(self):
        return Client.objects.prefetch_related(
            Prefetch('bookings', queryset=Booking.objects.active()),
        )

    def _workers(self):
        return PSWWorker.objects.with_schedule()


def availability_to_record(entry: Availability) -> WorkerAvailability:
    date_range = None
    if entry.range_start and entry.range_end:
        date_range = DateRange(start=entry.range_start, end=entry.range_end)
    return WorkerAvailability(
        id=str(entry.pk),
        weekday=entry.weekday,
        start_time=normalize_time(entry.start_time),
        end_time=normalize_time(entry.end_time),
        is_recurring=entry.is_recurring,
        date_range=date_range,
    )


def worker_booking_record(booking: Booking) -> BookingRecord:
    """Worker-side copy: the client is the counterparty."""
    return BookingRecord(
        id=booking.pk,
        counterparty_id=str(booking.client_id) if booking.client_id else None,
        counterparty_name=booking.client_name,
        date=booking.date,
        start_time=normalize_time(booking.start_time),
        end_time=normalize_time(booking.end_time),
        status=booking.status,
        created_at=booking.created_at,
        kind=KIND_WORKER_BOOKING,
    )


def client_booking_record(booking: Booking) -> BookingRecord:
    """Client-side copy: the worker is the counterparty."""
    return BookingRecord(
        id=booking.pk,
        counterparty_id=str(booking.worker_id) if booking.worker_id else None,
        counterparty_name=booking.worker_name,
        date=booking.date,
        start_time=normalize_time(booking.start_time),
        end_time=normalize_time(booking.end_time),
        status=booking.status,
        created_at=booking.created_at,
        kind=KIND_CLIENT_BOOKING,
    )


def worker_to_record(worker: PSWWorker) -> WorkerProfile:
    return WorkerProfile(
        id=str(worker.pk),
        first_name=worker.first_name,
        last_name=worker.last_name,
        location=worker.location,
        hourly_rate=float(worker.hourly_rate),
        specialties=list(worker.specialties or []),
        availability=[availability_to_record(a) for a in worker.availability.all()],
        bookings=[worker_booking_record(b) for b in worker.bookings.all()],
        email=worker.email,
        phone=worker.phone,
        age=worker.age,
    )


def client_to_record(client: Client) -> ClientProfile:
    return ClientProfile(
        id=str(client.pk),
        first_name=client.first_name,
        last_name=client.last_name,
        location=client.location,
        bookings=[client_booking_record(b) for b in client.bookings.all()],
        email=client.email,
        phone=client.phone,
        age=client.age,
    )
