"""
Models for the PSW booking system.

- Client and PSWWorker hold the two sides of a care booking
- Availability stores a worker's weekly (or date-bounded) working windows
- Booking stores every placed booking, worker bookings and generic calendar
  slots alike, told apart by an explicit `kind`
- CalendarUser holds the people generic calendar slots are booked for
"""

from django.db import models
from django.core.exceptions import ValidationError

from .managers import BookingManager, PSWWorkerManager


WEEKDAY_CHOICES = [
    (0, 'Monday'),
    (1, 'Tuesday'),
    (2, 'Wednesday'),
    (3, 'Thursday'),
    (4, 'Friday'),
    (5, 'Saturday'),
    (6, 'Sunday'),
]


class CalendarUser(models.Model):
    """A person generic calendar slots can be booked for."""

    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True, default='')
    availability = models.CharField(
        max_length=200,
        blank=True,
        default='',
        help_text="Free-form availability note, e.g. 'Monday-Friday 9-5'"
    )

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Client(models.Model):
    """A person receiving care."""

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    age = models.PositiveIntegerField(null=True, blank=True)
    location = models.CharField(max_length=255, help_text="Home address")
    email = models.EmailField()
    phone = models.CharField(max_length=30, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class PSWWorker(models.Model):
    """A personal support worker clients can book."""

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    age = models.PositiveIntegerField(null=True, blank=True)
    location = models.CharField(max_length=255, help_text="Work or home address")
    email = models.EmailField()
    phone = models.CharField(max_length=30, blank=True, default='')
    specialties = models.JSONField(
        default=list,
        blank=True,
        help_text="e.g. ['elderly care', 'mobility assist']"
    )
    hourly_rate = models.DecimalField(max_digits=6, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)

    objects = PSWWorkerManager()

    class Meta:
        ordering = ['id']
        verbose_name = 'PSW worker'

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def matches_name(self, name):
        """Loose name match: full name contains it, or it contains first or last name."""
        wanted = name.strip().lower()
        if not wanted:
            return False
        if wanted in self.full_name.lower():
            return True
        # blank name parts would match anything
        parts = [part.strip().lower() for part in (self.first_name, self.last_name)]
        return any(part and part in wanted for part in parts)


class Availability(models.Model):
    """
    One working window of a worker.

    Recurring windows repeat every week on `weekday`. Non-recurring windows
    are bounded by `range_start`/`range_end` and only take part in matching
    when date-bounded availability is switched on.
    """

    worker = models.ForeignKey(
        PSWWorker,
        on_delete=models.CASCADE,
        related_name='availability'
    )
    weekday = models.IntegerField(
        choices=WEEKDAY_CHOICES,
        help_text="Day of week (0=Monday, 6=Sunday)"
    )
    start_time = models.TimeField()
    end_time = models.TimeField()
    is_recurring = models.BooleanField(default=True)
    range_start = models.DateField(null=True, blank=True)
    range_end = models.DateField(null=True, blank=True)

    class Meta:
        ordering = ['worker', 'id']
        verbose_name_plural = 'availability'
        indexes = [
            models.Index(fields=['worker', 'weekday'], name='availability_worker_day_idx'),
        ]

    def __str__(self):
        kind = 'every' if self.is_recurring else 'one-off'
        return (
            f"{self.worker} - {kind} {self.weekday_name} "
            f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}"
        )

    @property
    def weekday_name(self):
        """Get human-readable weekday name."""
        return dict(WEEKDAY_CHOICES).get(self.weekday, 'Unknown')

    def clean(self):
        """Validate availability window."""
        super().clean()

        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValidationError({
                'end_time': 'End time must be after start time.'
            })

        if (self.range_start is None) != (self.range_end is None):
            raise ValidationError({
                'range_end': 'Date range needs both a start and an end.'
            })

        if self.range_start and self.range_end and self.range_start > self.range_end:
            raise ValidationError({
                'range_end': 'Range end must not be before range start.'
            })

    def save(self, *args, **kwargs):
        """Save with validation."""
        self.full_clean()
        super().save(*args, **kwargs)


class Booking(models.Model):
    """
    A placed booking.

    The primary key is derived from date and start time
    (`YYYY-MM-DD_HH-MM_UTC`), so storing the same request again updates the
    existing row.
    """

    KIND_CHOICES = [
        ('worker-booking', 'Worker booking'),
        ('generic-slot', 'Generic slot'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('confirmed', 'Confirmed'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    id = models.CharField(max_length=64, primary_key=True)
    kind = models.CharField(max_length=20, choices=KIND_CHOICES)

    worker = models.ForeignKey(
        PSWWorker,
        on_delete=models.SET_NULL,
        related_name='bookings',
        null=True,
        blank=True
    )
    client = models.ForeignKey(
        Client,
        on_delete=models.SET_NULL,
        related_name='bookings',
        null=True,
        blank=True
    )
    worker_name = models.CharField(max_length=200, blank=True, default='')
    client_name = models.CharField(max_length=200, blank=True, default='')

    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='confirmed'
    )
    title = models.CharField(max_length=200, blank=True, default='')
    attendees = models.JSONField(
        default=list,
        blank=True,
        help_text="Calendar user ids (generic slots only)"
    )
    description = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BookingManager()

    class Meta:
        ordering = ['date', 'start_time']
        indexes = [
            models.Index(fields=['worker', 'date'], name='booking_worker_date_idx'),
            models.Index(fields=['client', 'date'], name='booking_client_date_idx'),
            models.Index(fields=['status'], name='booking_status_idx'),
        ]

    def __str__(self):
        status_str = f" [{self.status}]" if self.status != 'confirmed' else ""
        who = self.worker_name or self.title
        return f"{who} - {self.date} {self.start_time.strftime('%H:%M')}{status_str}"

    @property
    def is_worker_booking(self):
        return self.kind == 'worker-booking'

    def clean(self):
        """Validate booking data."""
        super().clean()

        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValidationError({
                'end_time': 'End time must be after start time.'
            })

        if self.kind == 'worker-booking' and not (self.worker_id or self.worker_name):
            raise ValidationError({
                'worker': 'Worker bookings need a worker.'
            })

    def save(self, *args, **kwargs):
        """Save with validation."""
        self.full_clean()
        super().save(*args, **kwargs)
