"""
Custom managers and querysets for booking models.

QuerySets define chainable query methods.
Managers use QuerySets to enable method chaining.
No business logic should be here - only query operations.
"""

from django.db import models


class BookingQuerySet(models.QuerySet):
    """Custom queryset for Booking model with chainable methods."""

    def active(self):
        """Get bookings that still hold their slot (not cancelled)."""
        return self.exclude(status='cancelled')

    def worker_bookings(self):
        return self.filter(kind='worker-booking')

    def generic_slots(self):
        return self.filter(kind='generic-slot')


class BookingManager(models.Manager):
    """Custom manager for Booking model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return BookingQuerySet(self.model, using=self._db)

    def active(self):
        """Get bookings that still hold their slot (not cancelled)."""
        return self.get_queryset().active()

    def worker_bookings(self):
        return self.get_queryset().worker_bookings()

    def generic_slots(self):
        return self.get_queryset().generic_slots()


class PSWWorkerQuerySet(models.QuerySet):
    """Custom queryset for PSWWorker with related rows preloaded."""

    def with_schedule(self):
        """
        Prefetch availability windows and active bookings for matching.

        Cancelled bookings are left out so they no longer block a slot.
        """
        from .models import Booking

        return self.prefetch_related(
            'availability',
            models.Prefetch('bookings', queryset=Booking.objects.active()),
        )


class PSWWorkerManager(models.Manager):
    """Custom manager for PSWWorker model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return PSWWorkerQuerySet(self.model, using=self._db)

    def with_schedule(self):
        return self.get_queryset().with_schedule()
