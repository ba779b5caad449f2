"""
Admin configuration for the bookings app.
"""

from django.contrib import admin
from .models import Availability, Booking, CalendarUser, Client, PSWWorker


class AvailabilityInline(admin.TabularInline):
    model = Availability
    extra = 0
    fields = ['weekday', 'start_time', 'end_time', 'is_recurring', 'range_start', 'range_end']


@admin.register(PSWWorker)
class PSWWorkerAdmin(admin.ModelAdmin):
    """Admin interface for PSWWorker model."""

    list_display = ['full_name', 'location', 'hourly_rate', 'email', 'created_at']
    search_fields = ['first_name', 'last_name', 'location', 'email']
    inlines = [AvailabilityInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('first_name', 'last_name', 'age', 'email', 'phone')
        }),
        ('Work', {
            'fields': ('location', 'hourly_rate', 'specialties')
        }),
        ('Metadata', {
            'fields': ('created_at',),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_at']


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    """Admin interface for Client model."""

    list_display = ['full_name', 'location', 'email', 'created_at']
    search_fields = ['first_name', 'last_name', 'location', 'email']
    readonly_fields = ['created_at']


@admin.register(Availability)
class AvailabilityAdmin(admin.ModelAdmin):
    list_display = ['worker', 'weekday_name', 'start_time', 'end_time', 'is_recurring']
    list_filter = ['weekday', 'is_recurring']


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Admin interface for Booking model."""

    list_display = ['id', 'kind', 'worker_name', 'client_name', 'title', 'date', 'start_time', 'end_time', 'status']
    list_filter = ['kind', 'status', 'date']
    search_fields = ['id', 'worker_name', 'client_name', 'title']
    date_hierarchy = 'date'

    fieldsets = (
        ('Basic Information', {
            'fields': ('id', 'kind', 'title', 'description')
        }),
        ('Parties', {
            'fields': ('worker', 'worker_name', 'client', 'client_name', 'attendees')
        }),
        ('Schedule', {
            'fields': ('date', 'start_time', 'end_time')
        }),
        ('Status', {
            'fields': ('status',)
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_at', 'updated_at']


@admin.register(CalendarUser)
class CalendarUserAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'availability']
    search_fields = ['name', 'email']
