"""
URL routing for the bookings API.
"""

from django.urls import path
from .views import (
    ParseBookingView,
    MatchWorkerView,
    BookWithWorkerView,
    WorkerListView,
    WorkerDetailView,
    WorkerWindowsView,
    ClientListView,
    CalendarUserListView,
    BookingListView,
    BookingCreateFromRequestView,
    BookingDetailView,
    BookingConfirmView,
    BookingCompleteView,
)

urlpatterns = [
    path('parse-booking/', ParseBookingView.as_view(), name='parse-booking'),
    path('match-worker/', MatchWorkerView.as_view(), name='match-worker'),
    path('book-with-worker/', BookWithWorkerView.as_view(), name='book-with-worker'),
    path('psw-workers/', WorkerListView.as_view(), name='worker-list'),
    path('psw-workers/<int:pk>/', WorkerDetailView.as_view(), name='worker-detail'),
    path('psw-workers/<int:pk>/windows/', WorkerWindowsView.as_view(), name='worker-windows'),
    path('clients/', ClientListView.as_view(), name='client-list'),
    path('users/', CalendarUserListView.as_view(), name='user-list'),
    path('bookings/', BookingListView.as_view(), name='booking-list'),
    path('bookings/create/', BookingCreateFromRequestView.as_view(), name='booking-create'),
    path('bookings/<str:pk>/', BookingDetailView.as_view(), name='booking-detail'),
    path('bookings/<str:pk>/confirm/', BookingConfirmView.as_view(), name='booking-confirm'),
    path('bookings/<str:pk>/complete/', BookingCompleteView.as_view(), name='booking-complete'),
]
