"""Views for the PSW booking API."""

from django.shortcuts import get_object_or_404

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Booking, CalendarUser, PSWWorker
from .repository import BookingRepository, SlotTakenError
from .serializers import (
    BookingReadSerializer,
    BookingSlotsUpsertSerializer,
    BookingSlotWriteSerializer,
    BookWithWorkerSerializer,
    CalendarUserSerializer,
    ClientProfileSerializer,
    MatchedWorkerSerializer,
    MatchWorkerSerializer,
    ParseBookingSerializer,
    ParsedBookingRequestSerializer,
    UsersUpsertSerializer,
    WorkerProfileSerializer,
    WorkerSearchQuerySerializer,
    WorkerWindowsQuerySerializer,
)
from . import services
from .types import FAILURE_NO_MATCH, FAILURE_NOT_FOUND


def _failure_status(code):
    """HTTP status for a failed BookingResult / MatchResult."""
    if code == FAILURE_NOT_FOUND:
        return status.HTTP_404_NOT_FOUND
    if code == FAILURE_NO_MATCH:
        return status.HTTP_200_OK
    return status.HTTP_400_BAD_REQUEST


class ParseBookingView(APIView):
    """
    Parse a natural-language booking request.

    POST /api/parse-booking/ - {input} -> {parsed, used, errors}
    """

    def post(self, request):
        serializer = ParseBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        parsed, errors = services.parse_booking_request(serializer.validated_data['input'])
        error_dicts = [e.to_dict() for e in errors]

        if parsed is None:
            return Response({
                'error': 'Failed to parse booking request. Ensure API key is set and valid.',
                'errors': error_dicts,
            }, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            'parsed': parsed.to_payload(),
            'used': 'ai',
            'errors': error_dicts,
        })


class MatchWorkerView(APIView):
    """
    Find PSW workers available for a client.

    GET /api/match-worker/ - Usage hint
    POST /api/match-worker/ - {clientId, dates, startTime, endTime, findBest}
    """

    def get(self, request):
        return Response({
            'message': 'POST to /api/match-worker/ with { clientId, dates, startTime, endTime, findBest }',
            'example': {
                'clientId': 1,
                'dates': ['2025-12-15', '2025-12-16'],
                'startTime': '09:00',
                'endTime': '12:00',
                'findBest': True,
            },
        })

    def post(self, request):
        serializer = MatchWorkerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        result = services.match_workers(
            client_id=data['clientId'],
            dates=data['dates'],
            start_time=data['startTime'],
            end_time=data['endTime'],
            find_best=data['findBest']
        )

        body = {'success': result.success, 'message': result.message}
        if data['findBest']:
            body['bestMatch'] = MatchedWorkerSerializer(result.best_match).data if result.best_match else None
        else:
            body['matches'] = MatchedWorkerSerializer(result.matches, many=True).data

        if not result.success:
            return Response(body, status=_failure_status(result.code))
        return Response(body)


class BookWithWorkerView(APIView):
    """
    Book a named PSW worker from a natural-language request.

    GET /api/book-with-worker/ - Usage hint
    POST /api/book-with-worker/ - {input, clientId}
    """

    def get(self, request):
        return Response({
            'message': 'POST to /api/book-with-worker/ with { input, clientId }',
            'example': {
                'input': 'book Barbara Johnson 9am-12pm on monday',
                'clientId': 1,
            },
        })

    def post(self, request):
        serializer = BookWithWorkerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = services.book_with_worker(
            text=serializer.validated_data['input'],
            client_id=serializer.validated_data['clientId']
        )

        if not result.success:
            return Response({
                'success': False,
                'message': result.message,
                'errors': result.errors,
            }, status=_failure_status(result.code))

        return Response({
            'success': True,
            'message': result.message,
            'booking': BookingReadSerializer(result.bookings[0]).data,
        }, status=status.HTTP_201_CREATED)


class WorkerListView(APIView):
    """
    Browse the PSW worker directory.

    GET /api/psw-workers/?keyword=&minRate=&maxRate=&location=&specialty=&availableDays=0,2&sortBy=name
    """

    def get(self, request):
        query_serializer = WorkerSearchQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        workers = services.search_worker_directory(query_serializer.to_filters())
        return Response({
            'workers': WorkerProfileSerializer(workers, many=True).data,
            'total': len(workers),
        })


class WorkerDetailView(APIView):
    """
    Retrieve one PSW worker.

    GET /api/psw-workers/{id}/
    """

    def get(self, request, pk):
        get_object_or_404(PSWWorker, pk=pk)
        worker = BookingRepository().get_worker(pk)
        return Response({'worker': WorkerProfileSerializer(worker).data})


class WorkerWindowsView(APIView):
    """
    Free time windows of a worker on a date.

    GET /api/psw-workers/{id}/windows/?date=YYYY-MM-DD
    """

    def get(self, request, pk):
        get_object_or_404(PSWWorker, pk=pk)
        query_serializer = WorkerWindowsQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        on_date = query_serializer.validated_data['date']
        windows = services.worker_time_windows(pk, on_date)
        return Response({
            'date': on_date.isoformat(),
            'windows': [{'startTime': start, 'endTime': end} for start, end in windows],
        })


class ClientListView(APIView):
    """
    List clients.

    GET /api/clients/
    """

    def get(self, request):
        clients = BookingRepository().list_clients()
        return Response({'clients': ClientProfileSerializer(clients, many=True).data})


class CalendarUserListView(APIView):
    """
    List or merge calendar users.

    GET /api/users/ - List users
    POST /api/users/ - {users: [...]} merge by id
    """

    def get(self, request):
        users = CalendarUser.objects.all()
        return Response({'users': CalendarUserSerializer(users, many=True).data})

    def post(self, request):
        serializer = UsersUpsertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        users = services.upsert_users(serializer.validated_data['users'])
        return Response({
            'success': True,
            'count': len(users),
            'users': CalendarUserSerializer(users, many=True).data,
        })


class BookingListView(APIView):
    """
    List stored bookings or upsert generic slots.

    GET /api/bookings/ - List bookings
    POST /api/bookings/ - {bookings: [...]} upsert generic slots
    """

    def get(self, request):
        bookings = Booking.objects.all()
        return Response({'bookings': BookingReadSerializer(bookings, many=True).data})

    def post(self, request):
        serializer = BookingSlotsUpsertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        slots = [BookingSlotWriteSerializer.to_slot(entry) for entry in serializer.validated_data['bookings']]
        try:
            stored = services.save_slots(slots)
        except SlotTakenError as exc:
            return Response({'error': str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response({
            'success': True,
            'count': len(stored),
            'bookings': BookingReadSerializer(stored, many=True).data,
        })


class BookingCreateFromRequestView(APIView):
    """
    Build and store generic slots from a parsed booking request.

    POST /api/bookings/create/ - {attendees, daysOfWeek, day, startTime, endTime, month, year, title}
    """

    def post(self, request):
        serializer = ParsedBookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = services.create_bookings_from_request(serializer.validated_data['request'])
        if not result.success:
            return Response({
                'success': False,
                'message': result.message,
                'errors': result.errors,
            }, status=_failure_status(result.code))

        return Response({
            'success': True,
            'message': result.message,
            'errors': result.errors,
            'bookings': BookingReadSerializer(result.bookings, many=True).data,
        }, status=status.HTTP_201_CREATED)


class BookingDetailView(APIView):
    """
    Retrieve or cancel a booking.

    GET /api/bookings/{id}/ - Retrieve booking
    DELETE /api/bookings/{id}/ - Cancel booking
    """

    def get(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)
        return Response(BookingReadSerializer(booking).data)

    def delete(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)

        try:
            services.cancel_booking(booking)
        except ValueError as exc:
            return Response({'error': str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response({
            'message': f'Booking {booking.pk} has been cancelled.'
        }, status=status.HTTP_200_OK)


class BookingConfirmView(APIView):
    """
    Confirm a pending booking.

    POST /api/bookings/{id}/confirm/
    """

    def post(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)

        try:
            services.confirm_booking(booking)
        except ValueError as exc:
            return Response({'error': str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response({
            'message': f'Booking {booking.pk} has been confirmed.'
        }, status=status.HTTP_200_OK)


class BookingCompleteView(APIView):
    """
    Mark a booking as completed.

    POST /api/bookings/{id}/complete/
    """

    def post(self, request, pk):
        booking = get_object_or_404(Booking, pk=pk)

        try:
            services.complete_booking(booking)
        except ValueError as exc:
            return Response({'error': str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response({
            'message': f'Booking {booking.pk} has been marked as completed.'
        }, status=status.HTTP_200_OK)
