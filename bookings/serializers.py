"""
Serializers for the PSW booking API.

Request and response bodies use camelCase keys. Core records (dataclasses from
types.py) are serialized with plain Serializers; stored rows with
ModelSerializers.
"""

from rest_framework import serializers

from .models import Booking, CalendarUser
from .slots import make_booking_id
from .timeutils import InvalidTimeError, normalize_time, to_minutes
from .types import BookingRequestError, BookingSlot, ParsedBookingRequest, WorkerSearchFilters


def _time_field_value(value):
    try:
        return normalize_time(value)
    except InvalidTimeError as exc:
        raise serializers.ValidationError(str(exc))


class DateRangeSerializer(serializers.Serializer):
    start = serializers.DateField()
    end = serializers.DateField()


class WorkerAvailabilitySerializer(serializers.Serializer):
    """Serializer for a worker's availability window (output)."""

    id = serializers.CharField(allow_null=True)
    dayOfWeek = serializers.IntegerField(source='weekday')
    startTime = serializers.CharField(source='start_time')
    endTime = serializers.CharField(source='end_time')
    isRecurring = serializers.BooleanField(source='is_recurring')
    dateRange = DateRangeSerializer(source='date_range', allow_null=True)


class BookingRecordSerializer(serializers.Serializer):
    """Serializer for one side's copy of a booking (output)."""

    id = serializers.CharField()
    kind = serializers.CharField()
    counterpartyId = serializers.CharField(source='counterparty_id', allow_null=True)
    counterpartyName = serializers.CharField(source='counterparty_name')
    date = serializers.DateField()
    startTime = serializers.CharField(source='start_time')
    endTime = serializers.CharField(source='end_time')
    status = serializers.CharField()
    createdAt = serializers.DateTimeField(source='created_at', allow_null=True)


class WorkerProfileSerializer(serializers.Serializer):
    """Serializer for a PSW worker record (output)."""

    id = serializers.CharField()
    firstName = serializers.CharField(source='first_name')
    lastName = serializers.CharField(source='last_name')
    fullName = serializers.CharField(source='full_name')
    age = serializers.IntegerField(allow_null=True)
    location = serializers.CharField()
    email = serializers.CharField()
    phone = serializers.CharField()
    hourlyRate = serializers.FloatField(source='hourly_rate')
    specialties = serializers.ListField(child=serializers.CharField())
    availability = WorkerAvailabilitySerializer(many=True)
    bookings = BookingRecordSerializer(many=True)


class ClientProfileSerializer(serializers.Serializer):
    """Serializer for a client record (output)."""

    id = serializers.CharField()
    firstName = serializers.CharField(source='first_name')
    lastName = serializers.CharField(source='last_name')
    fullName = serializers.CharField(source='full_name')
    age = serializers.IntegerField(allow_null=True)
    location = serializers.CharField()
    email = serializers.CharField()
    phone = serializers.CharField()
    bookings = BookingRecordSerializer(many=True)


class MatchedWorkerSerializer(serializers.Serializer):
    worker = WorkerProfileSerializer()
    conflicts = serializers.IntegerField()
    distance = serializers.FloatField()
    hourlyRate = serializers.FloatField(source='hourly_rate')
    score = serializers.FloatField()


class BookingReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying a stored Booking (output)."""

    workerId = serializers.IntegerField(source='worker_id', allow_null=True)
    clientId = serializers.IntegerField(source='client_id', allow_null=True)
    workerName = serializers.CharField(source='worker_name')
    clientName = serializers.CharField(source='client_name')
    startTime = serializers.TimeField(source='start_time', format='%H:%M')
    endTime = serializers.TimeField(source='end_time', format='%H:%M')
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')

    class Meta:
        model = Booking
        fields = [
            'id',
            'kind',
            'workerId',
            'clientId',
            'workerName',
            'clientName',
            'date',
            'startTime',
            'endTime',
            'status',
            'title',
            'attendees',
            'description',
            'createdAt',
            'updatedAt',
        ]


class CalendarUserSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying CalendarUser (output)."""

    class Meta:
        model = CalendarUser
        fields = ['id', 'name', 'email', 'availability']


class CalendarUserWriteSerializer(serializers.Serializer):
    """One entry of a calendar user merge; only the given fields are written."""

    id = serializers.IntegerField(required=False)
    name = serializers.CharField(max_length=200, required=False)
    email = serializers.EmailField(required=False, allow_blank=True)
    availability = serializers.CharField(max_length=200, required=False, allow_blank=True)

    def validate(self, data):
        """New users need a name."""
        if 'id' not in data and not data.get('name'):
            raise serializers.ValidationError({
                'name': 'Name is required for new users.'
            })
        return data


class UsersUpsertSerializer(serializers.Serializer):
    users = CalendarUserWriteSerializer(many=True)


class ParseBookingSerializer(serializers.Serializer):
    input = serializers.CharField()


class MatchWorkerSerializer(serializers.Serializer):
    """Serializer for a worker match request (input)."""

    clientId = serializers.IntegerField()
    dates = serializers.ListField(child=serializers.DateField(), allow_empty=False)
    startTime = serializers.CharField()
    endTime = serializers.CharField()
    findBest = serializers.BooleanField(default=False)

    def validate_startTime(self, value):
        return _time_field_value(value)

    def validate_endTime(self, value):
        return _time_field_value(value)

    def validate(self, data):
        """Ensure start is before end."""
        if to_minutes(data['startTime']) >= to_minutes(data['endTime']):
            raise serializers.ValidationError({
                'endTime': 'End time must be after start time.'
            })
        return data


class BookWithWorkerSerializer(serializers.Serializer):
    input = serializers.CharField()
    clientId = serializers.IntegerField()


class WorkerSearchQuerySerializer(serializers.Serializer):
    """Serializer for worker directory query parameters."""

    keyword = serializers.CharField(required=False, allow_blank=True)
    minRate = serializers.FloatField(required=False, min_value=0)
    maxRate = serializers.FloatField(required=False, min_value=0)
    location = serializers.CharField(required=False, allow_blank=True)
    specialty = serializers.CharField(required=False, allow_blank=True)
    availableDays = serializers.CharField(required=False, allow_blank=True)
    sortBy = serializers.ChoiceField(choices=['name', 'rate', 'location'], default='name')

    def validate_availableDays(self, value):
        """Comma-separated weekday numbers (0=Monday, 6=Sunday)."""
        days = []
        for part in value.split(','):
            part = part.strip()
            if not part:
                continue
            if not part.isdigit() or int(part) > 6:
                raise serializers.ValidationError(f'Invalid weekday "{part}"; use 0 (Monday) to 6 (Sunday).')
            days.append(int(part))
        return days

    def to_filters(self) -> WorkerSearchFilters:
        data = self.validated_data
        return WorkerSearchFilters(
            keyword=data.get('keyword') or None,
            min_rate=data.get('minRate'),
            max_rate=data.get('maxRate'),
            location=data.get('location') or None,
            specialty=data.get('specialty') or None,
            available_weekdays=data.get('availableDays') or [],
            sort_by=data.get('sortBy'),
        )


class WorkerWindowsQuerySerializer(serializers.Serializer):
    date = serializers.DateField()


class BookingSlotWriteSerializer(serializers.Serializer):
    """
    Serializer for storing a generic slot (input).

    The id is derived from date and start time, so the same slot posted twice
    lands on the same row.
    """

    userId = serializers.CharField(required=False, allow_null=True, default=None)
    date = serializers.DateField()
    startTime = serializers.CharField()
    endTime = serializers.CharField()
    title = serializers.CharField(max_length=200)
    attendees = serializers.ListField(child=serializers.CharField(), default=list)
    description = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_startTime(self, value):
        return _time_field_value(value)

    def validate_endTime(self, value):
        return _time_field_value(value)

    def validate(self, data):
        if to_minutes(data['startTime']) >= to_minutes(data['endTime']):
            raise serializers.ValidationError({
                'endTime': 'End time must be after start time.'
            })
        return data

    @staticmethod
    def to_slot(data) -> BookingSlot:
        return BookingSlot(
            id=make_booking_id(data['date'], data['startTime']),
            user_id=data.get('userId'),
            date=data['date'],
            start_time=data['startTime'],
            end_time=data['endTime'],
            title=data['title'],
            attendees=list(data.get('attendees') or []),
            description=data.get('description', ''),
        )


class BookingSlotsUpsertSerializer(serializers.Serializer):
    bookings = BookingSlotWriteSerializer(many=True, allow_empty=False)


class ParsedBookingRequestSerializer(serializers.Serializer):
    """Accepts a parsed booking request body (the parser's JSON shape)."""

    def to_internal_value(self, data):
        try:
            request = ParsedBookingRequest.from_payload(data)
        except BookingRequestError as exc:
            raise serializers.ValidationError({'request': exc.problems})
        return {'request': request}
