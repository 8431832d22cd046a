from rest_framework import serializers

from . import services
from .allocation import TOTAL_ROOMS, canonical_date
from .models import Booking

MAX_CALENDAR_DAYS = 366


class CalendarDateField(serializers.DateField):
    """Date field that keeps only the calendar day of whatever it is given"""

    def to_internal_value(self, value):
        try:
            return canonical_date(value)
        except ValueError:
            self.fail("invalid", format="YYYY-MM-DD")


class BookingSerializer(serializers.ModelSerializer):
    id = serializers.CharField(required=False, allow_blank=True, max_length=64)
    date = CalendarDateField()
    guest_name = serializers.CharField(max_length=150)
    room_count = serializers.IntegerField(min_value=1, max_value=TOTAL_ROOMS)
    room_numbers = serializers.ListField(child=serializers.IntegerField(), read_only=True)
    remarks = serializers.CharField(allow_blank=True, required=False)

    class Meta:
        model = Booking
        fields = ("id", "date", "guest_name", "room_count", "room_numbers", "remarks", "created_at")
        read_only_fields = ("created_at",)

    def validate_id(self, value):
        if self.instance is not None:
            if value and value != self.instance.pk:
                raise serializers.ValidationError("Booking id cannot be changed.")
            return self.instance.pk

        if not value:
            return None
        if Booking.objects.filter(pk=value).exists():
            raise serializers.ValidationError("A booking with this id already exists.")
        return value

    def create(self, validated_data):
        return services.create_booking(
            date=validated_data["date"],
            guest_name=validated_data["guest_name"],
            room_count=validated_data["room_count"],
            remarks=validated_data.get("remarks", ""),
            booking_id=validated_data.get("id"),
        )

    def update(self, instance, validated_data):
        # Room numbers are never taken from the client, they are reassigned
        return services.update_booking(
            instance.pk,
            date=validated_data.get("date", instance.date),
            guest_name=validated_data.get("guest_name", instance.guest_name),
            room_count=validated_data.get("room_count", instance.room_count),
            remarks=validated_data.get("remarks", instance.remarks),
        )


class BookingListQuerySerializer(serializers.Serializer):
    date = CalendarDateField(required=False)
    from_date = CalendarDateField(required=False)
    to_date = CalendarDateField(required=False)


class AvailabilityQuerySerializer(serializers.Serializer):
    date = CalendarDateField()
    room_count = serializers.IntegerField(min_value=1, max_value=TOTAL_ROOMS)
    exclude = serializers.CharField(required=False, allow_blank=True)


class AvailabilitySerializer(serializers.Serializer):
    date = serializers.DateField()
    room_count = serializers.IntegerField()
    admitted = serializers.BooleanField()
    headroom = serializers.IntegerField()
    room_numbers = serializers.ListField(child=serializers.IntegerField())


class CalendarQuerySerializer(serializers.Serializer):
    from_date = CalendarDateField()
    to_date = CalendarDateField()

    def validate(self, data):
        if data["to_date"] < data["from_date"]:
            raise serializers.ValidationError("from_date must be before to_date")
        if (data["to_date"] - data["from_date"]).days >= MAX_CALENDAR_DAYS:
            raise serializers.ValidationError(f"Date range cannot exceed {MAX_CALENDAR_DAYS} days")
        return data


class OccupancySerializer(serializers.Serializer):
    date = serializers.DateField()
    booked = serializers.IntegerField()
    headroom = serializers.IntegerField()
    rooms_in_use = serializers.ListField(child=serializers.IntegerField())


class BulkDeleteSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.CharField(), allow_empty=False)
