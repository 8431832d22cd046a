import logging

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import Http404, HttpResponse, JsonResponse
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from . import services
from .exceptions import (
    AllocationError,
    BookingNotFound,
    CapacityExceeded,
    InvalidBooking,
    PersistenceError,
)
from .export import write_bookings_csv
from .models import Booking
from .serializers import (
    AvailabilityQuerySerializer,
    AvailabilitySerializer,
    BookingListQuerySerializer,
    BookingSerializer,
    BulkDeleteSerializer,
    CalendarQuerySerializer,
    OccupancySerializer,
)

logger = logging.getLogger(__name__)


def welcome(request):
    return JsonResponse({"message": "Welcome to the Guest House Booking System"})


def health_check(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as exc:
        logger.error("Health check failed: %s", exc)
        return JsonResponse({"status": "error", "message": str(exc)}, status=500)
    return JsonResponse({"status": "ok"})


def room_list(request):
    return JsonResponse(settings.GUESTHOUSE_ROOMS, safe=False)


def room_names():
    return {room["number"]: room["name"] for room in settings.GUESTHOUSE_ROOMS}


class BookingViewSet(viewsets.ModelViewSet):
    queryset = Booking.objects.prefetch_related("assignments")
    serializer_class = BookingSerializer

    def handle_exception(self, exc):
        if isinstance(exc, CapacityExceeded):
            return Response({"error": str(exc), "headroom": exc.headroom},
                            status=status.HTTP_409_CONFLICT)
        if isinstance(exc, AllocationError):
            return Response({"error": str(exc)}, status=status.HTTP_409_CONFLICT)
        if isinstance(exc, (BookingNotFound, Http404)):
            return Response({"error": "Booking not found"}, status=status.HTTP_404_NOT_FOUND)
        if isinstance(exc, InvalidBooking):
            return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, PersistenceError):
            return Response({"error": "Unable to save booking. Please try again.",
                             "detail": str(exc)},
                            status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return super().handle_exception(exc)

    def list(self, request):
        """List bookings, optionally for one date or a date range"""
        query = BookingListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        queryset = self.get_queryset()
        filters = (("date", "date"), ("from_date", "date__gte"), ("to_date", "date__lte"))
        for param, lookup in filters:
            day = query.validated_data.get(param)
            if day is not None:
                queryset = queryset.filter(**{lookup: day})

        serializer = self.get_serializer(queryset, many=True)
        return Response(serializer.data)

    def perform_destroy(self, instance):
        services.delete_booking(instance.pk)

    @action(detail=False, methods=["post"])
    def bulk_delete(self, request):
        """Delete several bookings at once"""
        serializer = BulkDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        deleted, missing = services.delete_bookings(serializer.validated_data["ids"])
        return Response({"deleted": deleted, "missing": missing})

    @action(detail=False, methods=["get"])
    def availability(self, request):
        """Check whether a room request fits on a date, without booking it"""
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = services.preview_allocation(
            query.validated_data["date"],
            query.validated_data["room_count"],
            exclude_id=query.validated_data.get("exclude") or None,
        )
        return Response(AvailabilitySerializer(result).data)

    @action(detail=False, methods=["get"])
    def calendar(self, request):
        """Rooms booked and still free for every day in a range"""
        query = CalendarQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        days = services.occupancy(query.validated_data["from_date"], query.validated_data["to_date"])
        return Response(OccupancySerializer(days, many=True).data)

    @action(detail=False, methods=["get"])
    def export(self, request):
        """Download all bookings as CSV"""
        response = HttpResponse(content_type="text/csv; charset=utf-8")
        filename = f"bookings-{timezone.now():%Y%m%d%H%M%S}.csv"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'

        write_bookings_csv(response, self.get_queryset(), room_names())
        return response
