import logging
from datetime import timedelta

from django.db import DatabaseError, transaction

from .allocation import (
    TOTAL_ROOMS,
    assign_rooms,
    canonical_date,
    check_capacity,
    rooms_booked,
    rooms_in_use,
)
from .exceptions import BookingNotFound, CapacityExceeded, InvalidBooking, PersistenceError
from .models import Booking, RoomAssignment

logger = logging.getLogger(__name__)


def list_bookings_for_date(day, exclude_id=None, lock=False):
    """All bookings on ``day``, optionally without one id. ``lock`` needs an open transaction."""
    queryset = Booking.objects.filter(date=canonical_date(day))
    if exclude_id is not None:
        queryset = queryset.exclude(pk=exclude_id)
    if lock:
        queryset = queryset.select_for_update()
    return list(queryset.prefetch_related("assignments"))


def _clean(date, guest_name, room_count):
    try:
        day = canonical_date(date)
    except ValueError as exc:
        raise InvalidBooking(str(exc)) from exc

    guest_name = (guest_name or "").strip()
    if not guest_name:
        raise InvalidBooking("Guest name is required.")

    if isinstance(room_count, bool) or not isinstance(room_count, int):
        raise InvalidBooking("Number of rooms must be a whole number.")
    if room_count < 1 or room_count > TOTAL_ROOMS:
        raise InvalidBooking(f"Number of rooms must be between 1 and {TOTAL_ROOMS}.")

    return day, guest_name


def _allocate(day, room_count, exclude_id=None):
    snapshot = list_bookings_for_date(day, exclude_id=exclude_id, lock=True)
    capacity = check_capacity(day, room_count, snapshot, exclude_id)
    if not capacity.admitted:
        logger.info(
            "Rejected %s room(s) on %s, only %s available", room_count, day, capacity.headroom
        )
        raise CapacityExceeded(capacity.headroom)
    return assign_rooms(day, room_count, snapshot, exclude_id)


def _assign(booking, room_numbers):
    booking.assignments.all().delete()
    RoomAssignment.objects.bulk_create([
        RoomAssignment(booking=booking, date=booking.date, room_number=number)
        for number in room_numbers
    ])


def _fetch(booking_id):
    return Booking.objects.prefetch_related("assignments").get(pk=booking_id)


def create_booking(date, guest_name, room_count, remarks="", booking_id=None):
    day, guest_name = _clean(date, guest_name, room_count)

    try:
        with transaction.atomic():
            if booking_id and Booking.objects.filter(pk=booking_id).exists():
                raise InvalidBooking(f"Booking {booking_id} already exists.")

            room_numbers = _allocate(day, room_count)

            booking = Booking(
                date=day,
                guest_name=guest_name,
                room_count=room_count,
                remarks=remarks or "",
            )
            if booking_id:
                booking.id = booking_id
            booking.save(force_insert=True)
            _assign(booking, room_numbers)

        logger.info("Created booking %s on %s with rooms %s", booking.pk, day, room_numbers)
        return _fetch(booking.pk)
    except DatabaseError as exc:
        logger.error("Failed to create booking on %s: %s", day, exc)
        raise PersistenceError(str(exc)) from exc


def update_booking(booking_id, date, guest_name, room_count, remarks=""):
    day, guest_name = _clean(date, guest_name, room_count)

    try:
        with transaction.atomic():
            try:
                booking = Booking.objects.select_for_update().get(pk=booking_id)
            except Booking.DoesNotExist:
                raise BookingNotFound(booking_id)

            # Recomputed against the other bookings on the (possibly new) date
            room_numbers = _allocate(day, room_count, exclude_id=booking.pk)

            booking.date = day
            booking.guest_name = guest_name
            booking.room_count = room_count
            booking.remarks = remarks or ""
            booking.save(update_fields=["date", "guest_name", "room_count", "remarks"])
            _assign(booking, room_numbers)

        logger.info("Updated booking %s on %s with rooms %s", booking.pk, day, room_numbers)
        return _fetch(booking.pk)
    except DatabaseError as exc:
        logger.error("Failed to update booking %s: %s", booking_id, exc)
        raise PersistenceError(str(exc)) from exc


def delete_booking(booking_id):
    try:
        with transaction.atomic():
            deleted, _ = Booking.objects.filter(pk=booking_id).delete()
    except DatabaseError as exc:
        logger.error("Failed to delete booking %s: %s", booking_id, exc)
        raise PersistenceError(str(exc)) from exc

    if not deleted:
        raise BookingNotFound(booking_id)
    logger.info("Deleted booking %s", booking_id)


def delete_bookings(booking_ids):
    """Delete every id that exists. Returns ``(deleted_ids, missing_ids)``."""
    booking_ids = list(dict.fromkeys(str(booking_id) for booking_id in booking_ids))

    try:
        with transaction.atomic():
            existing = set(
                Booking.objects.filter(pk__in=booking_ids).values_list("pk", flat=True)
            )
            Booking.objects.filter(pk__in=existing).delete()
    except DatabaseError as exc:
        logger.error("Failed to delete bookings %s: %s", booking_ids, exc)
        raise PersistenceError(str(exc)) from exc

    deleted = [booking_id for booking_id in booking_ids if booking_id in existing]
    missing = [booking_id for booking_id in booking_ids if booking_id not in existing]
    logger.info("Bulk deleted %s booking(s)", len(deleted))
    return deleted, missing


def preview_allocation(date, room_count, exclude_id=None):
    """What a create/edit would get right now, without writing anything."""
    day = canonical_date(date)
    snapshot = list_bookings_for_date(day, exclude_id=exclude_id)
    capacity = check_capacity(day, room_count, snapshot, exclude_id)
    room_numbers = assign_rooms(day, room_count, snapshot, exclude_id) if capacity.admitted else []
    return {
        "date": day,
        "room_count": room_count,
        "admitted": capacity.admitted,
        "headroom": capacity.headroom,
        "room_numbers": room_numbers,
    }


def occupancy(date_from, date_to):
    date_from, date_to = canonical_date(date_from), canonical_date(date_to)
    bookings = list(
        Booking.objects.filter(date__range=(date_from, date_to)).prefetch_related("assignments")
    )

    days = []
    current = date_from
    while current <= date_to:
        booked = rooms_booked(current, bookings)
        days.append({
            "date": current,
            "booked": booked,
            "headroom": TOTAL_ROOMS - booked,
            "rooms_in_use": sorted(rooms_in_use(current, bookings)),
        })
        current += timedelta(days=1)
    return days
