"""
Capacity checks and room assignment for a single calendar day.

Every function here works on a snapshot of bookings handed in by the caller
and never touches the database. A snapshot item only needs ``id``, ``date``,
``room_count`` and ``room_numbers`` attributes.
"""
from collections import namedtuple
from datetime import date, datetime

from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import AllocationError, InvalidBooking

TOTAL_ROOMS = 3
ROOM_NUMBERS = tuple(range(1, TOTAL_ROOMS + 1))

CapacityCheck = namedtuple("CapacityCheck", ["admitted", "headroom"])


def canonical_date(value):
    """Reduce a date, datetime or ISO string to a plain ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        value = value.strip()
        parsed = parse_date(value)
        if parsed is not None:
            return parsed
        parsed = parse_datetime(value)
        if parsed is not None:
            return parsed.date()
    raise ValueError(f"Invalid date {value!r}. Use YYYY-MM-DD")


def _same_day(day, existing, exclude_id):
    return [
        booking for booking in existing
        if booking.date == day and (exclude_id is None or str(booking.id) != str(exclude_id))
    ]


def _check_room_count(value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidBooking(f"Room count must be a positive integer, got {value!r}")


def rooms_booked(day, existing, exclude_id=None):
    return sum(booking.room_count for booking in _same_day(day, existing, exclude_id))


def rooms_in_use(day, existing, exclude_id=None):
    used = set()
    for booking in _same_day(day, existing, exclude_id):
        used.update(booking.room_numbers)
    return used


def check_capacity(day, requested_rooms, existing, exclude_id=None):
    """
    Decide whether ``requested_rooms`` more rooms fit on ``day``.

    The booking identified by ``exclude_id`` is left out of the tally so an
    edit never counts against itself. Running out of rooms is a normal
    outcome (``admitted=False``), not an error.
    """
    _check_room_count(requested_rooms)
    booked = rooms_booked(day, existing, exclude_id)
    return CapacityCheck(
        admitted=booked + requested_rooms <= TOTAL_ROOMS,
        headroom=TOTAL_ROOMS - booked,
    )


def assign_rooms(day, rooms_needed, existing, exclude_id=None):
    """
    Pick the lowest-numbered free rooms on ``day``.

    Callers must have admitted the request with ``check_capacity`` first.
    If the snapshot still does not leave enough free rooms the data is
    inconsistent and ``AllocationError`` is raised rather than handing back
    a short list.
    """
    _check_room_count(rooms_needed)
    used = rooms_in_use(day, existing, exclude_id)
    free = [number for number in ROOM_NUMBERS if number not in used]
    if len(free) < rooms_needed:
        raise AllocationError(
            f"Cannot assign {rooms_needed} room(s) on {day}: only {len(free)} free"
        )
    return free[:rooms_needed]
