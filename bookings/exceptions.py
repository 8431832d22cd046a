from typing import Optional


class BookingError(Exception):
    """Base class for booking errors raised by the service layer"""


class InvalidBooking(BookingError):
    """Thrown when booking input is missing or malformed"""


class CapacityExceeded(BookingError):
    """Thrown when a request would push a date above the room limit"""

    def __init__(self, headroom: int, message: Optional[str] = None) -> None:
        if message is None:
            message = f"Only {max(headroom, 0)} room(s) available on this date"
        super().__init__(message)
        self.headroom = headroom


class AllocationError(BookingError):
    """Thrown when fewer free rooms exist than were requested"""


class BookingNotFound(BookingError):
    def __init__(self, booking_id=None, message: Optional[str] = None) -> None:
        if message is None:
            message = f"Booking {booking_id} not found" if booking_id else "Booking not found"
        super().__init__(message)
        self.booking_id = booking_id


class PersistenceError(BookingError):
    """Thrown when the database rejects or fails a booking write"""
