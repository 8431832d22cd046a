from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from bookings import services
from bookings.allocation import canonical_date
from bookings.exceptions import CapacityExceeded
from bookings.models import Booking


class Command(BaseCommand):
    help = "Populate database with sample bookings"

    def add_arguments(self, parser):
        parser.add_argument(
            "--start",
            help="First date to book (YYYY-MM-DD), defaults to today",
        )

    def handle(self, *args, **options):
        try:
            start = canonical_date(options["start"]) if options.get("start") else timezone.localdate()
        except ValueError as exc:
            raise CommandError(str(exc))

        # Rooms are assigned by the service layer, not listed here
        bookings_data = [
            {
                "booking_id": "sample-1",
                "offset": 0,
                "guest_name": "Anna Schmidt",
                "room_count": 2,
                "remarks": "Late arrival, around 22:00",
            },
            {
                "booking_id": "sample-2",
                "offset": 0,
                "guest_name": "Kenji Sato",
                "room_count": 1,
                "remarks": "",
            },
            {
                "booking_id": "sample-3",
                "offset": 1,
                "guest_name": "Maria Rossi",
                "room_count": 3,
                "remarks": "Family reunion",
            },
            {
                "booking_id": "sample-4",
                "offset": 3,
                "guest_name": "Tom Baker",
                "room_count": 1,
                "remarks": "Vegetarian breakfast",
            },
            {
                "booking_id": "sample-5",
                "offset": 3,
                "guest_name": "Lena Novak",
                "room_count": 1,
                "remarks": "",
            },
        ]

        for data in bookings_data:
            booking_id = data["booking_id"]
            guest_name = data["guest_name"]
            if Booking.objects.filter(pk=booking_id).exists():
                self.stdout.write(f"Booking {booking_id} already exists")
                continue

            day = start + timedelta(days=data["offset"])
            try:
                booking = services.create_booking(
                    date=day,
                    guest_name=guest_name,
                    room_count=data["room_count"],
                    remarks=data["remarks"],
                    booking_id=booking_id,
                )
            except CapacityExceeded as exc:
                self.stdout.write(self.style.WARNING(f"Skipped {guest_name} on {day}: {exc}"))
                continue

            self.stdout.write(
                f"Created booking: {booking.guest_name} on {booking.date} - rooms {booking.room_numbers}"
            )

        self.stdout.write(
            self.style.SUCCESS("Successfully populated database with sample data")
        )
