from django.test import SimpleTestCase, TestCase, TransactionTestCase, override_settings
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import DatabaseError, IntegrityError, connection, transaction
from rest_framework.test import APITestCase
from rest_framework import status
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime, timedelta
from io import StringIO
from unittest.mock import patch

from . import services
from .allocation import assign_rooms, canonical_date, check_capacity
from .exceptions import (
    AllocationError,
    BookingNotFound,
    CapacityExceeded,
    InvalidBooking,
    PersistenceError,
)
from .models import Booking, RoomAssignment

Stay = namedtuple("Stay", ["id", "date", "room_count", "room_numbers"])


class AllocationTestCase(SimpleTestCase):
    """Capacity checks and room assignment on in-memory snapshots"""

    def setUp(self):
        self.day = date(2030, 5, 1)

    def test_empty_date_assigns_lowest_rooms(self):
        check = check_capacity(self.day, 2, [])

        self.assertTrue(check.admitted)
        self.assertEqual(check.headroom, 3)
        self.assertEqual(assign_rooms(self.day, 2, []), [1, 2])

    def test_remaining_room_assigned_after_existing_booking(self):
        existing = [Stay("a", self.day, 2, [1, 2])]

        check = check_capacity(self.day, 1, existing)

        self.assertTrue(check.admitted)
        self.assertEqual(check.headroom, 1)
        self.assertEqual(assign_rooms(self.day, 1, existing), [3])

    def test_full_date_rejected_with_zero_headroom(self):
        existing = [Stay("a", self.day, 1, [1]), Stay("b", self.day, 2, [2, 3])]

        check = check_capacity(self.day, 1, existing)

        self.assertFalse(check.admitted)
        self.assertEqual(check.headroom, 0)

    def test_over_capacity_is_not_clipped(self):
        """A request bigger than the headroom is rejected as a whole"""
        existing = [Stay("a", self.day, 2, [1, 2])]

        check = check_capacity(self.day, 2, existing)

        self.assertFalse(check.admitted)
        self.assertEqual(check.headroom, 1)

    def test_request_exactly_filling_headroom_is_admitted(self):
        existing = [Stay("a", self.day, 1, [2])]

        self.assertTrue(check_capacity(self.day, 2, existing).admitted)
        self.assertEqual(assign_rooms(self.day, 2, existing), [1, 3])

    def test_edit_excludes_its_own_rooms(self):
        existing = [Stay("a", self.day, 1, [1])]

        check = check_capacity(self.day, 3, existing, exclude_id="a")

        self.assertTrue(check.admitted)
        self.assertEqual(check.headroom, 3)
        self.assertEqual(assign_rooms(self.day, 3, existing, exclude_id="a"), [1, 2, 3])

    def test_edit_keeping_room_count_always_fits(self):
        existing = [Stay("a", self.day, 1, [1]), Stay("b", self.day, 2, [2, 3])]

        for stay in existing:
            with self.subTest(booking=stay.id):
                check = check_capacity(self.day, stay.room_count, existing, exclude_id=stay.id)
                self.assertTrue(check.admitted)

    def test_freed_rooms_reused_in_ascending_order(self):
        existing = [Stay("a", self.day, 1, [1]), Stay("b", self.day, 2, [2, 3])]
        after_delete = [stay for stay in existing if stay.id != "b"]

        self.assertTrue(check_capacity(self.day, 2, after_delete).admitted)
        self.assertEqual(assign_rooms(self.day, 2, after_delete), [2, 3])

    def test_lowest_free_room_wins(self):
        existing = [Stay("a", self.day, 1, [1])]

        self.assertEqual(assign_rooms(self.day, 1, existing), [2])

    def test_allocation_is_deterministic(self):
        existing = [Stay("a", self.day, 1, [3]), Stay("b", self.day, 1, [1])]

        first = assign_rooms(self.day, 1, existing)
        again = assign_rooms(self.day, 1, existing)
        reordered = assign_rooms(self.day, 1, list(reversed(existing)))

        self.assertEqual(first, [2])
        self.assertEqual(first, again)
        self.assertEqual(first, reordered)

    def test_bookings_on_other_dates_are_ignored(self):
        existing = [Stay("a", self.day + timedelta(days=1), 3, [1, 2, 3])]

        self.assertEqual(check_capacity(self.day, 3, existing).headroom, 3)
        self.assertEqual(assign_rooms(self.day, 3, existing), [1, 2, 3])

    def test_short_allocation_raises(self):
        existing = [Stay("a", self.day, 1, [1, 2])]  # inconsistent snapshot

        with self.assertRaises(AllocationError):
            assign_rooms(self.day, 2, existing)

    def test_malformed_room_count_raises(self):
        for value in (0, -1, True, "2", 1.5):
            with self.subTest(value=value):
                with self.assertRaises(InvalidBooking):
                    check_capacity(self.day, value, [])
                with self.assertRaises(InvalidBooking):
                    assign_rooms(self.day, value, [])


class CanonicalDateTestCase(SimpleTestCase):
    def test_same_day_regardless_of_time(self):
        values = [
            date(2030, 5, 1),
            datetime(2030, 5, 1, 0, 5),
            datetime(2030, 5, 1, 23, 59),
            "2030-05-01",
            " 2030-05-01 ",
            "2030-05-01T23:30:00+14:00",
        ]
        for value in values:
            with self.subTest(value=value):
                self.assertEqual(canonical_date(value), date(2030, 5, 1))

    def test_invalid_values_raise(self):
        for value in ("05/01/2030", "2030-02-30", "", None, 20300501, "2030-05-01xyz!!", "2030-05-01garbage"):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    canonical_date(value)


class BookingServiceTestCase(TestCase):
    """Create/edit/delete through the service layer"""

    def setUp(self):
        self.day = date.today() + timedelta(days=7)

    def test_create_assigns_rooms(self):
        first = services.create_booking(self.day, "Ada Lovelace", 2)
        second = services.create_booking(self.day, "Alan Turing", 1, remarks="Late")

        self.assertEqual(first.room_numbers, [1, 2])
        self.assertEqual(second.room_numbers, [3])
        self.assertEqual(second.remarks, "Late")
        self.assertTrue(first.id)

    def test_create_keeps_supplied_id(self):
        booking = services.create_booking(self.day, "Ada", 1, booking_id="front-desk-1")

        self.assertEqual(booking.id, "front-desk-1")

    def test_create_with_existing_id_rejected(self):
        services.create_booking(self.day, "Ada", 1, booking_id="dup")

        with self.assertRaises(InvalidBooking):
            services.create_booking(self.day + timedelta(days=1), "Bob", 1, booking_id="dup")

    def test_create_over_capacity_raises_with_headroom(self):
        services.create_booking(self.day, "Ada", 2)

        with self.assertRaises(CapacityExceeded) as ctx:
            services.create_booking(self.day, "Bob", 2)

        self.assertEqual(ctx.exception.headroom, 1)
        self.assertIn("Only 1 room(s) available", str(ctx.exception))
        self.assertEqual(Booking.objects.filter(date=self.day).count(), 1)

    def test_create_invalid_fields_rejected(self):
        scenarios = [
            {"date": self.day, "guest_name": "  ", "room_count": 1},
            {"date": self.day, "guest_name": "Ada", "room_count": 0},
            {"date": self.day, "guest_name": "Ada", "room_count": 4},
            {"date": "not-a-date", "guest_name": "Ada", "room_count": 1},
        ]
        for scenario in scenarios:
            with self.subTest(scenario=scenario):
                with self.assertRaises(InvalidBooking):
                    services.create_booking(**scenario)
        self.assertEqual(Booking.objects.count(), 0)

    def test_update_with_same_room_count_succeeds_on_full_date(self):
        services.create_booking(self.day, "Ada", 1)
        booking = services.create_booking(self.day, "Bob", 2)

        updated = services.update_booking(booking.id, self.day, "Bob Smith", 2)

        self.assertEqual(updated.id, booking.id)
        self.assertEqual(updated.guest_name, "Bob Smith")
        self.assertEqual(updated.room_numbers, [2, 3])

    def test_update_grows_into_own_rooms(self):
        booking = services.create_booking(self.day, "Ada", 1)

        updated = services.update_booking(booking.id, self.day, "Ada", 3)

        self.assertEqual(updated.room_numbers, [1, 2, 3])
        self.assertEqual(RoomAssignment.objects.filter(date=self.day).count(), 3)

    def test_update_over_capacity_leaves_booking_unchanged(self):
        services.create_booking(self.day, "Ada", 2)
        booking = services.create_booking(self.day, "Bob", 1)

        with self.assertRaises(CapacityExceeded) as ctx:
            services.update_booking(booking.id, self.day, "Bob", 2)

        self.assertEqual(ctx.exception.headroom, 1)
        booking = Booking.objects.get(pk=booking.id)
        self.assertEqual(booking.room_count, 1)
        self.assertEqual(booking.room_numbers, [3])

    def test_update_moves_booking_to_new_date(self):
        other_day = self.day + timedelta(days=1)
        services.create_booking(other_day, "Carol", 1)
        booking = services.create_booking(self.day, "Ada", 2)

        updated = services.update_booking(booking.id, other_day, "Ada", 2)

        self.assertEqual(updated.date, other_day)
        self.assertEqual(updated.room_numbers, [2, 3])
        self.assertFalse(RoomAssignment.objects.filter(date=self.day).exists())

    def test_update_missing_raises_not_found(self):
        with self.assertRaises(BookingNotFound):
            services.update_booking("missing", self.day, "Ada", 1)

    def test_delete_frees_rooms_for_reuse(self):
        services.create_booking(self.day, "Ada", 1)
        middle = services.create_booking(self.day, "Bob", 2)

        services.delete_booking(middle.id)
        reused = services.create_booking(self.day, "Carol", 2)

        self.assertEqual(reused.room_numbers, [2, 3])

    def test_delete_missing_raises_not_found(self):
        with self.assertRaises(BookingNotFound):
            services.delete_booking("missing")

    def test_delete_bookings_reports_missing_ids(self):
        first = services.create_booking(self.day, "Ada", 1)
        second = services.create_booking(self.day, "Bob", 1)

        deleted, missing = services.delete_bookings([first.id, "ghost", second.id, first.id])

        self.assertEqual(deleted, [first.id, second.id])
        self.assertEqual(missing, ["ghost"])
        self.assertEqual(Booking.objects.count(), 0)
        self.assertEqual(RoomAssignment.objects.count(), 0)

    def test_list_bookings_for_date_excludes_id(self):
        first = services.create_booking(self.day, "Ada", 1)
        second = services.create_booking(self.day, "Bob", 1)
        services.create_booking(self.day + timedelta(days=1), "Carol", 1)

        self.assertEqual(
            [b.id for b in services.list_bookings_for_date(self.day)], [first.id, second.id]
        )
        self.assertEqual(
            [b.id for b in services.list_bookings_for_date(self.day, exclude_id=first.id)],
            [second.id],
        )

    def test_database_rejects_double_booked_room(self):
        booking = services.create_booking(self.day, "Ada", 1)
        other = Booking.objects.create(date=self.day, guest_name="Bob", room_count=1)

        with self.assertRaises(IntegrityError), transaction.atomic():
            RoomAssignment.objects.create(booking=other, date=self.day, room_number=booking.room_numbers[0])

    def test_persistence_failure_leaves_nothing_behind(self):
        with patch.object(RoomAssignment.objects, "bulk_create", side_effect=DatabaseError("disk full")):
            with self.assertRaises(PersistenceError) as ctx:
                services.create_booking(self.day, "Ada", 1)

        self.assertIn("disk full", str(ctx.exception))
        self.assertEqual(Booking.objects.count(), 0)

    def test_update_failure_keeps_previous_booking(self):
        booking = services.create_booking(self.day, "Ada", 1, remarks="Window seat")

        with patch.object(RoomAssignment.objects, "bulk_create", side_effect=DatabaseError("disk full")):
            with self.assertRaises(PersistenceError):
                services.update_booking(booking.id, self.day, "Grace", 2, remarks="Changed")

        booking = Booking.objects.get(pk=booking.id)
        self.assertEqual(booking.guest_name, "Ada")
        self.assertEqual(booking.room_count, 1)
        self.assertEqual(booking.remarks, "Window seat")
        self.assertEqual(booking.room_numbers, [1])

    def test_preview_allocation_does_not_write(self):
        services.create_booking(self.day, "Ada", 1)

        preview = services.preview_allocation(self.day, 2)

        self.assertTrue(preview["admitted"])
        self.assertEqual(preview["headroom"], 2)
        self.assertEqual(preview["room_numbers"], [2, 3])
        self.assertEqual(Booking.objects.count(), 1)

    def test_occupancy_summarises_each_day(self):
        services.create_booking(self.day, "Ada", 2)
        services.create_booking(self.day + timedelta(days=2), "Bob", 3)

        days = services.occupancy(self.day, self.day + timedelta(days=2))

        self.assertEqual([d["booked"] for d in days], [2, 0, 3])
        self.assertEqual([d["headroom"] for d in days], [1, 3, 0])
        self.assertEqual(days[0]["rooms_in_use"], [1, 2])


class RaceConditionTestCase(TransactionTestCase):
    """Concurrent requests for the same date must not break the room invariants"""

    def setUp(self):
        self.day = date.today() + timedelta(days=1)

    def _book(self, guest_num, room_count):
        try:
            booking = services.create_booking(self.day, f"Guest {guest_num}", room_count)
            return {"success": True, "booking_id": booking.id}
        except (CapacityExceeded, PersistenceError) as e:
            return {"success": False, "error": type(e)}
        finally:
            connection.close()

    def test_concurrent_bookings_never_exceed_capacity(self):
        num_attempts = 6

        with ThreadPoolExecutor(max_workers=num_attempts) as executor:
            futures = [
                executor.submit(self._book, i, 1 + i % 2)
                for i in range(num_attempts)
            ]
            results = [future.result() for future in as_completed(futures)]

        successful = [r for r in results if r["success"]]
        self.assertLessEqual(len(successful), 3)

        bookings = list(Booking.objects.filter(date=self.day).prefetch_related("assignments"))
        self.assertLessEqual(sum(b.room_count for b in bookings), 3)

        rooms = [number for b in bookings for number in b.room_numbers]
        self.assertEqual(len(rooms), len(set(rooms)), "A room was assigned twice")
        for booking in bookings:
            self.assertEqual(len(booking.room_numbers), booking.room_count)

    def test_sequence_of_operations_keeps_invariants(self):
        """Interleaved creates, edits and deletes on a few dates"""
        days = [self.day, self.day + timedelta(days=1)]
        created = []

        for i in range(12):
            day = days[i % 2]
            try:
                if i % 4 == 3 and created:
                    services.delete_booking(created.pop(0))
                elif i % 3 == 2 and created:
                    services.update_booking(created[-1], days[(i + 1) % 2], f"Guest {i}", 1 + i % 3)
                else:
                    created.append(services.create_booking(day, f"Guest {i}", 1 + i % 3).id)
            except CapacityExceeded:
                pass

            for check_day in days:
                bookings = services.list_bookings_for_date(check_day)
                rooms = [number for b in bookings for number in b.room_numbers]
                self.assertLessEqual(sum(b.room_count for b in bookings), 3)
                self.assertEqual(len(rooms), len(set(rooms)))


class BookingApiTestCase(APITestCase):
    """REST endpoints for bookings"""

    def setUp(self):
        self.day = date.today() + timedelta(days=10)
        self.list_url = "/api/bookings/"

    def detail_url(self, booking_id):
        return f"/api/bookings/{booking_id}/"

    def create(self, **params):
        payload = {"date": str(self.day), "guest_name": "Ada Lovelace", "room_count": 1}
        payload.update(params)
        return self.client.post(self.list_url, payload, format="json")

    def test_create_booking_returns_assigned_rooms(self):
        response = self.create(room_count=2, remarks="Anniversary")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["room_numbers"], [1, 2])
        self.assertEqual(response.data["date"], str(self.day))
        self.assertEqual(response.data["remarks"], "Anniversary")
        self.assertTrue(Booking.objects.filter(pk=response.data["id"]).exists())

    def test_create_ignores_client_room_numbers(self):
        self.create(room_count=1)

        response = self.create(room_count=1, room_numbers=[1])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["room_numbers"], [2])

    def test_create_with_client_id(self):
        response = self.create(id="abc123")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["id"], "abc123")

    def test_create_duplicate_id_rejected(self):
        self.create(id="abc123")

        response = self.create(id="abc123")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("id", response.data)

    def test_create_datetime_is_reduced_to_day(self):
        response = self.create(date=f"{self.day}T23:30:00")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["date"], str(self.day))

    def test_create_over_capacity_returns_headroom(self):
        self.create(room_count=2)

        response = self.create(room_count=2)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["headroom"], 1)
        self.assertIn("Only 1 room(s) available", response.data["error"])
        self.assertEqual(Booking.objects.count(), 1)

    def test_create_validation_errors(self):
        scenarios = [
            ({"room_count": 0}, "room_count"),
            ({"room_count": 4}, "room_count"),
            ({"guest_name": ""}, "guest_name"),
            ({"date": "05/01/2030"}, "date"),
        ]
        for params, field in scenarios:
            with self.subTest(field=field, params=params):
                response = self.create(**params)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertIn(field, response.data)

        response = self.client.post(self.list_url, {"guest_name": "Ada", "room_count": 1}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("date", response.data)
        self.assertEqual(Booking.objects.count(), 0)

    def test_update_booking_reassigns_rooms(self):
        self.create(room_count=1)
        booking_id = self.create(room_count=1).data["id"]

        response = self.client.put(self.detail_url(booking_id), {
            "date": str(self.day),
            "guest_name": "Grace Hopper",
            "room_count": 2,
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["id"], booking_id)
        self.assertEqual(response.data["room_numbers"], [2, 3])
        self.assertEqual(response.data["guest_name"], "Grace Hopper")

    def test_partial_update_keeps_other_fields(self):
        booking_id = self.create(room_count=1, remarks="Quiet room").data["id"]

        response = self.client.patch(self.detail_url(booking_id), {"room_count": 3}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["room_numbers"], [1, 2, 3])
        self.assertEqual(response.data["remarks"], "Quiet room")

    def test_update_over_capacity_returns_409(self):
        self.create(room_count=2)
        booking_id = self.create(room_count=1).data["id"]

        response = self.client.patch(self.detail_url(booking_id), {"room_count": 3}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["headroom"], 1)

    def test_update_cannot_change_id(self):
        booking_id = self.create().data["id"]

        response = self.client.patch(self.detail_url(booking_id), {"id": "other"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Booking.objects.filter(pk=booking_id).exists())

    def test_update_missing_returns_404(self):
        response = self.client.put(self.detail_url("missing"), {
            "date": str(self.day),
            "guest_name": "Ada",
            "room_count": 1,
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {"error": "Booking not found"})

    def test_delete_booking(self):
        booking_id = self.create(room_count=3).data["id"]

        response = self.client.delete(self.detail_url(booking_id))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(RoomAssignment.objects.exists())

        response = self.client.delete(self.detail_url(booking_id))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {"error": "Booking not found"})

    def test_list_filters_by_date(self):
        self.create(guest_name="Ada")
        self.create(guest_name="Bob", date=str(self.day + timedelta(days=1)))
        self.create(guest_name="Carol", date=str(self.day + timedelta(days=5)))

        response = self.client.get(self.list_url)
        self.assertEqual([b["guest_name"] for b in response.data], ["Ada", "Bob", "Carol"])

        response = self.client.get(self.list_url, {"date": str(self.day)})
        self.assertEqual([b["guest_name"] for b in response.data], ["Ada"])

        response = self.client.get(self.list_url, {
            "from_date": str(self.day + timedelta(days=1)),
            "to_date": str(self.day + timedelta(days=5)),
        })
        self.assertEqual([b["guest_name"] for b in response.data], ["Bob", "Carol"])

    def test_list_invalid_date_returns_400(self):
        response = self.client.get(self.list_url, {"from_date": "yesterday"})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("from_date", response.data)

    def test_list_accepts_datetime_filter(self):
        self.create(guest_name="Ada")
        self.create(guest_name="Bob", date=str(self.day + timedelta(days=1)))

        response = self.client.get(self.list_url, {"date": f"{self.day}T10:00"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([b["guest_name"] for b in response.data], ["Ada"])

    def test_date_with_trailing_text_returns_400(self):
        response = self.create(date=f"{self.day}xyz!!")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("date", response.data)
        self.assertEqual(Booking.objects.count(), 0)

    def test_retrieve_missing_returns_404(self):
        response = self.client.get(self.detail_url("missing"))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {"error": "Booking not found"})

    def test_availability_preview(self):
        booking_id = self.create(room_count=2).data["id"]
        url = f"{self.list_url}availability/"

        response = self.client.get(url, {"date": str(self.day), "room_count": 1})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["admitted"])
        self.assertEqual(response.data["headroom"], 1)
        self.assertEqual(response.data["room_numbers"], [3])

        response = self.client.get(url, {"date": str(self.day), "room_count": 2})
        self.assertFalse(response.data["admitted"])
        self.assertEqual(response.data["room_numbers"], [])

        response = self.client.get(url, {"date": str(self.day), "room_count": 3, "exclude": booking_id})
        self.assertTrue(response.data["admitted"])
        self.assertEqual(response.data["room_numbers"], [1, 2, 3])

    def test_availability_requires_parameters(self):
        response = self.client.get(f"{self.list_url}availability/", {"date": str(self.day)})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("room_count", response.data)

    def test_calendar(self):
        self.create(room_count=3)
        url = f"{self.list_url}calendar/"

        response = self.client.get(url, {
            "from_date": str(self.day - timedelta(days=1)),
            "to_date": str(self.day + timedelta(days=1)),
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 3)
        self.assertEqual(response.data[1]["date"], str(self.day))
        self.assertEqual(response.data[1]["booked"], 3)
        self.assertEqual(response.data[1]["headroom"], 0)
        self.assertEqual(response.data[1]["rooms_in_use"], [1, 2, 3])
        self.assertEqual(response.data[0]["headroom"], 3)

    def test_calendar_invalid_range_returns_400(self):
        url = f"{self.list_url}calendar/"

        response = self.client.get(url, {"from_date": str(self.day)})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(url, {
            "from_date": str(self.day),
            "to_date": str(self.day - timedelta(days=1)),
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(url, {
            "from_date": str(self.day),
            "to_date": str(self.day + timedelta(days=400)),
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_delete(self):
        first = self.create().data["id"]
        second = self.create().data["id"]

        response = self.client.post(f"{self.list_url}bulk_delete/", {"ids": [first, second, "ghost"]}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["deleted"], [first, second])
        self.assertEqual(response.data["missing"], ["ghost"])
        self.assertEqual(Booking.objects.count(), 0)

    def test_bulk_delete_requires_ids(self):
        response = self.client.post(f"{self.list_url}bulk_delete/", {"ids": []}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(GUESTHOUSE_ROOMS=[
        {"number": 1, "name": "Garden", "color": "#000000"},
        {"number": 2, "name": "Sea View", "color": "#111111"},
        {"number": 3, "name": "Attic", "color": "#222222"},
    ])
    def test_export_csv_uses_configured_room_names(self):
        self.create(room_count=2, guest_name='Ada "The Countess"', remarks="Tea, no sugar")

        response = self.client.get(f"{self.list_url}export/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response["Content-Type"].startswith("text/csv"))
        self.assertIn("attachment", response["Content-Disposition"])
        lines = response.content.decode().splitlines()
        self.assertEqual(lines[0], '"Date","Guest Name","Number of Rooms","Rooms","Remarks"')
        self.assertEqual(
            lines[1],
            f'"{self.day}","Ada ""The Countess""","2","Garden, Sea View","Tea, no sugar"',
        )

    def test_persistence_failure_returns_503(self):
        with patch.object(RoomAssignment.objects, "bulk_create", side_effect=DatabaseError("database is locked")):
            response = self.create()

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertIn("try again", response.data["error"])
        self.assertIn("database is locked", response.data["detail"])
        self.assertEqual(Booking.objects.count(), 0)


class SupportEndpointsTestCase(APITestCase):
    def test_health_check(self):
        response = self.client.get("/api/health")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_welcome(self):
        response = self.client.get("/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("message", response.json())

    def test_rooms_lists_configuration(self):
        response = self.client.get("/api/rooms/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([room["number"] for room in response.json()], [1, 2, 3])


class PopulateDbCommandTestCase(TestCase):
    def test_populates_sample_bookings_once(self):
        out = StringIO()

        call_command("populate_db", start="2030-01-01", stdout=out)
        call_command("populate_db", start="2030-01-01", stdout=out)

        self.assertEqual(Booking.objects.count(), 5)
        self.assertEqual(Booking.objects.get(pk="sample-3").room_numbers, [1, 2, 3])
        self.assertEqual(Booking.objects.get(pk="sample-2").room_numbers, [3])
        self.assertIn("already exists", out.getvalue())


class BookingAdminTestCase(TestCase):
    def setUp(self):
        user = get_user_model().objects.create_superuser(
            username="admin", email="admin@example.com", password="pass12345"
        )
        self.client.force_login(user)
        self.day = date.today() + timedelta(days=7)

    def test_add_is_blocked(self):
        response = self.client.post("/admin/bookings/booking/add/", {
            "date": str(self.day),
            "guest_name": "Ada",
            "room_count": 3,
            "remarks": "",
        })

        self.assertEqual(response.status_code, 403)
        self.assertEqual(Booking.objects.count(), 0)

    def test_change_is_blocked(self):
        booking = services.create_booking(self.day, "Ada", 1)

        response = self.client.post(f"/admin/bookings/booking/{booking.id}/change/", {
            "date": str(self.day),
            "guest_name": "Mallory",
            "room_count": 3,
            "remarks": "",
        })

        self.assertEqual(response.status_code, 403)
        booking = Booking.objects.get(pk=booking.id)
        self.assertEqual(booking.guest_name, "Ada")
        self.assertEqual(booking.room_numbers, [1])

    def test_changelist_is_viewable(self):
        services.create_booking(self.day, "Ada", 1)

        response = self.client.get("/admin/bookings/booking/")

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Ada")
