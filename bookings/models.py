import uuid

from django.db import models
from django.db.models import Q
from django.core.validators import MinValueValidator, MaxValueValidator

from .allocation import TOTAL_ROOMS


def generate_booking_id():
    return uuid.uuid4().hex


class Booking(models.Model):
    id = models.CharField(max_length=64, primary_key=True, default=generate_booking_id, editable=False)
    date = models.DateField(db_index=True)
    guest_name = models.CharField(max_length=150)
    room_count = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(TOTAL_ROOMS)]
    )
    remarks = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["date", "created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(room_count__gte=1) & Q(room_count__lte=TOTAL_ROOMS),
                name="booking_room_count_in_range",
            ),
        ]

    def __str__(self):
        return f"{self.guest_name} on {self.date} ({self.room_count} room(s))"

    @property
    def room_numbers(self):
        return sorted(assignment.room_number for assignment in self.assignments.all())


class RoomAssignment(models.Model):
    """One physical room held by a booking on its date."""
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="assignments")
    date = models.DateField()
    room_number = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(TOTAL_ROOMS)]
    )

    class Meta:
        ordering = ["date", "room_number"]
        constraints = [
            # A room can be held by at most one booking per date
            models.UniqueConstraint(fields=["date", "room_number"], name="unique_room_per_date"),
            models.UniqueConstraint(fields=["booking", "room_number"], name="unique_room_per_booking"),
            models.CheckConstraint(
                condition=Q(room_number__gte=1) & Q(room_number__lte=TOTAL_ROOMS),
                name="assignment_room_number_in_range",
            ),
        ]
