# Generated manually (initial migration).
import bookings.models
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=bookings.models.generate_booking_id,
                        editable=False,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("date", models.DateField(db_index=True)),
                ("guest_name", models.CharField(max_length=150)),
                (
                    "room_count",
                    models.PositiveSmallIntegerField(
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(3),
                        ]
                    ),
                ),
                ("remarks", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["date", "created_at"],
            },
        ),
        migrations.CreateModel(
            name="RoomAssignment",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("date", models.DateField()),
                (
                    "room_number",
                    models.PositiveSmallIntegerField(
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(3),
                        ]
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assignments",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "ordering": ["date", "room_number"],
            },
        ),
        migrations.AddConstraint(
            model_name="booking",
            constraint=models.CheckConstraint(
                condition=models.Q(("room_count__gte", 1), ("room_count__lte", 3)),
                name="booking_room_count_in_range",
            ),
        ),
        migrations.AddConstraint(
            model_name="roomassignment",
            constraint=models.UniqueConstraint(
                fields=("date", "room_number"), name="unique_room_per_date"
            ),
        ),
        migrations.AddConstraint(
            model_name="roomassignment",
            constraint=models.UniqueConstraint(
                fields=("booking", "room_number"), name="unique_room_per_booking"
            ),
        ),
        migrations.AddConstraint(
            model_name="roomassignment",
            constraint=models.CheckConstraint(
                condition=models.Q(("room_number__gte", 1), ("room_number__lte", 3)),
                name="assignment_room_number_in_range",
            ),
        ),
    ]
