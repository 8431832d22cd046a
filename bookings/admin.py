from django.contrib import admin

from bookings.models import Booking, RoomAssignment


class RoomAssignmentInline(admin.TabularInline):
    model = RoomAssignment
    extra = 0
    readonly_fields = ("date", "room_number")
    can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "date",
        "guest_name",
        "room_count",
        "remarks",
        "created_at",
    )

    list_filter = ("date", "room_count")

    search_fields = ("guest_name", "remarks")

    ordering = ("-date",)

    inlines = (RoomAssignmentInline,)

    # Bookings are created and edited through the API so rooms get assigned
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
