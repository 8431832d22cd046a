from django.urls import path
from rest_framework.routers import DefaultRouter
from bookings.views import BookingViewSet, room_list

router = DefaultRouter()
router.register(r"bookings", BookingViewSet)

urlpatterns = [
    path("rooms/", room_list, name="rooms"),
] + router.urls
