"""Service layer package."""

from .booking_service import BookingService
from .crowd_service import CrowdService
from .emergency_service import EmergencyService
from .notification_service import NotificationDispatcher, NotificationMessage
from .parking_service import ParkingService
from .payment_service import PaymentService
from .queue_service import QueueService
from .temple_service import TempleService
from .traffic_service import TrafficService
from .weather_service import WeatherService

__all__ = [
    "BookingService",
    "CrowdService",
    "EmergencyService",
    "NotificationDispatcher",
    "NotificationMessage",
    "ParkingService",
    "PaymentService",
    "QueueService",
    "TempleService",
    "TrafficService",
    "WeatherService",
]
