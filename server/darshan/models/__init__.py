"""Models module exporting all database models."""

from .booking import Booking, BookingStatus, PaymentStatus
from .crowd import CrowdData
from .emergency import EmergencyIncident, IncidentSeverity, IncidentStatus
from .notification import Notification, NotificationPriority
from .parking import ParkingData
from .payment import PaymentTransaction, PaymentTransactionStatus
from .queue import QueueStatus, QueueStatusValue
from .temple import Temple
from .traffic import TrafficData
from .user_role import UserRole

__all__ = [
    # Core entities
    "Temple",

    # Booking entities
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "PaymentTransaction",
    "PaymentTransactionStatus",

    # Queue and crowd entities
    "QueueStatus",
    "QueueStatusValue",
    "CrowdData",

    # Visitor logistics
    "ParkingData",
    "TrafficData",

    # Safety and messaging
    "EmergencyIncident",
    "IncidentSeverity",
    "IncidentStatus",
    "Notification",
    "NotificationPriority",
    "UserRole",
]
