"""FastAPI routers package."""

from .booking import router as booking_router
from .crowd import router as crowd_router
from .emergency import router as emergency_router
from .health import router as health_router
from .metrics import router as metrics_router
from .notification import router as notification_router
from .parking import router as parking_router
from .payment import router as payment_router
from .queue import router as queue_router
from .realtime import router as realtime_router
from .traffic import router as traffic_router
from .weather import router as weather_router

__all__ = [
    "booking_router",
    "crowd_router",
    "emergency_router",
    "health_router",
    "metrics_router",
    "notification_router",
    "parking_router",
    "payment_router",
    "queue_router",
    "realtime_router",
    "traffic_router",
    "weather_router",
]
