"""Booking service: the booking boundary that feeds the queue."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError
from ..core.security import STAFF_ROLES, CurrentUser
from ..models.booking import Booking, BookingStatus
from ..schemas.booking import CancelBookingRequest, CreateBookingRequest
from .common import parse_uuid
from .queue_service import QueueService
from .temple_service import TempleService

logger = logging.getLogger(__name__)


class BookingService:
    """
    Service for booking-related operations.

    Bookings start pending and are confirmed by a successful payment,
    which is also when they join the queue. Cancelling a booking cancels
    its queue entry in the same transaction.
    """

    def __init__(self, db: AsyncSession, queue_service: QueueService):
        self.db = db
        self.queue_service = queue_service
        self.temple_service = TempleService(db)

    async def create_booking(self, request: CreateBookingRequest, user: CurrentUser) -> Booking:
        """
        Create a pending booking.

        Raises:
            NotFoundError: If the temple does not exist
            ConflictError: If the temple is not accepting bookings
        """
        temple = await self.temple_service.get_temple(request.temple_id)
        if not temple.is_active:
            raise ConflictError(detail=f"Temple '{temple.name}' is not accepting bookings")

        booking = Booking(
            user_id=user.user_id,
            temple_id=temple.id,
            booking_date=request.booking_date,
            time_slot=request.time_slot,
            visitor_count=request.visitor_count,
            special_requirements=request.special_requirements,
            payment_amount=request.payment_amount,
            status=BookingStatus.PENDING,
        )
        self.db.add(booking)
        await self.db.commit()

        logger.info(
            "Booking created",
            extra={
                "booking_id": str(booking.id),
                "temple_id": str(temple.id),
                "visitor_count": request.visitor_count,
                "user_id": user.user_id,
            }
        )
        return booking

    async def get_booking(self, booking_id: str, user: CurrentUser) -> Booking:
        """
        Get a booking visible to ``user``.

        Raises:
            NotFoundError: If the booking does not exist
            AuthorizationError: If the booking belongs to someone else
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)
        if booking.user_id != user.user_id and not user.has_any_role(STAFF_ROLES):
            raise AuthorizationError(detail="The booking belongs to another user")
        return booking

    async def get_booking_by_id_or_raise(self, booking_id: str, path: str = "booking_id") -> Booking:
        booking = await self.db.get(Booking, parse_uuid(booking_id, path))
        if not booking:
            raise NotFoundError("booking", str(booking_id))
        return booking

    async def cancel_booking(self, request: CancelBookingRequest, user: CurrentUser) -> Booking:
        """
        Cancel a booking and its queue entry.

        Raises:
            ConflictError: If the booking is already completed
        """
        booking = await self.get_booking(request.booking_id, user)

        if booking.status == BookingStatus.CANCELLED:
            return booking
        if booking.status == BookingStatus.COMPLETED:
            raise ConflictError(
                detail=f"Booking {booking.id} is completed and cannot be cancelled",
                conflicting_resource={"booking_id": str(booking.id), "status": booking.status},
            )

        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = utcnow()
        booking.cancellation_reason = request.reason
        await self.queue_service.cancel_booking_entry(booking.id, commit=False)
        await self.queue_service.commit()

        logger.info(
            "Booking cancelled",
            extra={"booking_id": str(booking.id), "reason": request.reason, "user_id": user.user_id}
        )
        return booking
