"""Booking router for darshan bookings."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import ChangeFeedDependency, DispatcherDependency, RequiredAuth
from ..core.security import CurrentUser
from ..realtime.feed import ChangeFeed
from ..schemas.booking import Booking, CancelBookingRequest, CreateBookingRequest, GetBookingRequest
from ..schemas.common import PROBLEM_RESPONSES
from ..services.booking_service import BookingService
from ..services.notification_service import NotificationDispatcher
from ..services.queue_service import QueueService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking.model_validate(booking_model.to_record())


@router.post("/create", response_model=Booking, status_code=201)
async def create_booking(
    request: CreateBookingRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """
    Book a darshan slot.

    The booking starts pending and joins the queue once it is paid.
    """
    booking = await BookingService(db, QueueService(db)).create_booking(request, user)

    return JSONResponse(
        status_code=201,
        content=convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    booking = await BookingService(db, QueueService(db)).get_booking(request.booking_id, user)

    return JSONResponse(
        status_code=200,
        content=convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = ChangeFeedDependency,
    dispatcher: NotificationDispatcher = DispatcherDependency,
) -> JSONResponse:
    """
    Cancel a booking and remove it from the queue.

    Cancelling an already cancelled booking returns it unchanged.
    """
    queue_service = QueueService(db, feed, dispatcher)
    booking = await BookingService(db, queue_service).cancel_booking(request, user)

    logger.info(
        "Booking cancel handled",
        extra={"booking_id": request.booking_id, "user_id": user.user_id}
    )

    return JSONResponse(
        status_code=200,
        content=convert_booking_to_schema(booking).model_dump(mode="json")
    )
