"""Payment router for UPI intents and their outcomes."""

from datetime import timedelta

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import ensure_utc
from ..core.config import settings
from ..core.database import get_db
from ..core.dependencies import ChangeFeedDependency, DispatcherDependency, RequiredAuth
from ..core.security import CurrentUser
from ..models.payment import PaymentTransactionStatus
from ..realtime.feed import ChangeFeed
from ..schemas.common import PROBLEM_RESPONSES
from ..schemas.payment import (
    CreateUpiPaymentRequest,
    PaymentStatusResponse,
    PaymentUpdateResponse,
    UpdateUpiPaymentRequest,
    UpiPaymentIntent,
    VerifyUpiPaymentRequest,
)
from ..schemas.queue import QueueEntry
from ..services.notification_service import NotificationDispatcher
from ..services.payment_service import PaymentService
from ..services.queue_service import QueueService
from .booking import convert_booking_to_schema

router = APIRouter(prefix="/v1/payment/upi", tags=["payment"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _convert_status_to_schema(payment_model) -> PaymentStatusResponse:
    return PaymentStatusResponse(
        booking_id=str(payment_model.booking_id),
        transaction_reference=payment_model.transaction_reference,
        status=PaymentTransactionStatus(payment_model.status).value,
        completed_at=payment_model.completed_at,
    )


@router.post("/create", response_model=UpiPaymentIntent, status_code=201)
async def create_upi_payment(
    request: CreateUpiPaymentRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Create a UPI payment intent for a pending booking."""
    payment = await PaymentService(db, QueueService(db)).create_intent(request, user)

    response = UpiPaymentIntent(
        payment_id=str(payment.id),
        booking_id=str(payment.booking_id),
        transaction_reference=payment.transaction_reference,
        upi_string=payment.upi_string,
        amount=payment.amount,
        status=PaymentTransactionStatus(payment.status).value,
        expires_at=ensure_utc(payment.created_at) + timedelta(seconds=settings.payment_intent_ttl_seconds),
    )
    return JSONResponse(status_code=201, content=response.model_dump(mode="json"))


@router.post("/verify", response_model=PaymentStatusResponse)
async def verify_upi_payment(
    request: VerifyUpiPaymentRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    payment = await PaymentService(db, QueueService(db)).verify(request, user)

    return JSONResponse(status_code=200, content=_convert_status_to_schema(payment).model_dump(mode="json"))


@router.post("/update", response_model=PaymentUpdateResponse)
async def update_upi_payment(
    request: UpdateUpiPaymentRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = ChangeFeedDependency,
    dispatcher: NotificationDispatcher = DispatcherDependency,
) -> JSONResponse:
    """
    Record the outcome of a UPI payment.

    On success the booking is confirmed and enters the temple queue;
    the new queue entry is returned with it.
    """
    payment, booking, entry = await PaymentService(
        db, QueueService(db, feed, dispatcher)
    ).apply_status(request, user)

    response = PaymentUpdateResponse(
        payment=_convert_status_to_schema(payment),
        booking=convert_booking_to_schema(booking),
        queue_entry=QueueEntry.model_validate(entry.to_dict()) if entry else None,
    )
    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))
