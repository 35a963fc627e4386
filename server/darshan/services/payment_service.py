"""UPI payment service: intent creation, verification and the status webhook."""

import logging
import time
from datetime import timedelta
from decimal import Decimal
from typing import Optional, Tuple
from urllib.parse import quote
from uuid import UUID

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.config import settings
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError
from ..core.observability import metrics_collector
from ..core.security import CurrentUser
from ..domain.records import QueueEntry
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..models.payment import PaymentTransaction, PaymentTransactionStatus
from ..schemas.payment import CreateUpiPaymentRequest, UpdateUpiPaymentRequest, VerifyUpiPaymentRequest
from .booking_service import BookingService
from .queue_service import QueueService

logger = logging.getLogger(__name__)


def build_upi_string(payee_address: str, payee_name: str, amount: Decimal, booking_id: str, reference: str) -> str:
    """UPI deep link (``upi://pay``) for the payer's app."""
    return (
        f"upi://pay?pa={payee_address}&pn={quote(payee_name)}&am={amount}"
        f"&cu=INR&tn=Booking%20{booking_id}&tr={reference}"
    )


def new_transaction_reference() -> str:
    return f"SD{time.time_ns() // 1_000}"


def payment_query(booking_id: UUID, transaction_reference: str, for_update: bool = False) -> Select:
    """Select one payment of a booking; ``for_update`` locks the row and refreshes it."""
    query = select(PaymentTransaction).where(
        PaymentTransaction.booking_id == booking_id,
        PaymentTransaction.transaction_reference == transaction_reference,
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    return query


class PaymentService:
    """Service for UPI payment operations."""

    def __init__(self, db: AsyncSession, queue_service: QueueService):
        self.db = db
        self.queue_service = queue_service
        self.booking_service = BookingService(db, queue_service)

    async def create_intent(self, request: CreateUpiPaymentRequest, user: CurrentUser) -> PaymentTransaction:
        """
        Issue a pending UPI payment intent for the caller's booking.

        Raises:
            NotFoundError: If the booking does not exist
            AuthorizationError: If the booking belongs to someone else
            ConflictError: If the booking is no longer awaiting payment
        """
        booking = await self.booking_service.get_booking_by_id_or_raise(request.booking_id)
        if booking.user_id != user.user_id:
            raise AuthorizationError(detail="Payments can only be made for your own bookings")
        if booking.status != BookingStatus.PENDING:
            raise ConflictError(
                detail=f"Booking {booking.id} is {booking.status} and does not accept payments",
                conflicting_resource={"booking_id": str(booking.id), "status": booking.status},
            )

        reference = new_transaction_reference()
        payment = PaymentTransaction(
            booking_id=booking.id,
            user_id=user.user_id,
            amount=request.amount,
            payment_method="upi",
            transaction_reference=reference,
            upi_string=build_upi_string(
                settings.upi_merchant_id,
                settings.upi_payee_name,
                request.amount,
                str(booking.id),
                reference,
            ),
            status=PaymentTransactionStatus.PENDING,
        )
        self.db.add(payment)
        await self.db.commit()

        metrics_collector.record_payment(PaymentTransactionStatus.PENDING.value)
        logger.info(
            "UPI payment intent created",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "transaction_reference": reference,
                "amount": str(request.amount),
            }
        )
        return payment

    async def verify(self, request: VerifyUpiPaymentRequest, user: CurrentUser) -> PaymentTransaction:
        payment = await self._get_payment(request.booking_id, request.transaction_reference)
        if payment.user_id != user.user_id and not user.has_any_role({"admin"}):
            raise AuthorizationError(detail="The payment belongs to another user")
        return payment

    async def apply_status(
        self,
        request: UpdateUpiPaymentRequest,
        user: CurrentUser,
    ) -> Tuple[PaymentTransaction, Booking, Optional[QueueEntry]]:
        """
        Record the terminal outcome of a payment.

        A successful payment confirms the booking and puts it in the
        queue, all in one transaction. Repeating the same outcome is a
        no-op; contradicting an earlier outcome is a conflict.

        Raises:
            NotFoundError: If no such payment exists for the booking
            AuthorizationError: If the caller is neither the payer nor an admin
            ConflictError: If the payment already has a different outcome
        """
        # Row lock: concurrent webhooks for one payment apply one after the other
        payment = await self._get_payment(request.booking_id, request.transaction_reference, for_update=True)
        if payment.user_id != user.user_id and not user.has_any_role({"admin"}):
            raise AuthorizationError(detail="The payment belongs to another user")

        booking = await self.booking_service.get_booking_by_id_or_raise(request.booking_id)
        status = PaymentTransactionStatus(request.status)

        if payment.status != PaymentTransactionStatus.PENDING:
            if payment.status == status:
                entry = await self._queue_entry_or_none(booking)
                return payment, booking, entry
            raise ConflictError(
                detail=f"Payment {payment.transaction_reference} is already {payment.status}",
                conflicting_resource={
                    "transaction_reference": payment.transaction_reference,
                    "status": payment.status,
                },
            )

        payment.status = status
        payment.utr_number = request.utr_number
        entry = None

        if status == PaymentTransactionStatus.SUCCESS:
            payment.completed_at = utcnow()
            booking.payment_status = PaymentStatus.PAID
            if booking.status == BookingStatus.PENDING:
                booking.status = BookingStatus.CONFIRMED
                entry = await self.queue_service.enqueue_booking(booking, commit=False)
        else:
            booking.payment_status = PaymentStatus.FAILED

        await self.queue_service.commit()
        metrics_collector.record_payment(status.value)

        logger.info(
            "UPI payment status applied",
            extra={
                "transaction_reference": payment.transaction_reference,
                "booking_id": str(booking.id),
                "status": status.value,
                "queue_position": entry.current_position if entry else None,
            }
        )
        return payment, booking, entry

    async def expire_pending(self, ttl_seconds: Optional[int] = None) -> int:
        """Expire pending intents older than the TTL; returns how many changed."""
        ttl = ttl_seconds or settings.payment_intent_ttl_seconds
        cutoff = utcnow() - timedelta(seconds=ttl)

        result = await self.db.execute(
            update(PaymentTransaction)
            .where(
                PaymentTransaction.status == PaymentTransactionStatus.PENDING,
                PaymentTransaction.created_at < cutoff,
            )
            .values(status=PaymentTransactionStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        expired = result.rowcount or 0
        for _ in range(expired):
            metrics_collector.record_payment(PaymentTransactionStatus.EXPIRED.value)
        return expired

    async def _get_payment(
        self, booking_id: str, transaction_reference: str, for_update: bool = False
    ) -> PaymentTransaction:
        booking = await self.booking_service.get_booking_by_id_or_raise(booking_id)
        result = await self.db.execute(payment_query(booking.id, transaction_reference, for_update))
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundError("payment", transaction_reference)
        return payment

    async def _queue_entry_or_none(self, booking: Booking) -> Optional[QueueEntry]:
        try:
            return await self.queue_service.get_queue_status(str(booking.id))
        except NotFoundError:
            return None
