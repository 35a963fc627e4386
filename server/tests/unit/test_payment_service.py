"""Unit tests for bookings and UPI payments."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from conftest import create_booking
from darshan.core.clock import utcnow
from darshan.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from darshan.core.security import CurrentUser
from darshan.models import BookingStatus, PaymentStatus, PaymentTransactionStatus
from darshan.schemas.booking import CancelBookingRequest, CreateBookingRequest
from darshan.schemas.payment import CreateUpiPaymentRequest, UpdateUpiPaymentRequest, VerifyUpiPaymentRequest
from darshan.services.booking_service import BookingService
from darshan.services import payment_service
from darshan.services.payment_service import PaymentService, build_upi_string, payment_query
from darshan.services.queue_service import QueueService

VISITOR = CurrentUser(user_id="visitor-1")
OTHER = CurrentUser(user_id="visitor-2")
ADMIN = CurrentUser(user_id="admin-1", roles=frozenset({"admin"}))
STAFF = CurrentUser(user_id="staff-1", roles=frozenset({"temple_staff"}))


def services(session):
    queue_service = QueueService(session)
    return BookingService(session, queue_service), PaymentService(session, queue_service), queue_service


async def pending_intent(session, temple, payments):
    booking = await create_booking(session, temple, status=BookingStatus.PENDING)
    payment = await payments.create_intent(
        CreateUpiPaymentRequest(booking_id=str(booking.id), amount=Decimal("100.00")), VISITOR
    )
    return booking, payment


def status_update(booking, payment, status, utr=None):
    return UpdateUpiPaymentRequest(
        booking_id=str(booking.id),
        transaction_reference=payment.transaction_reference,
        status=status,
        utr_number=utr,
    )


def test_upi_string_carries_payee_amount_and_reference():
    upi = build_upi_string("temple@upi", "Smart Darshan", Decimal("250.00"), "b-1", "SD1")

    assert upi.startswith("upi://pay?pa=temple@upi&pn=Smart%20Darshan&am=250.00")
    assert upi.endswith("&cu=INR&tn=Booking%20b-1&tr=SD1")


@pytest.mark.asyncio
async def test_create_booking_starts_pending(test_session, temple):
    bookings, _, _ = services(test_session)

    booking = await bookings.create_booking(
        CreateBookingRequest(
            temple_id=str(temple.id),
            booking_date=date.today() + timedelta(days=3),
            time_slot="08:00-10:00",
            visitor_count=4,
            payment_amount=Decimal("200.00"),
        ),
        VISITOR,
    )

    assert booking.status == BookingStatus.PENDING
    assert booking.payment_status == PaymentStatus.PENDING
    assert booking.user_id == "visitor-1"


@pytest.mark.asyncio
async def test_booking_is_visible_to_owner_and_staff_only(test_session, temple):
    bookings, _, _ = services(test_session)
    booking = await create_booking(test_session, temple)

    assert (await bookings.get_booking(str(booking.id), VISITOR)).id == booking.id
    assert (await bookings.get_booking(str(booking.id), STAFF)).id == booking.id
    with pytest.raises(AuthorizationError):
        await bookings.get_booking(str(booking.id), OTHER)


@pytest.mark.asyncio
async def test_cancelling_a_booking_cancels_its_queue_entry(test_session, temple):
    bookings, _, queue = services(test_session)
    booking = await create_booking(test_session, temple)
    await queue.enqueue_booking(booking)

    cancelled = await bookings.cancel_booking(
        CancelBookingRequest(booking_id=str(booking.id), reason="plans changed"), VISITOR
    )

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancellation_reason == "plans changed"
    entry = await queue.get_queue_status(str(booking.id))
    assert entry.status.value == "cancelled"


@pytest.mark.asyncio
async def test_completed_booking_cannot_be_cancelled(test_session, temple):
    bookings, _, _ = services(test_session)
    booking = await create_booking(test_session, temple, status=BookingStatus.COMPLETED)

    with pytest.raises(ConflictError):
        await bookings.cancel_booking(CancelBookingRequest(booking_id=str(booking.id)), VISITOR)


@pytest.mark.asyncio
async def test_booking_is_completed_by_check_in_and_cannot_be_cancelled(test_session, temple):
    bookings, _, queue = services(test_session)
    booking = await create_booking(test_session, temple)
    await queue.enqueue_booking(booking)

    await queue.advance_queue(str(temple.id))

    assert booking.status == BookingStatus.COMPLETED
    with pytest.raises(ConflictError):
        await bookings.cancel_booking(CancelBookingRequest(booking_id=str(booking.id)), VISITOR)
    assert booking.status == BookingStatus.COMPLETED
    entry = await queue.get_queue_status(str(booking.id))
    assert entry.status.value == "completed"


@pytest.mark.asyncio
async def test_create_intent_for_own_pending_booking(test_session, temple):
    _, payments, _ = services(test_session)

    booking, payment = await pending_intent(test_session, temple, payments)

    assert payment.status == PaymentTransactionStatus.PENDING
    assert payment.transaction_reference.startswith("SD")
    assert payment.upi_string.startswith("upi://pay?pa=")
    assert f"tr={payment.transaction_reference}" in payment.upi_string
    assert payment.booking_id == booking.id


@pytest.mark.asyncio
async def test_create_intent_rejects_foreign_and_settled_bookings(test_session, temple):
    _, payments, _ = services(test_session)
    pending = await create_booking(test_session, temple, status=BookingStatus.PENDING)
    confirmed = await create_booking(test_session, temple)

    with pytest.raises(AuthorizationError):
        await payments.create_intent(
            CreateUpiPaymentRequest(booking_id=str(pending.id), amount=Decimal("10")), OTHER
        )
    with pytest.raises(ConflictError):
        await payments.create_intent(
            CreateUpiPaymentRequest(booking_id=str(confirmed.id), amount=Decimal("10")), VISITOR
        )


@pytest.mark.asyncio
async def test_successful_payment_confirms_and_queues(test_session, temple):
    _, payments, _ = services(test_session)
    booking, payment = await pending_intent(test_session, temple, payments)

    payment, booking, entry = await payments.apply_status(
        status_update(booking, payment, "success", utr="UTR123"), VISITOR
    )

    assert payment.status == PaymentTransactionStatus.SUCCESS
    assert payment.completed_at is not None
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.payment_status == PaymentStatus.PAID
    assert entry.current_position == 1


@pytest.mark.asyncio
async def test_repeated_success_is_a_no_op(test_session, temple):
    _, payments, queue = services(test_session)
    booking, payment = await pending_intent(test_session, temple, payments)
    update = status_update(booking, payment, "success")

    _, _, first = await payments.apply_status(update, VISITOR)
    _, _, second = await payments.apply_status(update, VISITOR)

    assert second.id == first.id
    assert (await queue.get_temple_queue_overview(str(temple.id))).total_in_queue == 1


def test_payment_query_locks_the_row_only_when_asked():
    booking_id = uuid4()

    locked = str(payment_query(booking_id, "SD1", for_update=True).compile(dialect=postgresql.dialect()))
    plain = str(payment_query(booking_id, "SD1").compile(dialect=postgresql.dialect()))

    assert locked.rstrip().endswith("FOR UPDATE")
    assert "FOR UPDATE" not in plain


@pytest.mark.asyncio
async def test_status_webhook_reads_the_payment_under_a_row_lock(test_session, temple, monkeypatch):
    _, payments, _ = services(test_session)
    booking, payment = await pending_intent(test_session, temple, payments)
    locking = []

    def recording_query(booking_id, reference, for_update=False):
        locking.append(for_update)
        return payment_query(booking_id, reference, for_update)

    monkeypatch.setattr(payment_service, "payment_query", recording_query)
    await payments.apply_status(status_update(booking, payment, "success"), VISITOR)

    assert locking == [True]


@pytest.mark.asyncio
async def test_contradicting_outcome_is_a_conflict(test_session, temple):
    _, payments, _ = services(test_session)
    booking, payment = await pending_intent(test_session, temple, payments)
    await payments.apply_status(status_update(booking, payment, "success"), VISITOR)

    with pytest.raises(ConflictError):
        await payments.apply_status(status_update(booking, payment, "failed"), VISITOR)


@pytest.mark.asyncio
async def test_failed_payment_leaves_booking_pending(test_session, temple):
    _, payments, queue = services(test_session)
    booking, payment = await pending_intent(test_session, temple, payments)

    payment, booking, entry = await payments.apply_status(status_update(booking, payment, "failed"), VISITOR)

    assert payment.status == PaymentTransactionStatus.FAILED
    assert booking.status == BookingStatus.PENDING
    assert booking.payment_status == PaymentStatus.FAILED
    assert entry is None
    with pytest.raises(NotFoundError):
        await queue.get_queue_status(str(booking.id))


@pytest.mark.asyncio
async def test_only_payer_or_admin_may_update_or_verify(test_session, temple):
    _, payments, _ = services(test_session)
    booking, payment = await pending_intent(test_session, temple, payments)
    verify = VerifyUpiPaymentRequest(
        booking_id=str(booking.id), transaction_reference=payment.transaction_reference
    )

    with pytest.raises(AuthorizationError):
        await payments.verify(verify, OTHER)
    with pytest.raises(AuthorizationError):
        await payments.apply_status(status_update(booking, payment, "success"), OTHER)

    assert (await payments.verify(verify, ADMIN)).id == payment.id


@pytest.mark.asyncio
async def test_unknown_reference_is_not_found(test_session, temple):
    _, payments, _ = services(test_session)
    booking = await create_booking(test_session, temple, status=BookingStatus.PENDING)

    with pytest.raises(NotFoundError):
        await payments.verify(
            VerifyUpiPaymentRequest(booking_id=str(booking.id), transaction_reference="SD0"), VISITOR
        )


@pytest.mark.asyncio
async def test_expire_pending_only_touches_old_intents(test_session, temple):
    _, payments, _ = services(test_session)
    _, old = await pending_intent(test_session, temple, payments)
    _, fresh = await pending_intent(test_session, temple, payments)
    old.created_at = utcnow() - timedelta(hours=1)
    await test_session.commit()

    expired = await payments.expire_pending(ttl_seconds=900)

    assert expired == 1
    await test_session.refresh(old)
    await test_session.refresh(fresh)
    assert old.status == PaymentTransactionStatus.EXPIRED
    assert fresh.status == PaymentTransactionStatus.PENDING
