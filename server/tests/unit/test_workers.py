"""Unit tests for background workers."""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import create_booking
from darshan.core.clock import utcnow
from darshan.models import BookingStatus, PaymentTransaction, PaymentTransactionStatus
from darshan.workers.base import BaseWorker
from darshan.workers.manager import WorkerManager
from darshan.workers.payment_expiry_worker import PaymentExpiryWorker


class CountingWorker(BaseWorker):
    def __init__(self, fail_first: bool = False):
        super().__init__(name="Counting", interval_seconds=0)
        self.fail_first = fail_first
        self.calls = 0

    async def process(self) -> None:
        self.calls += 1
        if self.fail_first and self.calls == 1:
            raise RuntimeError("boom")


async def wait_for_calls(worker, calls):
    for _ in range(100):
        if worker.calls >= calls:
            return
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_payment_expiry_worker_expires_old_intents(test_session, session_factory, temple):
    booking = await create_booking(test_session, temple, status=BookingStatus.PENDING)
    test_session.add_all([
        PaymentTransaction(
            booking_id=booking.id,
            user_id="visitor-1",
            amount=Decimal("100.00"),
            transaction_reference="SD-old",
            upi_string="upi://pay?pa=temple@upi",
            created_at=utcnow() - timedelta(hours=2),
        ),
        PaymentTransaction(
            booking_id=booking.id,
            user_id="visitor-1",
            amount=Decimal("100.00"),
            transaction_reference="SD-new",
            upi_string="upi://pay?pa=temple@upi",
        ),
    ])
    await test_session.commit()

    worker = PaymentExpiryWorker(interval_seconds=1, session_factory=session_factory, ttl_seconds=900)
    await worker.run_once()

    assert worker.iterations == 1
    assert worker.expired_total == 1
    statuses = {}
    async with session_factory() as db:
        for payment in (await db.execute(PaymentTransaction.__table__.select())).all():
            statuses[payment.transaction_reference] = payment.status
    assert statuses == {"SD-old": PaymentTransactionStatus.EXPIRED, "SD-new": PaymentTransactionStatus.PENDING}


@pytest.mark.asyncio
async def test_worker_loop_survives_a_failed_iteration():
    worker = CountingWorker(fail_first=True)

    await worker.start()
    await wait_for_calls(worker, 3)
    await worker.stop()

    assert worker.failures == 1
    assert worker.iterations >= 2
    assert not worker.is_running


@pytest.mark.asyncio
async def test_manager_reports_worker_status():
    manager = WorkerManager({"counting": CountingWorker()})

    await manager.start_all()
    assert manager.get_worker_status() == {"counting": True}

    await manager.stop_all()
    assert manager.get_worker_status() == {"counting": False}
    assert manager.get_worker("counting").name == "Counting"
