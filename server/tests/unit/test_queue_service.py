"""Unit tests for the queue service and its progression rule."""

import pytest
from sqlalchemy import select

from conftest import create_booking
from darshan.core.exceptions import ConflictError, NotFoundError, ValidationError
from darshan.domain.records import QueueEntryStatus
from darshan.core.clock import utcnow
from darshan.models import BookingStatus, Notification, QueueStatus, QueueStatusValue
from darshan.services.notification_service import NotificationDispatcher
from darshan.services.queue_service import QueueService, estimated_wait


async def fill_queue(session, temple, service, count):
    bookings = []
    for i in range(count):
        booking = await create_booking(session, temple, user_id=f"visitor-{i + 1}")
        await service.enqueue_booking(booking)
        bookings.append(booking)
    return bookings


def test_estimated_wait_is_three_minutes_per_person_ahead():
    assert estimated_wait(1) == 0
    assert estimated_wait(4) == 9


@pytest.mark.asyncio
async def test_enqueue_numbers_entries_in_arrival_order(test_session, temple):
    service = QueueService(test_session)
    bookings = await fill_queue(test_session, temple, service, 3)

    overview = await service.get_temple_queue_overview(str(temple.id))

    assert overview.total_in_queue == 3
    assert [e.booking_id for e in overview.entries] == [str(b.id) for b in bookings]
    assert [e.current_position for e in overview.entries] == [1, 2, 3]
    assert all(e.total_in_queue == 3 for e in overview.entries)
    assert [e.estimated_wait_minutes for e in overview.entries] == [0, 3, 6]
    assert overview.average_wait_minutes == 3


@pytest.mark.asyncio
async def test_enqueue_is_idempotent(test_session, temple):
    service = QueueService(test_session)
    booking = await create_booking(test_session, temple)

    first = await service.enqueue_booking(booking)
    again = await service.enqueue_booking(booking)

    assert again.id == first.id
    assert (await service.get_temple_queue_overview(str(temple.id))).total_in_queue == 1


@pytest.mark.asyncio
async def test_enqueue_rechecks_after_waiting_for_the_temple_lock(test_session, temple):
    service = QueueService(test_session)
    booking = await create_booking(test_session, temple)
    take_lock = service.temple_service.get_temple_with_lock

    async def lock_after_concurrent_enqueue(temple_id):
        # A second webhook for the same booking commits while this one waits
        test_session.add(
            QueueStatus(
                booking_id=booking.id,
                temple_id=temple.id,
                current_position=1,
                total_in_queue=1,
                estimated_wait_minutes=0,
                status=QueueStatusValue.ACTIVE,
                last_updated=utcnow(),
            )
        )
        await test_session.flush()
        return await take_lock(temple_id)

    service.temple_service.get_temple_with_lock = lock_after_concurrent_enqueue

    entry = await service.enqueue_booking(booking)

    result = await test_session.execute(select(QueueStatus).where(QueueStatus.booking_id == booking.id))
    rows = result.scalars().all()
    assert len(rows) == 1
    assert entry.id == str(rows[0].id)


@pytest.mark.asyncio
async def test_pending_booking_cannot_queue(test_session, temple):
    service = QueueService(test_session)
    booking = await create_booking(test_session, temple, status=BookingStatus.PENDING)

    with pytest.raises(ConflictError):
        await service.enqueue_booking(booking)


@pytest.mark.asyncio
async def test_queue_status_lookups(test_session, temple):
    service = QueueService(test_session)

    with pytest.raises(ValidationError):
        await service.get_queue_status("not-a-uuid")

    booking = await create_booking(test_session, temple)
    with pytest.raises(NotFoundError):
        await service.get_queue_status(str(booking.id))

    await service.enqueue_booking(booking)
    entry = await service.get_queue_status(str(booking.id))
    assert entry.status is QueueEntryStatus.ACTIVE


@pytest.mark.asyncio
async def test_check_in_completes_front_and_moves_everyone_up(test_session, temple):
    service = QueueService(test_session)
    bookings = await fill_queue(test_session, temple, service, 3)
    before = await service.get_queue_status(str(bookings[1].id))

    completed, overview = await service.advance_queue(str(temple.id))

    assert completed.booking_id == str(bookings[0].id)
    assert completed.status is QueueEntryStatus.COMPLETED
    assert [e.current_position for e in overview.entries] == [1, 2]
    assert [e.estimated_wait_minutes for e in overview.entries] == [0, 3]
    assert all(e.total_in_queue == 2 for e in overview.entries)

    after = await service.get_queue_status(str(bookings[1].id))
    assert after.last_updated > before.last_updated


@pytest.mark.asyncio
async def test_check_in_on_empty_queue(test_session, temple):
    completed, overview = await QueueService(test_session).advance_queue(str(temple.id))

    assert completed is None
    assert overview.total_in_queue == 0
    assert overview.average_wait_minutes == 0


@pytest.mark.asyncio
async def test_cancelling_an_entry_closes_the_gap(test_session, temple):
    service = QueueService(test_session)
    bookings = await fill_queue(test_session, temple, service, 3)

    cancelled = await service.cancel_booking_entry(bookings[1].id)

    assert cancelled.status is QueueEntryStatus.CANCELLED
    overview = await service.get_temple_queue_overview(str(temple.id))
    assert [e.booking_id for e in overview.entries] == [str(bookings[0].id), str(bookings[2].id)]
    assert [e.current_position for e in overview.entries] == [1, 2]

    # Cancelling again leaves the terminal entry alone
    again = await service.cancel_booking_entry(bookings[1].id)
    assert again.status is QueueEntryStatus.CANCELLED


@pytest.mark.asyncio
async def test_correct_position_can_move_an_entry_back(test_session, temple):
    service = QueueService(test_session)
    bookings = await fill_queue(test_session, temple, service, 3)

    moved = await service.correct_position(str(bookings[0].id), 3, "left the line", "staff-1")

    assert moved.current_position == 3
    overview = await service.get_temple_queue_overview(str(temple.id))
    assert [e.booking_id for e in overview.entries] == [
        str(bookings[1].id), str(bookings[2].id), str(bookings[0].id)
    ]


@pytest.mark.asyncio
async def test_correct_position_is_clamped_to_queue_length(test_session, temple):
    service = QueueService(test_session)
    bookings = await fill_queue(test_session, temple, service, 2)

    moved = await service.correct_position(str(bookings[0].id), 50, "recount", "staff-1")

    assert moved.current_position == 2


@pytest.mark.asyncio
async def test_terminal_entries_cannot_be_corrected(test_session, temple):
    service = QueueService(test_session)
    bookings = await fill_queue(test_session, temple, service, 1)
    await service.advance_queue(str(temple.id))

    with pytest.raises(ConflictError):
        await service.correct_position(str(bookings[0].id), 1, "mistake", "staff-1")


@pytest.mark.asyncio
async def test_events_are_published_after_commit(test_session, temple, change_feed):
    channel = await change_feed.subscribe("queue_status")
    service = QueueService(test_session, feed=change_feed)
    booking = await create_booking(test_session, temple)

    await service.enqueue_booking(booking)

    event = await channel.get()
    assert event.event_type.value == "INSERT"
    assert event.new["booking_id"] == str(booking.id)
    assert event.new["current_position"] == 1


@pytest.mark.asyncio
async def test_uncommitted_changes_are_not_published(test_session, temple, change_feed):
    channel = await change_feed.subscribe("queue_status")
    service = QueueService(test_session, feed=change_feed)
    booking = await create_booking(test_session, temple)

    await service.enqueue_booking(booking, commit=False)

    assert channel._queue.empty()
    await service.commit()
    assert not channel._queue.empty()


@pytest.mark.asyncio
async def test_progress_notices_for_near_front_and_turn(test_session, session_factory, temple):
    dispatcher = NotificationDispatcher(session_factory)
    service = QueueService(test_session, dispatcher=dispatcher)
    await fill_queue(test_session, temple, service, 6)

    await service.advance_queue(str(temple.id))

    result = await test_session.execute(select(Notification).order_by(Notification.title))
    notices = {n.user_id: n for n in result.scalars().all()}
    assert set(notices) == {"visitor-2", "visitor-6"}
    assert notices["visitor-2"].title == "It's your turn"
    assert notices["visitor-6"].title == "Your turn is near"
    assert notices["visitor-6"].type == "queue_update"
    assert notices["visitor-6"].data["current_position"] == 5


@pytest.mark.asyncio
async def test_list_user_entries_only_shows_active_entries(test_session, temple):
    service = QueueService(test_session)
    first = await create_booking(test_session, temple, user_id="visitor-1")
    second = await create_booking(test_session, temple, user_id="visitor-1")
    await create_booking(test_session, temple, user_id="visitor-2")
    await service.enqueue_booking(first)
    await service.enqueue_booking(second)
    await service.cancel_booking_entry(first.id)

    entries = await service.list_user_entries("visitor-1")

    assert [e.booking_id for e in entries] == [str(second.id)]
