"""Queue service: store-backed queue reads and the queue progression rule."""

import dataclasses
import logging
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import next_write_stamp
from ..core.config import settings
from ..core.exceptions import ConflictError, NotFoundError
from ..core.observability import metrics_collector
from ..domain.queue_tracker import TABLE, summarize_queue
from ..domain.records import QueueEntry, QueueOverview
from ..models.booking import Booking, BookingStatus
from ..models.notification import NotificationPriority
from ..models.queue import QueueStatus, QueueStatusValue
from ..realtime.events import ChangeEvent
from ..realtime.feed import ChangeFeed
from .common import parse_uuid
from .notification_service import NotificationDispatcher, NotificationMessage
from .temple_service import TempleService

logger = logging.getLogger(__name__)


def estimated_wait(position: int) -> int:
    """Minutes until darshan for the visitor at ``position``."""
    return (position - 1) * settings.queue_service_minutes_per_person


class QueueService:
    """
    Service for queue operations.

    Writes follow one rule: a temple's active entries are numbered 1..N
    in queue order, every active entry carries N as ``total_in_queue``,
    and each changed row gets a ``last_updated`` later than its previous
    one. Events are published only after the transaction commits.
    """

    def __init__(
        self,
        db: AsyncSession,
        feed: Optional[ChangeFeed] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.db = db
        self.feed = feed
        self.dispatcher = dispatcher
        self.temple_service = TempleService(db)
        self._pending_events: List[ChangeEvent] = []
        self._pending_notices: List[Tuple[UUID, NotificationMessage]] = []
        self._touched_temples: set = set()

    async def get_queue_status(self, booking_id: str) -> QueueEntry:
        """
        Get the queue entry of a booking.

        Raises:
            ValidationError: If the booking ID is not a UUID
            NotFoundError: If the booking has no queue entry
        """
        booking_uuid = parse_uuid(booking_id, "booking_id")
        entry = await self._get_entry(booking_uuid)
        if entry is None:
            raise NotFoundError("queue entry", str(booking_id))
        return QueueEntry.from_mapping(entry.to_record())

    async def get_temple_queue_overview(self, temple_id: str) -> QueueOverview:
        temple = await self.temple_service.get_temple(temple_id)
        entries = await self._active_entries(temple.id)
        return summarize_queue(
            str(temple.id),
            [QueueEntry.from_mapping(e.to_record()) for e in entries],
        )

    async def list_user_entries(self, user_id: str) -> List[QueueEntry]:
        """Active queue entries of the user's bookings, most recently updated first."""
        result = await self.db.execute(
            select(QueueStatus)
            .join(Booking, Booking.id == QueueStatus.booking_id)
            .where(
                Booking.user_id == user_id,
                QueueStatus.status == QueueStatusValue.ACTIVE,
            )
            .order_by(QueueStatus.last_updated.desc())
        )
        return [QueueEntry.from_mapping(e.to_record()) for e in result.scalars().all()]

    async def pull_rows(self, booking_id: Optional[UUID] = None, temple_id: Optional[UUID] = None) -> List[dict]:
        """Current rows for a realtime subscription's initial pull."""
        query = select(QueueStatus)
        if booking_id is not None:
            query = query.where(QueueStatus.booking_id == booking_id)
        if temple_id is not None:
            query = query.where(QueueStatus.temple_id == temple_id)
        result = await self.db.execute(query)
        return [e.to_record() for e in result.scalars().all()]

    async def enqueue_booking(self, booking: Booking, commit: bool = True) -> QueueEntry:
        """
        Put a confirmed booking at the back of its temple's queue.

        Enqueuing a booking that already has an entry returns that entry.

        Raises:
            ConflictError: If the booking is not confirmed
        """
        if booking.status != BookingStatus.CONFIRMED:
            raise ConflictError(
                detail=f"Booking {booking.id} must be confirmed before it can join the queue",
                conflicting_resource={"booking_id": str(booking.id), "status": str(booking.status)},
            )

        existing = await self._get_entry(booking.id)
        if existing is not None:
            return QueueEntry.from_mapping(existing.to_record())

        await self.temple_service.get_temple_with_lock(booking.temple_id)
        # Another transaction may have queued this booking while we waited on the lock
        existing = await self._get_entry(booking.id)
        if existing is not None:
            return QueueEntry.from_mapping(existing.to_record())

        active = await self._active_entries(booking.temple_id)

        entry = QueueStatus(
            booking_id=booking.id,
            temple_id=booking.temple_id,
            current_position=len(active) + 1,
            total_in_queue=len(active) + 1,
            estimated_wait_minutes=estimated_wait(len(active) + 1),
            status=QueueStatusValue.ACTIVE,
            last_updated=next_write_stamp(None),
        )
        self.db.add(entry)
        await self.db.flush()
        self._pending_events.append(ChangeEvent.insert(TABLE, entry.to_record()))

        self._resequence(booking.temple_id, active + [entry])
        self._touched_temples.add(booking.temple_id)

        logger.info(
            "Booking joined queue",
            extra={
                "booking_id": str(booking.id),
                "temple_id": str(booking.temple_id),
                "position": entry.current_position,
            }
        )

        if commit:
            await self.commit()
        return QueueEntry.from_mapping(entry.to_record())

    async def cancel_booking_entry(self, booking_id: UUID, commit: bool = True) -> Optional[QueueEntry]:
        """
        Cancel a booking's queue entry; entries behind it move up by one.

        Returns the cancelled entry, or None when the booking never queued.
        An entry that is already terminal is returned unchanged.
        """
        entry = await self._get_entry(booking_id)
        if entry is None:
            return None
        if entry.status != QueueStatusValue.ACTIVE:
            return QueueEntry.from_mapping(entry.to_record())

        await self.temple_service.get_temple_with_lock(entry.temple_id)
        self._resolve(entry, QueueStatusValue.CANCELLED)
        remaining = [e for e in await self._active_entries(entry.temple_id) if e is not entry]
        self._resequence(entry.temple_id, remaining)
        self._touched_temples.add(entry.temple_id)

        logger.info(
            "Queue entry cancelled",
            extra={"booking_id": str(booking_id), "temple_id": str(entry.temple_id)}
        )

        if commit:
            await self.commit()
        return QueueEntry.from_mapping(entry.to_record())

    async def advance_queue(self, temple_id: str) -> Tuple[Optional[QueueEntry], QueueOverview]:
        """
        Admit the visitor at position 1 and move everyone else up by one.

        Returns:
            The completed entry (None for an empty queue) and the new overview
        """
        temple = await self.temple_service.get_temple(temple_id)
        await self.temple_service.get_temple_with_lock(temple.id)
        active = await self._active_entries(temple.id)

        completed = None
        if active:
            front = active[0]
            self._resolve(front, QueueStatusValue.COMPLETED)
            await self._complete_booking(front.booking_id)
            self._resequence(temple.id, active[1:])
            self._touched_temples.add(temple.id)
            completed = QueueEntry.from_mapping(front.to_record())

            logger.info(
                "Queue advanced",
                extra={
                    "temple_id": str(temple.id),
                    "booking_id": str(front.booking_id),
                    "remaining": len(active) - 1,
                }
            )

        await self.commit()
        remaining = [QueueEntry.from_mapping(e.to_record()) for e in active[1:]]
        return completed, summarize_queue(str(temple.id), remaining)

    async def correct_position(self, booking_id: str, position: int, reason: str, corrected_by: str) -> QueueEntry:
        """
        Move an active entry to ``position`` (clamped to the queue length).

        This is the only write that may move an entry back.

        Raises:
            NotFoundError: If the booking has no queue entry
            ConflictError: If the entry is no longer active
        """
        booking_uuid = parse_uuid(booking_id, "booking_id")
        entry = await self._get_entry(booking_uuid)
        if entry is None:
            raise NotFoundError("queue entry", str(booking_id))
        if entry.status != QueueStatusValue.ACTIVE:
            raise ConflictError(
                detail=f"Queue entry for booking {booking_id} is {entry.status} and cannot be moved",
                conflicting_resource={"booking_id": str(booking_id), "status": str(entry.status)},
            )

        await self.temple_service.get_temple_with_lock(entry.temple_id)
        active = [e for e in await self._active_entries(entry.temple_id) if e.id != entry.id]
        index = min(position, len(active) + 1) - 1
        previous_position = entry.current_position
        active.insert(index, entry)
        self._resequence(entry.temple_id, active)
        self._touched_temples.add(entry.temple_id)

        logger.warning(
            "Queue position corrected",
            extra={
                "booking_id": str(booking_id),
                "previous_position": previous_position,
                "position": entry.current_position,
                "reason": reason,
                "corrected_by": corrected_by,
            }
        )

        await self.commit()
        return QueueEntry.from_mapping(entry.to_record())

    async def commit(self) -> None:
        """Commit the session, then publish events and notifications it produced."""
        await self.db.commit()
        await self.publish_pending()

    async def publish_pending(self) -> None:
        events, self._pending_events = self._pending_events, []
        notices, self._pending_notices = self._pending_notices, []
        touched, self._touched_temples = self._touched_temples, set()

        if self.feed is not None:
            for event in events:
                self.feed.publish(event)

        for temple_id in touched:
            active = await self._active_entries(temple_id)
            metrics_collector.set_queue_length(str(temple_id), len(active))

        if notices and self.dispatcher is not None:
            try:
                messages = await self._addressed(notices)
            except SQLAlchemyError as e:
                # The queue change is committed; losing its notices must not fail the request
                logger.error("Could not address queue notifications", extra={"error": str(e)}, exc_info=True)
                return
            await self.dispatcher.emit_many(messages)

    async def _get_entry(self, booking_id: UUID) -> Optional[QueueStatus]:
        result = await self.db.execute(
            select(QueueStatus).where(QueueStatus.booking_id == booking_id)
        )
        return result.scalar_one_or_none()

    async def _active_entries(self, temple_id: UUID) -> List[QueueStatus]:
        result = await self.db.execute(
            select(QueueStatus)
            .where(
                QueueStatus.temple_id == temple_id,
                QueueStatus.status == QueueStatusValue.ACTIVE,
            )
            .order_by(QueueStatus.current_position, QueueStatus.last_updated, QueueStatus.id)
        )
        return list(result.scalars().all())

    async def _complete_booking(self, booking_id: UUID) -> None:
        # Admitted visitors have had darshan; the booking can no longer be cancelled
        booking = await self.db.get(Booking, booking_id)
        if booking is not None and booking.status == BookingStatus.CONFIRMED:
            booking.status = BookingStatus.COMPLETED

    def _resolve(self, entry: QueueStatus, status: QueueStatusValue) -> None:
        old = entry.to_record()
        entry.status = status
        entry.last_updated = next_write_stamp(entry.last_updated)
        self._pending_events.append(ChangeEvent.update(TABLE, entry.to_record(), old=old))

    def _resequence(self, temple_id: UUID, ordered: Sequence[QueueStatus]) -> None:
        """Number ``ordered`` 1..N and restamp every entry whose values change."""
        total = len(ordered)
        for position, entry in enumerate(ordered, start=1):
            wait = estimated_wait(position)
            if (
                entry.current_position == position
                and entry.total_in_queue == total
                and entry.estimated_wait_minutes == wait
            ):
                continue

            old = entry.to_record()
            previous_position = entry.current_position
            entry.current_position = position
            entry.total_in_queue = total
            entry.estimated_wait_minutes = wait
            entry.last_updated = next_write_stamp(entry.last_updated)
            self._pending_events.append(ChangeEvent.update(TABLE, entry.to_record(), old=old))

            if position < previous_position:
                self._queue_progress_notice(entry, previous_position)

    def _queue_progress_notice(self, entry: QueueStatus, previous_position: int) -> None:
        position = entry.current_position
        threshold = settings.queue_near_front_threshold

        if position == 1:
            title = "It's your turn"
            message = "Please proceed to the darshan entrance."
            priority = NotificationPriority.URGENT
        elif position <= threshold < previous_position:
            title = "Your turn is near"
            message = (
                f"You are number {position} in the queue, "
                f"about {entry.estimated_wait_minutes} minutes to go."
            )
            priority = NotificationPriority.HIGH
        else:
            return

        self._pending_notices.append((
            entry.booking_id,
            NotificationMessage(
                user_id="",
                type="queue_update",
                title=title,
                message=message,
                priority=priority,
                data={
                    "booking_id": str(entry.booking_id),
                    "temple_id": str(entry.temple_id),
                    "current_position": position,
                    "estimated_wait_minutes": entry.estimated_wait_minutes,
                },
            ),
        ))

    async def _addressed(self, notices: List[Tuple[UUID, NotificationMessage]]) -> List[NotificationMessage]:
        """Fill in the recipient of each notice from its booking."""
        booking_ids = {booking_id for booking_id, _ in notices}
        result = await self.db.execute(
            select(Booking.id, Booking.user_id).where(Booking.id.in_(booking_ids))
        )
        owners = {row.id: row.user_id for row in result}
        return [
            dataclasses.replace(message, user_id=owners[booking_id])
            for booking_id, message in notices
            if booking_id in owners
        ]
