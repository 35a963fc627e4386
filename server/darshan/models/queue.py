"""Queue entry model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base
from .records import RecordMixin


class QueueStatusValue(str, Enum):
    """Queue entry status; active is the only non-terminal value."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QueueStatus(RecordMixin, Base):
    """A confirmed booking's place in its temple's virtual queue."""

    __tablename__ = "queue_status"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # One entry per booking
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )

    temple_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("temples.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    current_position: Mapped[int] = mapped_column(Integer, nullable=False)
    total_in_queue: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_wait_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[QueueStatusValue] = mapped_column(
        String(20),
        nullable=False,
        default=QueueStatusValue.ACTIVE,
        index=True
    )

    # Merge key for realtime consumers; strictly increasing per row
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("current_position >= 1", name="ck_queue_position_positive"),
        CheckConstraint("total_in_queue >= current_position", name="ck_queue_total_gte_position"),
        CheckConstraint("estimated_wait_minutes >= 0", name="ck_queue_wait_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<QueueStatus(booking_id={self.booking_id}, position={self.current_position}/"
            f"{self.total_in_queue}, status={self.status})>"
        )
