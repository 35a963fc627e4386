"""Booking model definition."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base
from .records import RecordMixin


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment state of a booking."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Booking(RecordMixin, Base):
    """Booking entity: a visitor group's darshan slot at a temple."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Subject of the bearer token that made the booking
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    temple_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("temples.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Slot details
    booking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    time_slot: Mapped[str] = mapped_column(String(20), nullable=False)
    visitor_count: Mapped[int] = mapped_column(Integer, nullable=False)
    special_requirements: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING
    )
    payment_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("visitor_count > 0", name="ck_booking_visitor_count_positive"),
        CheckConstraint("visitor_count <= 10", name="ck_booking_visitor_count_max"),
        CheckConstraint("payment_amount >= 0", name="ck_booking_payment_amount_non_negative"),
        CheckConstraint("length(user_id) > 0", name="ck_booking_user_id_not_empty"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, temple_id={self.temple_id}, "
            f"visitor_count={self.visitor_count}, status={self.status})>"
        )
