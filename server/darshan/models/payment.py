"""UPI payment transaction model definition."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base
from .records import RecordMixin


class PaymentTransactionStatus(str, Enum):
    """UPI intent status; only pending may change."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    EXPIRED = "expired"


class PaymentTransaction(RecordMixin, Base):
    """A UPI payment intent issued for a booking."""

    __tablename__ = "payment_transactions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default="upi")
    transaction_reference: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    upi_string: Mapped[str] = mapped_column(Text, nullable=False)
    utr_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[PaymentTransactionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentTransactionStatus.PENDING,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        CheckConstraint("length(transaction_reference) > 0", name="ck_payment_reference_not_empty"),
    )

    def __repr__(self) -> str:
        return (
            f"<PaymentTransaction(reference='{self.transaction_reference}', "
            f"booking_id={self.booking_id}, status={self.status})>"
        )
