"""Temple model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base
from .records import RecordMixin


class Temple(RecordMixin, Base):
    """Temple entity with visiting hours, capacity and location."""

    __tablename__ = "temples"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Temple information
    slug: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    city: Mapped[str] = mapped_column(String(128), nullable=False)
    state: Mapped[str] = mapped_column(String(128), nullable=False, default="Gujarat")
    address: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Visiting hours (HH:MM, local time)
    opening_time: Mapped[str] = mapped_column(String(5), nullable=False, default="06:00")
    closing_time: Mapped[str] = mapped_column(String(5), nullable=False, default="21:00")

    # Visitors the premises hold at once
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

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
        CheckConstraint("capacity > 0", name="ck_temple_capacity_positive"),
        CheckConstraint("length(slug) > 0", name="ck_temple_slug_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Temple(id={self.id}, slug='{self.slug}', name='{self.name}')>"
