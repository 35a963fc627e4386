"""Crowd reading model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base
from .records import RecordMixin


class CrowdData(RecordMixin, Base):
    """An immutable crowd density reading for a temple."""

    __tablename__ = "crowd_data"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    temple_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("temples.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    crowd_level: Mapped[str] = mapped_column(String(20), nullable=False)
    crowd_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    capacity_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )

    __table_args__ = (
        CheckConstraint("crowd_level IN ('low', 'moderate', 'high')", name="ck_crowd_level_valid"),
        CheckConstraint("crowd_count >= 0", name="ck_crowd_count_non_negative"),
        CheckConstraint(
            "capacity_percentage IS NULL OR (capacity_percentage >= 0 AND capacity_percentage <= 100)",
            name="ck_crowd_capacity_percentage_range"
        ),
        Index("ix_crowd_data_temple_recorded", "temple_id", "recorded_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CrowdData(temple_id={self.temple_id}, level={self.crowd_level}, "
            f"recorded_at={self.recorded_at})>"
        )
