"""Traffic advisory model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base
from .records import RecordMixin


class TrafficData(RecordMixin, Base):
    """Congestion and travel time on a route leading to a temple."""

    __tablename__ = "traffic_data"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    temple_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("temples.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    route_name: Mapped[str] = mapped_column(String(255), nullable=False)
    congestion_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    estimated_travel_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True
    )

    __table_args__ = (
        CheckConstraint(
            "congestion_level IS NULL OR congestion_level IN ('low', 'moderate', 'high')",
            name="ck_traffic_congestion_level_valid"
        ),
        CheckConstraint(
            "estimated_travel_time_minutes IS NULL OR estimated_travel_time_minutes >= 0",
            name="ck_traffic_travel_time_non_negative"
        ),
    )

    def __repr__(self) -> str:
        return f"<TrafficData(route_name='{self.route_name}', congestion={self.congestion_level})>"
