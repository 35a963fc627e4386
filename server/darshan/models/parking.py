"""Parking zone model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base
from .records import RecordMixin


class ParkingData(RecordMixin, Base):
    """Live availability of one parking area near a temple."""

    __tablename__ = "parking_data"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    temple_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("temples.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    area_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_spots: Mapped[int] = mapped_column(Integer, nullable=False)
    available_spots: Mapped[int] = mapped_column(Integer, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )

    __table_args__ = (
        CheckConstraint("total_spots >= 0", name="ck_parking_total_non_negative"),
        CheckConstraint("available_spots >= 0", name="ck_parking_available_non_negative"),
        CheckConstraint("available_spots <= total_spots", name="ck_parking_available_lte_total"),
    )

    def __repr__(self) -> str:
        return (
            f"<ParkingData(area_name='{self.area_name}', "
            f"available={self.available_spots}/{self.total_spots})>"
        )
