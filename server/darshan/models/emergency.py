"""Emergency incident model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base
from .records import RecordMixin


class IncidentStatus(str, Enum):
    """Incident lifecycle: reported, then responding, then resolved."""
    REPORTED = "reported"
    RESPONDING = "responding"
    RESOLVED = "resolved"


class IncidentSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EmergencyIncident(RecordMixin, Base):
    """An emergency reported by a visitor at or near a temple."""

    __tablename__ = "emergency_incidents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    temple_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("temples.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    incident_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[IncidentSeverity] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    status: Mapped[IncidentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=IncidentStatus.REPORTED,
        index=True
    )
    responder_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    response_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    reported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<EmergencyIncident(id={self.id}, type='{self.incident_type}', "
            f"severity={self.severity}, status={self.status})>"
        )
