"""Queue-related Pydantic schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..domain.records import QueueEntryStatus


class QueueStatusRequest(BaseModel):
    """Request schema for one booking's queue entry."""

    booking_id: str = Field(..., min_length=1, description="Booking whose entry to fetch")


class QueueOverviewRequest(BaseModel):
    """Request schema for a temple's queue overview."""

    temple_id: str = Field(..., min_length=1, description="Temple ID")


class CheckInRequest(BaseModel):
    """Request schema for admitting the visitor at the front of a queue."""

    temple_id: str = Field(..., min_length=1, description="Temple whose queue advances")


class CorrectPositionRequest(BaseModel):
    """Request schema for a staff correction of a queue position."""

    booking_id: str = Field(..., min_length=1, description="Booking whose entry is corrected")
    position: int = Field(..., ge=1, description="Corrected 1-based position")
    reason: str = Field(..., min_length=1, max_length=255, description="Why the position changed")


class QueueEntry(BaseModel):
    """Queue entry response schema."""

    id: str = Field(..., description="Unique queue entry ID")
    booking_id: str = Field(..., description="Booking the entry belongs to")
    temple_id: str = Field(..., description="Temple ID")
    current_position: int = Field(..., ge=1, description="1-based position in the queue")
    total_in_queue: int = Field(..., ge=0, description="Active entries in the temple's queue")
    estimated_wait_minutes: int = Field(..., ge=0, description="Estimated minutes until darshan")
    status: QueueEntryStatus = Field(..., description="Entry status")
    last_updated: datetime = Field(..., description="Time of the last write (ISO 8601)")

    model_config = {"from_attributes": True}


class QueueOverview(BaseModel):
    """Active queue of one temple."""

    temple_id: str = Field(..., description="Temple ID")
    total_in_queue: int = Field(..., ge=0, description="Number of active entries")
    average_wait_minutes: int = Field(..., ge=0, description="Mean wait of active entries, rounded")
    entries: List[QueueEntry] = Field(default_factory=list, description="Active entries by position")

    model_config = {"from_attributes": True}


class MyQueueEntries(BaseModel):
    """The caller's active queue entries."""

    entries: List[QueueEntry] = Field(default_factory=list, description="Active entries, newest first")


class CheckInResponse(BaseModel):
    """Result of advancing a temple's queue."""

    completed: Optional[QueueEntry] = Field(None, description="Entry admitted, if the queue was not empty")
    overview: QueueOverview = Field(..., description="Queue after the check-in")
