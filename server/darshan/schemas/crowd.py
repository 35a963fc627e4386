"""Crowd-related Pydantic schemas."""

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from ..domain.records import CrowdLevel


class CrowdHistoryRequest(BaseModel):
    """Request schema for recent crowd readings."""

    temple_id: str = Field(..., min_length=1, description="Temple ID")
    hours: int = Field(24, ge=1, le=168, description="How far back to look")


class CrowdPredictionsRequest(BaseModel):
    """Request schema for crowd predictions."""

    temple_id: str = Field(..., min_length=1, description="Temple ID")
    days_ahead: int = Field(7, ge=1, le=30, description="Number of future days to predict")


class RecordCrowdRequest(BaseModel):
    """
    Request schema for ingesting a crowd reading.

    ``crowd_level`` may be omitted when a capacity percentage is given or
    can be derived from the count and the temple's capacity.
    """

    temple_id: str = Field(..., min_length=1, description="Temple ID")
    crowd_count: int = Field(..., ge=0, description="People counted")
    crowd_level: Optional[CrowdLevel] = Field(None, description="Observed level")
    capacity_percentage: Optional[float] = Field(None, ge=0, le=100, description="Percent of capacity")
    recorded_at: Optional[dt.datetime] = Field(None, description="Observation time, defaults to now")


class CrowdReading(BaseModel):
    """Crowd reading response schema."""

    id: str = Field(..., description="Unique reading ID")
    temple_id: str = Field(..., description="Temple ID")
    crowd_level: CrowdLevel = Field(..., description="Crowd level")
    crowd_count: int = Field(..., ge=0, description="People counted")
    capacity_percentage: Optional[float] = Field(None, description="Percent of capacity")
    recorded_at: dt.datetime = Field(..., description="Observation time (ISO 8601)")

    model_config = {"from_attributes": True}


class CurrentCrowd(BaseModel):
    """Latest reading for a temple; ``reading`` is null when none exists."""

    temple_id: str = Field(..., description="Temple ID")
    reading: Optional[CrowdReading] = Field(None, description="Most recent reading")


class CrowdHistory(BaseModel):
    temple_id: str = Field(..., description="Temple ID")
    hours: int = Field(..., description="Window length in hours")
    readings: List[CrowdReading] = Field(default_factory=list, description="Readings, oldest first")


class CrowdPrediction(BaseModel):
    """Predicted crowd level for one date."""

    date: dt.date = Field(..., description="Predicted date")
    predicted_level: CrowdLevel = Field(..., description="Predicted level")
    confidence: float = Field(..., ge=0, le=1, description="Confidence in [0, 1]")

    model_config = {"from_attributes": True}


class CrowdPredictions(BaseModel):
    temple_id: str = Field(..., description="Temple ID")
    predictions: List[CrowdPrediction] = Field(default_factory=list, description="One per date, ascending")


class CrowdSummary(BaseModel):
    """Current reading and predictions in one response."""

    temple_id: str = Field(..., description="Temple ID")
    current: Optional[CrowdReading] = Field(None, description="Most recent reading")
    predictions: List[CrowdPrediction] = Field(default_factory=list, description="Upcoming days")
