"""Traffic-related Pydantic schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

CongestionLevel = Literal["low", "moderate", "high"]


class TrafficReportRequest(BaseModel):
    """Staff report of a route's current conditions."""

    temple_id: str = Field(..., min_length=1, description="Temple ID")
    route_name: str = Field(..., min_length=1, max_length=255, description="Route name")
    congestion_level: CongestionLevel = Field(..., description="Observed congestion")
    estimated_travel_time_minutes: int = Field(..., ge=0, le=1440, description="Travel time in minutes")


class TrafficRoute(BaseModel):
    """Traffic advisory response schema."""

    id: str = Field(..., description="Route advisory ID")
    temple_id: str = Field(..., description="Temple ID")
    route_name: str = Field(..., description="Route name")
    congestion_level: Optional[CongestionLevel] = Field(None, description="Congestion")
    estimated_travel_time_minutes: Optional[int] = Field(None, description="Travel time in minutes")
    last_updated: datetime = Field(..., description="Time of the last report (ISO 8601)")

    model_config = {"from_attributes": True}


class TrafficOverview(BaseModel):
    temple_id: str = Field(..., description="Temple ID")
    routes: List[TrafficRoute] = Field(default_factory=list, description="Routes, most recently updated first")
