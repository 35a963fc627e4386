"""Parking-related Pydantic schemas."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class ParkingMovementRequest(BaseModel):
    """Vehicles entering or leaving a parking area."""

    zone_id: str = Field(..., min_length=1, description="Parking area ID")
    vehicles: int = Field(1, ge=1, le=100, description="Number of vehicles")


class ParkingZone(BaseModel):
    """Parking area response schema."""

    id: str = Field(..., description="Parking area ID")
    temple_id: str = Field(..., description="Temple ID")
    area_name: str = Field(..., description="Area name")
    total_spots: int = Field(..., ge=0, description="Spots in the area")
    available_spots: int = Field(..., ge=0, description="Free spots")
    occupancy_rate: float = Field(..., ge=0, le=100, description="Occupied share in percent")
    last_updated: datetime = Field(..., description="Time of the last change (ISO 8601)")

    model_config = {"from_attributes": True}


class ParkingOverview(BaseModel):
    """All parking areas of a temple with totals."""

    temple_id: str = Field(..., description="Temple ID")
    zones: List[ParkingZone] = Field(default_factory=list, description="Areas by name")
    total_spots: int = Field(..., ge=0, description="Spots across areas")
    available_spots: int = Field(..., ge=0, description="Free spots across areas")
    occupancy_rate: float = Field(..., ge=0, le=100, description="Occupied share in percent")
