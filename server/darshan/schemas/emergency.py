"""Emergency incident Pydantic schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ..models.emergency import IncidentSeverity, IncidentStatus


class ReportEmergencyRequest(BaseModel):
    """Request schema for reporting an emergency."""

    temple_id: Optional[str] = Field(None, description="Temple where it happened")
    incident_type: str = Field(..., min_length=1, max_length=50, description="e.g. 'medical', 'fire', 'lost_person'")
    severity: IncidentSeverity = Field(..., description="Severity")
    description: Optional[str] = Field(None, max_length=2000, description="What happened")
    location_lat: Optional[float] = Field(None, ge=-90, le=90, description="Latitude")
    location_lng: Optional[float] = Field(None, ge=-180, le=180, description="Longitude")


class UpdateEmergencyRequest(BaseModel):
    """Responder update of an incident."""

    incident_id: str = Field(..., min_length=1, description="Incident to update")
    status: Literal["responding", "resolved"] = Field(..., description="New status")
    response_notes: Optional[str] = Field(None, max_length=2000, description="Responder notes")


class ListEmergenciesRequest(BaseModel):
    limit: int = Field(50, ge=1, le=50, description="Maximum incidents to return")


class EmergencyIncident(BaseModel):
    """Emergency incident response schema."""

    id: str = Field(..., description="Incident ID")
    user_id: str = Field(..., description="Reporter")
    temple_id: Optional[str] = Field(None, description="Temple ID")
    incident_type: str = Field(..., description="Incident type")
    severity: IncidentSeverity = Field(..., description="Severity")
    description: Optional[str] = Field(None, description="What happened")
    location_lat: Optional[float] = Field(None, description="Latitude")
    location_lng: Optional[float] = Field(None, description="Longitude")
    status: IncidentStatus = Field(..., description="Status")
    responder_id: Optional[str] = Field(None, description="Responder handling it")
    response_notes: Optional[str] = Field(None, description="Responder notes")
    reported_at: datetime = Field(..., description="Report time (ISO 8601)")
    resolved_at: Optional[datetime] = Field(None, description="Resolution time (ISO 8601)")

    model_config = {"from_attributes": True}


class EmergencyIncidentList(BaseModel):
    incidents: List[EmergencyIncident] = Field(default_factory=list, description="Newest first")
