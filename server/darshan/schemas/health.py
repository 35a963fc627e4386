"""Schemas for the RPC health ping."""

from datetime import datetime
from typing import Dict

from pydantic import BaseModel, Field


class PingResponse(BaseModel):
    """Liveness of the darshan API as seen by RPC clients."""

    status: str = Field("healthy", description="Always 'healthy' when the process answers")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="API version")
    timestamp: datetime = Field(..., description="Current server time (UTC)")
    realtime_subscribers: int = Field(0, ge=0, description="Open change-feed subscriptions")
    workers: Dict[str, bool] = Field(default_factory=dict, description="Background worker name to running flag")
