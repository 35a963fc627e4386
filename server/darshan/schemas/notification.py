"""Notification Pydantic schemas."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..models.notification import NotificationPriority


class SendNotificationRequest(BaseModel):
    """A notification addressed to one user."""

    user_id: str = Field(..., min_length=1, max_length=128, description="Recipient")
    type: str = Field(..., min_length=1, max_length=50, description="Notification type, e.g. 'queue_update'")
    title: str = Field(..., min_length=1, max_length=255, description="Short title")
    message: str = Field(..., min_length=1, max_length=2000, description="Message body")
    priority: NotificationPriority = Field(NotificationPriority.NORMAL, description="Delivery priority")
    data: Optional[Dict[str, Any]] = Field(None, description="Structured payload for the client")


class Notification(BaseModel):
    """Notification response schema."""

    id: str = Field(..., description="Notification ID")
    user_id: str = Field(..., description="Recipient")
    type: str = Field(..., description="Notification type")
    title: str = Field(..., description="Short title")
    message: str = Field(..., description="Message body")
    priority: NotificationPriority = Field(..., description="Delivery priority")
    data: Optional[Dict[str, Any]] = Field(None, description="Structured payload")
    read: bool = Field(False, description="Whether the recipient has read it")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")

    model_config = {"from_attributes": True}
