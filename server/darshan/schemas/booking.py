"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ..models.booking import BookingStatus, PaymentStatus


class CreateBookingRequest(BaseModel):
    """Request schema for booking a darshan slot."""

    temple_id: str = Field(..., min_length=1, description="Temple to visit")
    booking_date: date = Field(..., description="Visit date")
    time_slot: str = Field(..., pattern=r"^\d{2}:\d{2}-\d{2}:\d{2}$", description="Slot, e.g. '06:00-08:00'")
    visitor_count: int = Field(..., ge=1, le=10, description="Number of visitors")
    special_requirements: Optional[str] = Field(None, max_length=1000, description="Accessibility needs etc.")
    payment_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2, description="Fee in INR")


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: str = Field(..., min_length=1, description="Booking to retrieve")


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: str = Field(..., min_length=1, description="Booking to cancel")
    reason: Optional[str] = Field(None, max_length=255, description="Cancellation reason")


class Booking(BaseModel):
    """Booking response schema."""

    id: str = Field(..., description="Unique booking ID")
    user_id: str = Field(..., description="Visitor who booked")
    temple_id: str = Field(..., description="Temple ID")
    booking_date: date = Field(..., description="Visit date")
    time_slot: str = Field(..., description="Visit slot")
    visitor_count: int = Field(..., ge=1, description="Number of visitors")
    status: BookingStatus = Field(..., description="Booking status")
    payment_status: PaymentStatus = Field(..., description="Payment status")
    payment_amount: Decimal = Field(..., description="Fee in INR")
    cancelled_at: Optional[datetime] = Field(None, description="Cancellation time (ISO 8601)")
    created_at: datetime = Field(..., description="Booking creation time (ISO 8601)")

    model_config = {"from_attributes": True}
