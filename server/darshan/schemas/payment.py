"""UPI payment Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .booking import Booking
from .queue import QueueEntry


class CreateUpiPaymentRequest(BaseModel):
    """Request schema for a UPI payment intent."""

    booking_id: str = Field(..., min_length=1, description="Booking to pay for")
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Amount in INR")


class VerifyUpiPaymentRequest(BaseModel):
    booking_id: str = Field(..., min_length=1, description="Booking the payment belongs to")
    transaction_reference: str = Field(..., min_length=1, description="Reference returned on create")


class UpdateUpiPaymentRequest(BaseModel):
    """Webhook notification of a payment's outcome."""

    booking_id: str = Field(..., min_length=1, description="Booking the payment belongs to")
    transaction_reference: str = Field(..., min_length=1, description="Reference returned on create")
    status: Literal["success", "failed"] = Field(..., description="Terminal payment status")
    utr_number: Optional[str] = Field(None, max_length=64, description="Bank reference for the transfer")


class UpiPaymentIntent(BaseModel):
    """A payment request the payer's UPI app can open."""

    payment_id: str = Field(..., description="Payment transaction ID")
    booking_id: str = Field(..., description="Booking ID")
    transaction_reference: str = Field(..., description="Merchant transaction reference")
    upi_string: str = Field(..., description="upi://pay intent URL")
    amount: Decimal = Field(..., description="Amount in INR")
    status: str = Field(..., description="Payment status")
    expires_at: datetime = Field(..., description="When the pending intent expires (ISO 8601)")


class PaymentStatusResponse(BaseModel):
    booking_id: str = Field(..., description="Booking ID")
    transaction_reference: str = Field(..., description="Merchant transaction reference")
    status: str = Field(..., description="Payment status")
    completed_at: Optional[datetime] = Field(None, description="When the payment succeeded")


class PaymentUpdateResponse(BaseModel):
    """Payment outcome and its effect on the booking."""

    payment: PaymentStatusResponse
    booking: Booking
    queue_entry: Optional[QueueEntry] = Field(None, description="Entry created by a successful payment")
