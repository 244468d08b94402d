"""
Booking model and schemas
A reservation against a package with its own pricing snapshot, payment,
approval and cancellation sub-records.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from pleasure_holidays.models.common import UTCDatetime, utcnow

BookingStatus = Literal["pending", "confirmed", "cancelled", "completed"]
PaymentStatus = Literal["pending", "processing", "completed", "failed", "refunded"]
ApprovalStatus = Literal["pending", "approved", "rejected"]
PaymentMethod = Literal["razorpay", "card", "bank_transfer", "cash"]

TERMINAL_STATUSES = ("cancelled", "completed")


class Travelers(BaseModel):
    adults: int = Field(..., ge=1)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.adults + self.children + self.infants


class TravelDetails(BaseModel):
    start_date: UTCDatetime
    end_date: UTCDatetime
    number_of_travelers: Travelers
    special_requests: str | None = Field(default=None, max_length=1000)
    dietary_requirements: list[str] = Field(default_factory=list)
    accessibility_needs: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class BookingPricing(BaseModel):
    base_price: float
    discount: float = 0
    taxes: float = 0
    total_amount: float
    currency: str = "INR"
    price_per_person: bool = True


class Payment(BaseModel):
    method: PaymentMethod = "razorpay"
    status: PaymentStatus = "pending"
    transaction_id: str | None = None
    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    paid_at: datetime | None = None
    refund_amount: float = 0
    refund_reason: str | None = None
    refunded_at: datetime | None = None


class Approval(BaseModel):
    status: ApprovalStatus = "pending"
    requested_at: datetime = Field(default_factory=utcnow)
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    notes: str | None = None


class Cancellation(BaseModel):
    requested_at: datetime | None = None
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    refund_percentage: int = Field(default=0, ge=0, le=100)


class BookingDocument(BaseModel):
    type: Literal["passport", "visa", "id_proof", "medical_certificate", "insurance", "other"]
    name: str = Field(..., min_length=1, max_length=200)
    url: str = Field(..., min_length=1)
    uploaded_at: datetime = Field(default_factory=utcnow)


class EmbeddedReview(BaseModel):
    reviewer: str
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class Notification(BaseModel):
    type: Literal["email", "sms", "push"] = "email"
    title: str
    message: str
    sent_at: datetime = Field(default_factory=utcnow)
    is_read: bool = False


class Booking(BaseModel):
    """
    Booking document persisted in the `bookings` collection.
    """

    booking_id: str = Field(..., description="Human-readable id, PH + YYMMDD + 4 digits")
    customer: str
    agent: str | None = None
    package: str
    travel_details: TravelDetails
    pricing: BookingPricing
    payment: Payment = Field(default_factory=Payment)
    status: BookingStatus = "pending"
    approval: Approval = Field(default_factory=Approval)
    cancellation: Cancellation = Field(default_factory=Cancellation)
    slots_released: bool = False

    documents: list[BookingDocument] = Field(default_factory=list)
    reviews: list[EmbeddedReview] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# Request Models
class CreateBookingRequest(BaseModel):
    package_id: str
    travel_details: TravelDetails
    # Agents booking on behalf of a customer
    customer_id: str | None = None
    # Agent to record on bookings made by customers or admins
    agent_id: str | None = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class ReasonRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class NotesRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=500)


class AddBookingReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)


class AddDocumentRequest(BaseModel):
    type: Literal["passport", "visa", "id_proof", "medical_certificate", "insurance", "other"]
    name: str = Field(..., min_length=1, max_length=200)
    url: str = Field(..., min_length=1)


class AdminBookingStatusRequest(BaseModel):
    status: Literal["confirmed", "cancelled", "completed"]
    notes: str | None = Field(default=None, max_length=500)
