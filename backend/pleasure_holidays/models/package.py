"""
Travel package model for MongoDB persistence
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from pleasure_holidays.models.common import UTCDatetime, utcnow

Currency = Literal["INR", "USD", "EUR", "GBP"]
Category = Literal[
    "adventure", "cultural", "beach", "mountain", "wildlife", "luxury", "budget", "honeymoon", "family"
]


class Coordinates(BaseModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class Destination(BaseModel):
    country: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    region: str | None = None
    coordinates: Coordinates | None = None


class Duration(BaseModel):
    days: int = Field(..., ge=1)
    nights: int = Field(..., ge=0)


class SeasonalPrice(BaseModel):
    season: Literal["peak", "shoulder", "off-peak"]
    multiplier: float = Field(..., ge=0.5, le=3.0)
    start_date: UTCDatetime
    end_date: UTCDatetime

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class PackagePricing(BaseModel):
    base_price: float = Field(..., ge=0)
    discounted_price: float | None = Field(default=None, ge=0)
    currency: Currency = "INR"
    price_per_person: bool = True
    seasonal_pricing: list[SeasonalPrice] = Field(default_factory=list)


class Inclusions(BaseModel):
    accommodation: Literal["hotel", "resort", "guesthouse", "homestay", "camping"]
    meals: list[Literal["breakfast", "lunch", "dinner", "all-inclusive"]] = Field(default_factory=list)
    transportation: list[Literal["flight", "train", "bus", "car", "boat", "none"]] = Field(default_factory=list)
    activities: list[str] = Field(default_factory=list)
    transfers: bool = True
    guide: bool = False
    insurance: bool = False


class ItineraryDay(BaseModel):
    day: int = Field(..., ge=1)
    title: str | None = None
    description: str | None = None
    activities: list[str] = Field(default_factory=list)
    meals: list[str] = Field(default_factory=list)
    accommodation: str | None = None


class Image(BaseModel):
    url: str = Field(..., min_length=1)
    caption: str | None = None
    is_primary: bool = False


class GroupSize(BaseModel):
    min: int = Field(default=1, ge=1)
    max: int = Field(default=20, ge=1)


class Availability(BaseModel):
    total_slots: int = Field(..., ge=1)
    booked_slots: int = Field(default=0, ge=0)
    is_active: bool = True


class Ratings(BaseModel):
    average: float = Field(default=0, ge=0, le=5)
    count: int = Field(default=0, ge=0)


class PackageIn(BaseModel):
    """
    Fields an agent/admin supplies when creating a package.
    Ownership, approval, ratings and booked slots are server-managed.
    """

    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    short_description: str | None = Field(default=None, max_length=200)
    destination: Destination
    duration: Duration
    pricing: PackagePricing
    inclusions: Inclusions
    exclusions: list[str] = Field(default_factory=list)
    itinerary: list[ItineraryDay] = Field(default_factory=list)
    images: list[Image] = Field(default_factory=list)
    category: Category
    difficulty: Literal["easy", "moderate", "challenging", "expert"] = "easy"
    group_size: GroupSize = Field(default_factory=GroupSize)
    total_slots: int = Field(..., ge=1)
    is_active: bool = True
    tags: list[str] = Field(default_factory=list)
    highlights: list[str] = Field(default_factory=list)
    terms: list[str] = Field(default_factory=list)
    cancellation_policy: str = Field(..., min_length=1)


class PackageUpdate(BaseModel):
    """Partial update; only provided fields are written."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=1000)
    short_description: str | None = Field(default=None, max_length=200)
    destination: Destination | None = None
    duration: Duration | None = None
    pricing: PackagePricing | None = None
    inclusions: Inclusions | None = None
    exclusions: list[str] | None = None
    itinerary: list[ItineraryDay] | None = None
    images: list[Image] | None = None
    category: Category | None = None
    difficulty: Literal["easy", "moderate", "challenging", "expert"] | None = None
    group_size: GroupSize | None = None
    total_slots: int | None = Field(default=None, ge=1)
    is_active: bool | None = None
    tags: list[str] | None = None
    highlights: list[str] | None = None
    terms: list[str] | None = None
    cancellation_policy: str | None = Field(default=None, min_length=1)


class RejectRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class Package(BaseModel):
    """
    Full package document persisted in the `packages` collection.
    """

    name: str
    description: str
    short_description: str | None = None
    destination: Destination
    duration: Duration
    pricing: PackagePricing
    inclusions: Inclusions
    exclusions: list[str] = Field(default_factory=list)
    itinerary: list[ItineraryDay] = Field(default_factory=list)
    images: list[Image] = Field(default_factory=list)
    category: Category
    difficulty: str = "easy"
    group_size: GroupSize = Field(default_factory=GroupSize)
    availability: Availability
    ratings: Ratings = Field(default_factory=Ratings)
    tags: list[str] = Field(default_factory=list)
    highlights: list[str] = Field(default_factory=list)
    terms: list[str] = Field(default_factory=list)
    cancellation_policy: str

    # Ownership and approval
    created_by: str
    is_approved: bool = False
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None

    # Audit
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_input(cls, body: PackageIn, created_by: str) -> "Package":
        data = body.model_dump(exclude={"total_slots", "is_active"})
        return cls(
            **data,
            availability=Availability(total_slots=body.total_slots, is_active=body.is_active),
            created_by=created_by,
        )
