"""
Transport option model: a standalone catalog of flights, trains, buses, cars and boats
"""

from datetime import datetime
from typing import Literal

from bson import ObjectId
from pydantic import BaseModel, Field

from pleasure_holidays.models.common import UTCDatetime, utcnow
from pleasure_holidays.models.package import Currency

TransportType = Literal["flight", "train", "bus", "car", "boat", "other"]


def _new_schedule_id() -> str:
    return str(ObjectId())


class Route(BaseModel):
    from_location: str = Field(..., min_length=1)
    to_location: str = Field(..., min_length=1)
    distance_km: float | None = Field(default=None, ge=0)
    duration_minutes: int | None = Field(default=None, ge=0)


class Schedule(BaseModel):
    id: str = Field(default_factory=_new_schedule_id)
    departure_date: UTCDatetime
    arrival_date: UTCDatetime | None = None
    available_seats: int = Field(default=0, ge=0)
    total_seats: int = Field(default=0, ge=0)
    duration_minutes: int | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, ge=0)
    currency: Currency = "INR"


class ScheduleUpdate(BaseModel):
    departure_date: UTCDatetime | None = None
    arrival_date: UTCDatetime | None = None
    available_seats: int | None = Field(default=None, ge=0)
    total_seats: int | None = Field(default=None, ge=0)
    duration_minutes: int | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, ge=0)
    currency: Currency | None = None


class ClassPrice(BaseModel):
    name: str = Field(..., min_length=1, description="e.g. economy, business")
    multiplier: float = Field(default=1, ge=0.5, le=5)


class TransportPricing(BaseModel):
    base_price: float = Field(..., ge=0)
    currency: Currency = "INR"
    class_pricing: list[ClassPrice] = Field(default_factory=list)


class TransportImage(BaseModel):
    url: str = Field(..., min_length=1)
    caption: str | None = None


class TransportOptionIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: TransportType
    description: str | None = None
    routes: list[Route] = Field(default_factory=list)
    schedules: list[Schedule] = Field(default_factory=list)
    pricing: TransportPricing
    amenities: list[str] = Field(default_factory=list)
    policies: list[str] = Field(default_factory=list)
    images: list[TransportImage] = Field(default_factory=list)


class TransportOptionUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    type: TransportType | None = None
    description: str | None = None
    routes: list[Route] | None = None
    amenities: list[str] | None = None
    policies: list[str] | None = None
    images: list[TransportImage] | None = None


class TransportOption(TransportOptionIn):
    """
    Transport option document persisted in the `transport_options` collection.
    """

    is_active: bool = True
    created_by: str
    updated_by: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# Request Models
class SchedulesRequest(BaseModel):
    schedules: list[Schedule] = Field(..., min_length=1)


class PricingRequest(BaseModel):
    pricing: TransportPricing


class ActiveRequest(BaseModel):
    is_active: bool
