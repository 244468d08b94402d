"""
Package review model for MongoDB persistence
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from pleasure_holidays.models.common import utcnow

ReportReason = Literal["inappropriate", "spam", "fake", "other"]


class CategoryRatings(BaseModel):
    service: int | None = Field(default=None, ge=1, le=5)
    value: int | None = Field(default=None, ge=1, le=5)
    cleanliness: int | None = Field(default=None, ge=1, le=5)
    location: int | None = Field(default=None, ge=1, le=5)
    food: int | None = Field(default=None, ge=1, le=5)


class ReviewImage(BaseModel):
    url: str = Field(..., min_length=1)
    caption: str | None = None


class HelpfulVote(BaseModel):
    user: str
    helpful: bool


class Report(BaseModel):
    user: str
    reason: ReportReason
    reported_at: datetime = Field(default_factory=utcnow)


class Review(BaseModel):
    """
    Review document persisted in the `reviews` collection.
    """

    user: str
    package: str
    booking: str | None = None
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1, max_length=100)
    comment: str = Field(..., min_length=1, max_length=1000)
    categories: CategoryRatings = Field(default_factory=CategoryRatings)
    images: list[ReviewImage] = Field(default_factory=list)

    is_verified: bool = False
    is_approved: bool = True
    moderated_by: str | None = None
    moderated_at: datetime | None = None
    moderation_notes: str | None = None

    helpful: list[HelpfulVote] = Field(default_factory=list)
    reported: list[Report] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# Request Models
class CreateReviewRequest(BaseModel):
    booking_id: str
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1, max_length=100)
    comment: str = Field(..., min_length=1, max_length=1000)
    categories: CategoryRatings = Field(default_factory=CategoryRatings)
    images: list[ReviewImage] = Field(default_factory=list)


class HelpfulVoteRequest(BaseModel):
    helpful: bool


class ReportRequest(BaseModel):
    reason: ReportReason


class ModerateReviewRequest(BaseModel):
    status: Literal["approved", "rejected"]
    notes: str | None = Field(default=None, max_length=500)
