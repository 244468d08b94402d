"""
Package reviews: creation from completed bookings, helpful votes, reports,
moderation and the package rating aggregate.
"""

import logging
import re

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from pleasure_holidays.core.context import AppContext
from pleasure_holidays.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from pleasure_holidays.models.common import PageParams, paginate, parse_object_id, serialize_doc, utcnow
from pleasure_holidays.models.review import CreateReviewRequest, ModerateReviewRequest, Review

logger = logging.getLogger(__name__)

CATEGORY_FIELDS = ("service", "value", "cleanliness", "location", "food")


# ---------- rules ----------


def apply_helpful_vote(votes: list[dict], user_id: str, helpful: bool) -> list[dict]:
    """One vote per user; a re-vote overwrites the earlier one."""
    out = [dict(v) for v in votes]
    for vote in out:
        if vote["user"] == user_id:
            vote["helpful"] = helpful
            return out
    out.append({"user": user_id, "helpful": helpful})
    return out


def apply_report(reports: list[dict], user_id: str, reason: str, reported_at=None) -> tuple[list[dict], bool]:
    """One report per user; later reports from the same user are ignored. Returns (reports, added)."""
    if any(r["user"] == user_id for r in reports):
        return list(reports), False
    return [*reports, {"user": user_id, "reason": reason, "reported_at": reported_at or utcnow()}], True


def average_category_rating(review: dict) -> float:
    """Mean of the category ratings that are set; the overall rating when none are."""
    categories = review.get("categories") or {}
    present = [categories[k] for k in CATEGORY_FIELDS if categories.get(k)]
    if not present:
        return review["rating"]
    return sum(present) / len(present)


def serialize_review(doc: dict) -> dict:
    out = serialize_doc(doc)
    votes = doc.get("helpful") or []
    out["helpful_count"] = sum(1 for v in votes if v.get("helpful"))
    out["unhelpful_count"] = sum(1 for v in votes if not v.get("helpful"))
    out["average_category_rating"] = average_category_rating(doc)
    return out


async def _get_doc(ctx: AppContext, review_id: str) -> dict:
    doc = await ctx.reviews.find_one({"_id": parse_object_id(review_id, "Review")})
    if not doc:
        raise NotFoundError("Review not found")
    return doc


async def recompute_package_rating(ctx: AppContext, package_id: str) -> dict:
    """Average (1 decimal) and count over the package's approved reviews."""
    ratings = [
        d["rating"]
        for d in await ctx.reviews.find({"package": package_id, "is_approved": True}, {"rating": 1}).to_list(length=None)
    ]
    aggregate = {
        "average": round(sum(ratings) / len(ratings), 1) if ratings else 0,
        "count": len(ratings),
    }
    await ctx.packages.update_one(
        {"_id": parse_object_id(package_id, "Package")},
        {"$set": {"ratings": aggregate, "updated_at": utcnow()}},
    )
    logger.debug(f"[review] Package {package_id} rating is now {aggregate}")
    return aggregate


# ---------- operations ----------


async def create_review(ctx: AppContext, body: CreateReviewRequest, user: dict) -> dict:
    booking = await ctx.bookings.find_one({"_id": parse_object_id(body.booking_id, "Booking")})
    if not booking:
        raise NotFoundError("Booking not found")
    if booking.get("customer") != str(user["_id"]):
        raise ForbiddenError("You can only review your own bookings")
    if booking.get("status") != "completed":
        raise BadRequestError("You can only review completed bookings")

    user_id = str(user["_id"])
    if await ctx.reviews.find_one({"user": user_id, "booking": body.booking_id}):
        raise ConflictError("You have already reviewed this booking")

    review = Review(
        user=user_id,
        package=booking["package"],
        booking=body.booking_id,
        rating=body.rating,
        title=body.title,
        comment=body.comment,
        categories=body.categories,
        images=body.images,
        is_verified=True,
    )
    doc = review.model_dump()
    try:
        result = await ctx.reviews.insert_one(doc)
    except DuplicateKeyError as e:
        raise ConflictError("You have already reviewed this booking", cause=e)
    doc["_id"] = result.inserted_id

    await recompute_package_rating(ctx, booking["package"])
    logger.info(f"[review] Created {result.inserted_id} for package {booking['package']} by {user_id}")
    return serialize_review(doc)


async def list_package_reviews(ctx: AppContext, package_id: str, params: PageParams) -> dict:
    query = {"package": package_id, "is_approved": True}
    docs, pagination = await paginate(ctx.reviews, query, params, [("created_at", -1)])
    return {"reviews": [serialize_review(d) for d in docs], "pagination": pagination}


async def get_review(ctx: AppContext, review_id: str) -> dict:
    return serialize_review(await _get_doc(ctx, review_id))


async def _replace_list(ctx: AppContext, doc: dict, field: str, value: list[dict]) -> dict:
    updated = await ctx.reviews.find_one_and_update(
        {"_id": doc["_id"], "updated_at": doc.get("updated_at")},
        {"$set": {field: value, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise BadRequestError("Review changed while updating, please retry")
    return updated


async def vote_helpful(ctx: AppContext, review_id: str, user: dict, helpful: bool) -> dict:
    doc = await _get_doc(ctx, review_id)
    votes = apply_helpful_vote(doc.get("helpful") or [], str(user["_id"]), helpful)
    updated = await _replace_list(ctx, doc, "helpful", votes)
    return serialize_review(updated)


async def report_review(ctx: AppContext, review_id: str, user: dict, reason: str) -> dict:
    doc = await _get_doc(ctx, review_id)
    reports, added = apply_report(doc.get("reported") or [], str(user["_id"]), reason)
    if not added:
        return serialize_review(doc)
    updated = await _replace_list(ctx, doc, "reported", reports)
    logger.info(f"[review] Review {review_id} reported ({reason})")
    return serialize_review(updated)


async def moderate_review(ctx: AppContext, review_id: str, admin: dict, body: ModerateReviewRequest) -> dict:
    doc = await _get_doc(ctx, review_id)
    now = utcnow()
    updated = await ctx.reviews.find_one_and_update(
        {"_id": doc["_id"]},
        {
            "$set": {
                "is_approved": body.status == "approved",
                "moderated_by": str(admin["_id"]),
                "moderated_at": now,
                "moderation_notes": body.notes,
                "updated_at": now,
            }
        },
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFoundError("Review not found")

    await recompute_package_rating(ctx, doc["package"])
    logger.info(f"[review] Review {review_id} {body.status} by {admin['_id']}")
    return serialize_review(updated)


async def admin_list_reviews(
    ctx: AppContext,
    params: PageParams,
    status: str | None = None,
    rating: int | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    query: dict = {}
    if status == "approved":
        query["is_approved"] = True
    elif status == "rejected":
        query.update({"is_approved": False, "moderated_by": {"$ne": None}})
    elif status == "pending":
        query.update({"is_approved": False, "moderated_by": None})
    if rating is not None:
        query["rating"] = rating
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"title": pattern}, {"comment": pattern}]

    if sort_by not in ("created_at", "rating"):
        sort_by = "created_at"
    direction = 1 if sort_order == "asc" else -1
    docs, pagination = await paginate(ctx.reviews, query, params, [(sort_by, direction)])
    return {"reviews": [serialize_review(d) for d in docs], "pagination": pagination}
