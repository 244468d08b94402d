"""
Profile self-service, admin user management and dashboard statistics
"""

import logging
import platform
import re
from datetime import datetime

from pymongo import ReturnDocument

from pleasure_holidays.core.context import AppContext
from pleasure_holidays.core.errors import BadRequestError, NotFoundError
from pleasure_holidays.models.common import PageParams, paginate, parse_object_id, serialize_doc, utcnow
from pleasure_holidays.models.user import (
    AdminUpdateUserRequest,
    Address,
    PRIVATE_FIELDS,
    UpdateProfileRequest,
    public_user,
)

logger = logging.getLogger(__name__)

USER_SORT_FIELDS = ("created_at", "first_name", "last_name", "email", "role", "last_login")


async def _update_user(ctx: AppContext, user_id, changes: dict) -> dict:
    changes["updated_at"] = utcnow()
    updated = await ctx.users.find_one_and_update(
        {"_id": user_id}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise NotFoundError("User not found")
    return public_user(updated)


# ---------- self-service ----------


async def update_profile(ctx: AppContext, user: dict, body: UpdateProfileRequest) -> dict:
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise BadRequestError("No profile fields supplied")
    return await _update_user(ctx, user["_id"], changes)


async def update_address(ctx: AppContext, user: dict, address: Address) -> dict:
    return await _update_user(ctx, user["_id"], {"address": address.model_dump()})


async def update_preferences(ctx: AppContext, user: dict, preferences: dict) -> dict:
    updated = await _update_user(ctx, user["_id"], {"preferences": preferences})
    return updated.get("preferences", {})


async def deactivate_own_account(ctx: AppContext, user: dict) -> None:
    await _update_user(ctx, user["_id"], {"is_active": False})
    logger.info(f"[user] User {user['_id']} deactivated their account")


# ---------- admin ----------


async def list_users(
    ctx: AppContext,
    params: PageParams,
    role: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    query: dict = {}
    if role:
        query["role"] = role
    if is_active is not None:
        query["is_active"] = is_active
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"first_name": pattern}, {"last_name": pattern}, {"email": pattern}, {"phone": pattern}]

    if sort_by not in USER_SORT_FIELDS:
        sort_by = "created_at"
    direction = 1 if sort_order == "asc" else -1

    docs, pagination = await paginate(ctx.users, query, params, [(sort_by, direction)])
    return {"users": [public_user(d) for d in docs], "pagination": pagination}


async def get_user(ctx: AppContext, user_id: str) -> dict:
    doc = await ctx.users.find_one({"_id": parse_object_id(user_id, "User")})
    if not doc:
        raise NotFoundError("User not found")
    return public_user(doc)


async def admin_update_user(ctx: AppContext, admin: dict, user_id: str, body: AdminUpdateUserRequest) -> dict:
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise BadRequestError("No user fields supplied")
    oid = parse_object_id(user_id, "User")
    if oid == admin["_id"] and (changes.get("is_active") is False or changes.get("role", "admin") != "admin"):
        raise BadRequestError("Admins cannot demote or deactivate themselves")

    updated = await _update_user(ctx, oid, changes)
    logger.info(f"[admin] User {user_id} updated by {admin['_id']}: {sorted(changes)}")
    return updated


async def admin_deactivate_user(ctx: AppContext, admin: dict, user_id: str) -> dict:
    oid = parse_object_id(user_id, "User")
    if oid == admin["_id"]:
        raise BadRequestError("Admins cannot deactivate themselves")
    updated = await _update_user(ctx, oid, {"is_active": False})
    logger.info(f"[admin] User {user_id} deactivated by {admin['_id']}")
    return updated


async def _sum(collection, match: dict, field: str) -> float:
    rows = await collection.aggregate(
        [{"$match": match}, {"$group": {"_id": None, "total": {"$sum": field}}}]
    ).to_list(length=1)
    return rows[0]["total"] if rows else 0


async def _avg(collection, match: dict, field: str) -> float:
    rows = await collection.aggregate(
        [{"$match": match}, {"$group": {"_id": None, "average": {"$avg": field}}}]
    ).to_list(length=1)
    return (rows[0]["average"] or 0) if rows else 0


async def dashboard_stats(ctx: AppContext) -> dict:
    now = utcnow()
    start_of_month = datetime(now.year, now.month, 1)
    start_of_year = datetime(now.year, 1, 1)

    users = {
        "total": await ctx.users.count_documents({}),
        "new_this_month": await ctx.users.count_documents({"created_at": {"$gte": start_of_month}}),
        "new_this_year": await ctx.users.count_documents({"created_at": {"$gte": start_of_year}}),
    }
    packages = {
        "total": await ctx.packages.count_documents({}),
        "pending": await ctx.packages.count_documents({"is_approved": False, "approved_by": None}),
        "approved": await ctx.packages.count_documents({"is_approved": True}),
    }
    bookings = {
        "total": await ctx.bookings.count_documents({}),
        "this_month": await ctx.bookings.count_documents({"created_at": {"$gte": start_of_month}}),
        "total_revenue": await _sum(ctx.bookings, {"payment.status": "completed"}, "$pricing.total_amount"),
    }
    reviews = {
        "total": await ctx.reviews.count_documents({}),
        "pending": await ctx.reviews.count_documents({"is_approved": False, "moderated_by": None}),
        "average_rating": round(await _avg(ctx.reviews, {"is_approved": True}, "$rating"), 1),
    }

    recent_bookings = await ctx.bookings.find({}).sort("created_at", -1).limit(5).to_list(length=5)
    recent_users = await ctx.users.find({}, {f: 0 for f in PRIVATE_FIELDS}).sort("created_at", -1).limit(5).to_list(length=5)

    return {
        "statistics": {"users": users, "packages": packages, "bookings": bookings, "reviews": reviews},
        "recent_activities": {
            "bookings": serialize_doc(recent_bookings),
            "users": serialize_doc(recent_users),
        },
    }


def system_health(ctx: AppContext) -> dict:
    return {
        "python_version": platform.python_version(),
        "platform": platform.platform(),
        "environment": ctx.settings.environment,
        "timestamp": utcnow().isoformat(),
    }
