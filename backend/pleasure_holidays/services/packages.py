"""
Catalog service for travel packages
Availability and seasonal pricing rules plus the listing, ownership and approval operations.
"""

import logging
import re
from datetime import datetime

from pymongo import ReturnDocument

from pleasure_holidays.core.context import AppContext
from pleasure_holidays.core.errors import BadRequestError, ForbiddenError, NotFoundError
from pleasure_holidays.models.common import PageParams, paginate, parse_object_id, serialize_doc, to_naive_utc, utcnow
from pleasure_holidays.models.package import Package, PackageIn, PackageUpdate

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "created_at": "created_at",
    "price": "pricing.base_price",
    "rating": "ratings.average",
    "duration": "duration.days",
    "name": "name",
}


# ---------- rules ----------


def is_available(package: dict) -> bool:
    """A package is bookable iff it is approved, active and has at least one free slot."""
    availability = package.get("availability") or {}
    return bool(
        package.get("is_approved")
        and availability.get("is_active")
        and availability.get("booked_slots", 0) < availability.get("total_slots", 0)
    )


def can_reserve(package: dict, travelers: int) -> bool:
    """Available, and the whole party fits in the remaining slots."""
    availability = package.get("availability") or {}
    return is_available(package) and availability.get("booked_slots", 0) + travelers <= availability.get("total_slots", 0)


def seasonal_price(pricing: dict, on: datetime) -> tuple[float, str | None]:
    """
    Effective per-person price on a date.
    The first seasonal entry whose [start_date, end_date] contains the date wins;
    with no match the base price applies.
    """
    base = pricing.get("base_price", 0)
    on = to_naive_utc(on)
    for entry in pricing.get("seasonal_pricing") or []:
        if entry["start_date"] <= on <= entry["end_date"]:
            return base * entry["multiplier"], entry.get("season")
    return base, None


def serialize_package(doc: dict) -> dict:
    out = serialize_doc(doc)
    availability = doc.get("availability") or {}
    out["is_available"] = is_available(doc)
    out["available_slots"] = max(availability.get("total_slots", 0) - availability.get("booked_slots", 0), 0)
    return out


def _regex(text: str) -> dict:
    return {"$regex": re.escape(text), "$options": "i"}


def _sort(sort_by: str, sort_order: str) -> list[tuple[str, int]]:
    field = SORT_FIELDS.get(sort_by, "created_at")
    return [(field, 1 if sort_order == "asc" else -1)]


async def _get_doc(ctx: AppContext, package_id: str) -> dict:
    doc = await ctx.packages.find_one({"_id": parse_object_id(package_id, "Package")})
    if not doc:
        raise NotFoundError("Package not found")
    return doc


# ---------- public catalog ----------


async def list_packages(
    ctx: AppContext,
    params: PageParams,
    category: str | None = None,
    destination: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    max_duration: int | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    query: dict = {"is_approved": True, "availability.is_active": True}
    clauses: list[dict] = []

    if category:
        query["category"] = category
    if destination:
        pattern = _regex(destination)
        clauses.append({"$or": [{"destination.country": pattern}, {"destination.city": pattern}]})
    if min_price is not None or max_price is not None:
        price: dict = {}
        if min_price is not None:
            price["$gte"] = min_price
        if max_price is not None:
            price["$lte"] = max_price
        query["pricing.base_price"] = price
    if max_duration is not None:
        query["duration.days"] = {"$lte": max_duration}
    if search:
        pattern = _regex(search)
        clauses.append(
            {
                "$or": [
                    {"name": pattern},
                    {"description": pattern},
                    {"destination.country": pattern},
                    {"destination.city": pattern},
                    {"tags": pattern},
                ]
            }
        )
    if clauses:
        query["$and"] = clauses

    docs, pagination = await paginate(ctx.packages, query, params, _sort(sort_by, sort_order))
    return {"packages": [serialize_package(d) for d in docs], "pagination": pagination}


async def get_package(ctx: AppContext, package_id: str) -> dict:
    return serialize_package(await _get_doc(ctx, package_id))


async def package_price(ctx: AppContext, package_id: str, on: datetime) -> dict:
    doc = await _get_doc(ctx, package_id)
    price, season = seasonal_price(doc["pricing"], on)
    return {
        "package_id": package_id,
        "date": to_naive_utc(on).isoformat(),
        "base_price": doc["pricing"]["base_price"],
        "price": price,
        "season": season,
        "currency": doc["pricing"].get("currency", "INR"),
    }


async def list_categories(ctx: AppContext) -> list[str]:
    return sorted(await ctx.packages.distinct("category"))


async def list_destinations(ctx: AppContext) -> list[dict]:
    docs = await ctx.packages.find(
        {"is_approved": True}, {"destination.country": 1, "destination.city": 1}
    ).to_list(length=None)
    pairs = {(d["destination"]["country"], d["destination"]["city"]) for d in docs if d.get("destination")}
    return [{"country": country, "city": city} for country, city in sorted(pairs)]


async def list_featured(ctx: AppContext, limit: int = 6) -> list[dict]:
    cursor = (
        ctx.packages.find({"is_approved": True, "availability.is_active": True})
        .sort([("ratings.average", -1), ("ratings.count", -1)])
        .limit(limit)
    )
    return [serialize_package(d) for d in await cursor.to_list(length=limit)]


# ---------- agent / admin ----------


async def create_package(ctx: AppContext, body: PackageIn, user: dict) -> dict:
    package = Package.from_input(body, created_by=str(user["_id"]))
    if user["role"] == "admin":
        package.is_approved = True
        package.approved_by = str(user["_id"])
        package.approved_at = utcnow()

    doc = package.model_dump()
    result = await ctx.packages.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info(f"[package] Created {result.inserted_id} by {user['role']} {user['_id']} (approved={package.is_approved})")
    return serialize_package(doc)


async def update_package(ctx: AppContext, package_id: str, body: PackageUpdate, user: dict) -> dict:
    doc = await _get_doc(ctx, package_id)
    if user["role"] == "agent" and doc.get("created_by") != str(user["_id"]):
        raise ForbiddenError("You can only edit packages created by you")

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise BadRequestError("No package fields supplied")

    query: dict = {"_id": doc["_id"]}
    total_slots = changes.pop("total_slots", None)
    if total_slots is not None:
        if doc["availability"]["booked_slots"] > total_slots:
            raise BadRequestError("Total slots cannot be lower than slots already booked")
        changes["availability.total_slots"] = total_slots
        query["availability.booked_slots"] = {"$lte": total_slots}
    is_active = changes.pop("is_active", None)
    if is_active is not None:
        changes["availability.is_active"] = is_active
    changes["updated_at"] = utcnow()

    updated = await ctx.packages.find_one_and_update(query, {"$set": changes}, return_document=ReturnDocument.AFTER)
    if not updated:
        raise BadRequestError("Package changed while updating, please retry")
    logger.info(f"[package] Updated {package_id} by {user['_id']}")
    return serialize_package(updated)


async def delete_package(ctx: AppContext, package_id: str, user: dict) -> None:
    result = await ctx.packages.delete_one({"_id": parse_object_id(package_id, "Package")})
    if not result.deleted_count:
        raise NotFoundError("Package not found")
    logger.info(f"[package] Deleted {package_id} by admin {user['_id']}")


async def approve_package(ctx: AppContext, package_id: str, admin: dict) -> dict:
    doc = await _get_doc(ctx, package_id)
    if doc.get("is_approved"):
        raise BadRequestError("Package is already approved")

    updated = await ctx.packages.find_one_and_update(
        {"_id": doc["_id"], "is_approved": False},
        {
            "$set": {
                "is_approved": True,
                "approved_by": str(admin["_id"]),
                "approved_at": utcnow(),
                "rejection_reason": None,
                "updated_at": utcnow(),
            }
        },
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise BadRequestError("Package is already approved")
    logger.info(f"[package] Approved {package_id} by {admin['_id']}")
    return serialize_package(updated)


async def reject_package(ctx: AppContext, package_id: str, admin: dict, reason: str | None) -> dict:
    doc = await _get_doc(ctx, package_id)
    if not doc.get("is_approved") and doc.get("approved_by"):
        raise BadRequestError("Package is already rejected")

    updated = await ctx.packages.find_one_and_update(
        {"_id": doc["_id"], "$or": [{"is_approved": True}, {"approved_by": None}]},
        {
            "$set": {
                "is_approved": False,
                "approved_by": str(admin["_id"]),
                "approved_at": utcnow(),
                "rejection_reason": reason,
                "updated_at": utcnow(),
            }
        },
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise BadRequestError("Package is already rejected")
    logger.info(f"[package] Rejected {package_id} by {admin['_id']}")
    return serialize_package(updated)


async def list_pending(ctx: AppContext, params: PageParams) -> dict:
    query = {"is_approved": False, "approved_by": None}
    docs, pagination = await paginate(ctx.packages, query, params, [("created_at", -1)])
    return {"packages": [serialize_package(d) for d in docs], "pagination": pagination}


async def list_mine(ctx: AppContext, user: dict, params: PageParams) -> dict:
    query = {"created_by": str(user["_id"])}
    docs, pagination = await paginate(ctx.packages, query, params, [("created_at", -1)])
    return {"packages": [serialize_package(d) for d in docs], "pagination": pagination}


async def admin_list_packages(
    ctx: AppContext,
    params: PageParams,
    status: str | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    query: dict = {}
    if status == "approved":
        query["is_approved"] = True
    elif status == "pending":
        query.update({"is_approved": False, "approved_by": None})
    elif status == "rejected":
        query.update({"is_approved": False, "approved_by": {"$ne": None}})
    if search:
        pattern = _regex(search)
        query["$or"] = [
            {"name": pattern},
            {"description": pattern},
            {"destination.country": pattern},
            {"destination.city": pattern},
        ]

    docs, pagination = await paginate(ctx.packages, query, params, _sort(sort_by, sort_order))
    return {"packages": [serialize_package(d) for d in docs], "pagination": pagination}
