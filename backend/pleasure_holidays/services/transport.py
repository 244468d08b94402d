"""
Transport option catalog: listing, route search, schedules and class pricing
"""

import logging
import re
from datetime import datetime

from pymongo import ReturnDocument

from pleasure_holidays.core.context import AppContext
from pleasure_holidays.core.errors import BadRequestError, ForbiddenError, NotFoundError
from pleasure_holidays.models.common import PageParams, paginate, parse_object_id, serialize_doc, to_naive_utc, utcnow
from pleasure_holidays.models.transport import (
    Schedule,
    ScheduleUpdate,
    TransportOption,
    TransportOptionIn,
    TransportOptionUpdate,
    TransportPricing,
)

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "name": "name",
    "type": "type",
    "price": "pricing.base_price",
    "created_at": "created_at",
}


# ---------- rules ----------


def class_price(pricing: dict, class_name: str) -> float | None:
    """base price x class multiplier; None for an unknown class."""
    for entry in pricing.get("class_pricing") or []:
        if entry["name"].lower() == class_name.lower():
            return round(pricing["base_price"] * entry["multiplier"], 2)
    return None


def matching_schedules(schedules: list[dict], on: datetime | None = None, passengers: int = 1) -> list[dict]:
    """Schedules departing on or after `on` with at least `passengers` seats left."""
    open_seats = [s for s in schedules if s.get("available_seats", 0) >= passengers]
    if on is None:
        return open_seats
    on = to_naive_utc(on)
    return [s for s in open_seats if s["departure_date"] >= on]


def _regex(text: str) -> dict:
    return {"$regex": re.escape(text), "$options": "i"}


def _route_clause(text: str) -> dict:
    pattern = _regex(text)
    return {"$or": [{"routes.from_location": pattern}, {"routes.to_location": pattern}]}


def _ensure_can_modify(doc: dict, user: dict) -> None:
    if user["role"] == "agent" and doc.get("created_by") != str(user["_id"]):
        raise ForbiddenError("You can only modify transport options you created")


async def _get_doc(ctx: AppContext, option_id: str, active_only: bool = False) -> dict:
    doc = await ctx.transport_options.find_one({"_id": parse_object_id(option_id, "Transport option")})
    if not doc or (active_only and not doc.get("is_active", True)):
        raise NotFoundError("Transport option not found")
    return doc


async def _set(ctx: AppContext, doc: dict, user: dict, changes: dict, guard: dict | None = None) -> dict:
    changes.update({"updated_by": str(user["_id"]), "updated_at": utcnow()})
    updated = await ctx.transport_options.find_one_and_update(
        {"_id": doc["_id"], **(guard or {})}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise BadRequestError("Transport option changed while updating, please retry")
    return serialize_doc(updated)


# ---------- public ----------


async def list_options(
    ctx: AppContext,
    params: PageParams,
    type: str | None = None,
    destination: str | None = None,
    search: str | None = None,
    sort_by: str = "name",
    sort_order: str = "asc",
) -> dict:
    query: dict = {"is_active": True}
    clauses: list[dict] = []
    if type:
        query["type"] = type
    if destination:
        clauses.append(_route_clause(destination))
    if search:
        pattern = _regex(search)
        clauses.append(
            {
                "$or": [
                    {"name": pattern},
                    {"description": pattern},
                    {"routes.from_location": pattern},
                    {"routes.to_location": pattern},
                ]
            }
        )
    if clauses:
        query["$and"] = clauses

    sort = [(SORT_FIELDS.get(sort_by, "name"), -1 if sort_order == "desc" else 1)]
    docs, pagination = await paginate(ctx.transport_options, query, params, sort)
    return {"transport_options": serialize_doc(docs), "pagination": pagination}


async def get_option(ctx: AppContext, option_id: str) -> dict:
    return serialize_doc(await _get_doc(ctx, option_id, active_only=True))


async def list_by_type(ctx: AppContext, type: str, params: PageParams) -> dict:
    return await list_options(ctx, params, type=type)


async def search_routes(
    ctx: AppContext,
    from_location: str | None,
    to_location: str | None,
    on: datetime | None = None,
    passengers: int = 1,
) -> list[dict]:
    """Active options serving from->to in either direction, cheapest first."""
    if not from_location or not to_location:
        raise BadRequestError("From and To locations are required")

    src, dst = _regex(from_location), _regex(to_location)
    query: dict = {
        "is_active": True,
        "$or": [
            {"routes": {"$elemMatch": {"from_location": src, "to_location": dst}}},
            {"routes": {"$elemMatch": {"from_location": dst, "to_location": src}}},
        ],
    }
    if on is not None:
        query["schedules"] = {
            "$elemMatch": {"departure_date": {"$gte": to_naive_utc(on)}, "available_seats": {"$gte": passengers}}
        }

    docs = await ctx.transport_options.find(query).sort("pricing.base_price", 1).to_list(length=None)
    return serialize_doc(docs)


async def availability(ctx: AppContext, option_id: str, on: datetime | None = None, passengers: int = 1) -> dict:
    doc = await _get_doc(ctx, option_id, active_only=True)
    schedules = matching_schedules(doc.get("schedules") or [], on, passengers)
    return {
        "transport_option_id": str(doc["_id"]),
        "available_schedules": serialize_doc(schedules),
        "total_available": len(schedules),
    }


async def get_class_price(ctx: AppContext, option_id: str, class_name: str) -> dict:
    doc = await _get_doc(ctx, option_id, active_only=True)
    price = class_price(doc["pricing"], class_name)
    if price is None:
        raise NotFoundError(f"Class '{class_name}' not offered")
    return {
        "class": class_name,
        "base_price": doc["pricing"]["base_price"],
        "price": price,
        "currency": doc["pricing"].get("currency", "INR"),
    }


# ---------- agent / admin ----------


async def create_option(ctx: AppContext, body: TransportOptionIn, user: dict) -> dict:
    option = TransportOption(**body.model_dump(), created_by=str(user["_id"]))
    doc = option.model_dump()
    result = await ctx.transport_options.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info(f"[transport] Created {result.inserted_id} ({body.type}) by {user['_id']}")
    return serialize_doc(doc)


async def update_option(ctx: AppContext, option_id: str, body: TransportOptionUpdate, user: dict) -> dict:
    doc = await _get_doc(ctx, option_id)
    _ensure_can_modify(doc, user)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise BadRequestError("No transport option fields supplied")
    return await _set(ctx, doc, user, changes)


async def deactivate_option(ctx: AppContext, option_id: str, user: dict) -> dict:
    doc = await _get_doc(ctx, option_id)
    _ensure_can_modify(doc, user)
    updated = await _set(ctx, doc, user, {"is_active": False})
    logger.info(f"[transport] Deactivated {option_id} by {user['_id']}")
    return updated


async def add_schedules(ctx: AppContext, option_id: str, schedules: list[Schedule], user: dict) -> dict:
    doc = await _get_doc(ctx, option_id)
    _ensure_can_modify(doc, user)
    updated = await ctx.transport_options.find_one_and_update(
        {"_id": doc["_id"]},
        {
            "$push": {"schedules": {"$each": [s.model_dump() for s in schedules]}},
            "$set": {"updated_by": str(user["_id"]), "updated_at": utcnow()},
        },
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFoundError("Transport option not found")
    return serialize_doc(updated)


async def update_schedule(ctx: AppContext, option_id: str, schedule_id: str, body: ScheduleUpdate, user: dict) -> dict:
    doc = await _get_doc(ctx, option_id)
    _ensure_can_modify(doc, user)

    schedules = [dict(s) for s in doc.get("schedules") or []]
    for schedule in schedules:
        if schedule.get("id") == schedule_id:
            schedule.update(body.model_dump(exclude_unset=True, exclude_none=True))
            break
    else:
        raise NotFoundError("Schedule not found")

    return await _set(ctx, doc, user, {"schedules": schedules}, guard={"updated_at": doc.get("updated_at")})


async def update_pricing(ctx: AppContext, option_id: str, pricing: TransportPricing, user: dict) -> dict:
    doc = await _get_doc(ctx, option_id)
    _ensure_can_modify(doc, user)
    return await _set(ctx, doc, user, {"pricing": pricing.model_dump()})


async def admin_list_options(
    ctx: AppContext,
    params: PageParams,
    type: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    query: dict = {}
    if type:
        query["type"] = type
    if is_active is not None:
        query["is_active"] = is_active
    if search:
        pattern = _regex(search)
        query["$or"] = [
            {"name": pattern},
            {"description": pattern},
            {"routes.from_location": pattern},
            {"routes.to_location": pattern},
        ]

    sort = [(SORT_FIELDS.get(sort_by, "created_at"), -1 if sort_order == "desc" else 1)]
    docs, pagination = await paginate(ctx.transport_options, query, params, sort)
    return {"transport_options": serialize_doc(docs), "pagination": pagination}


async def admin_set_active(ctx: AppContext, option_id: str, is_active: bool, admin: dict) -> dict:
    doc = await _get_doc(ctx, option_id)
    return await _set(ctx, doc, admin, {"is_active": is_active})


async def admin_replace_schedules(ctx: AppContext, option_id: str, schedules: list[Schedule], admin: dict) -> dict:
    doc = await _get_doc(ctx, option_id)
    return await _set(ctx, doc, admin, {"schedules": [s.model_dump() for s in schedules]})
