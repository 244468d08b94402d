"""
Booking lifecycle service

Pricing and identifier rules, slot reservation, payment order/verification,
admin approval, cancellation and completion.

Every transition reads a snapshot, checks its guards, then applies a single
find_one_and_update whose filter repeats those guards. When a concurrent
request wins the race the update matches nothing and BadRequestError is raised.
"""

import logging
import re
import secrets
from datetime import datetime

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from pleasure_holidays.core.context import AppContext
from pleasure_holidays.core.errors import BadRequestError, ForbiddenError, InternalError, NotFoundError
from pleasure_holidays.models.booking import (
    TERMINAL_STATUSES,
    AddBookingReviewRequest,
    AddDocumentRequest,
    Booking,
    BookingDocument,
    BookingPricing,
    CreateBookingRequest,
    EmbeddedReview,
    Notification,
    VerifyPaymentRequest,
)
from pleasure_holidays.models.common import PageParams, paginate, parse_object_id, serialize_doc, utcnow
from pleasure_holidays.services.packages import can_reserve, is_available

logger = logging.getLogger(__name__)

BOOKING_ID_ATTEMPTS = 5
BOOKING_SORT_FIELDS = ("created_at", "booking_id", "status", "pricing.total_amount", "travel_details.start_date")


# ---------- rules ----------


def compute_pricing(
    unit_price: float,
    travelers: int,
    tax_rate: float = 0.18,
    currency: str = "INR",
    price_per_person: bool = True,
) -> BookingPricing:
    """
    base = unit price x travelers, taxes = base x tax rate, no discount,
    total = base - discount + taxes.

    Amounts are kept unrounded; order_amount rounds once to minor units.
    """
    base_price = unit_price * travelers
    discount = 0.0
    taxes = base_price * tax_rate
    return BookingPricing(
        base_price=base_price,
        discount=discount,
        taxes=taxes,
        total_amount=base_price - discount + taxes,
        currency=currency,
        price_per_person=price_per_person,
    )


def generate_booking_id(prefix: str = "PH", now: datetime | None = None) -> str:
    """PREFIX + YYMMDD + 4 random digits, e.g. PH2510180427."""
    now = now or utcnow()
    return f"{prefix}{now:%y%m%d}{secrets.randbelow(10000):04d}"


def order_amount(total_amount: float) -> int:
    """Gateway amount in minor units (paise/cents)."""
    return int(round(total_amount * 100))


def _notification(title: str, message: str) -> dict:
    return Notification(title=title, message=message).model_dump()


def _notify(booking: dict, note: dict) -> None:
    # Delivery is a logged stub; the entry itself is persisted with the transition
    logger.info(f"[notify] {note['type']} to customer {booking.get('customer')} for {booking.get('booking_id')}: {note['title']}")


def serialize_booking(doc: dict) -> dict:
    out = serialize_doc(doc)
    travelers = (doc.get("travel_details") or {}).get("number_of_travelers") or {}
    out["total_travelers"] = sum(travelers.get(k, 0) for k in ("adults", "children", "infants"))
    return out


def _travelers(booking: dict) -> int:
    counts = booking["travel_details"]["number_of_travelers"]
    return counts.get("adults", 0) + counts.get("children", 0) + counts.get("infants", 0)


# ---------- access ----------


def _is_mediating_agent(booking: dict, user: dict) -> bool:
    return user["role"] == "agent" and booking.get("agent") == str(user["_id"])


def _ensure_can_access(booking: dict, user: dict) -> None:
    if user["role"] == "admin":
        return
    if user["role"] == "customer" and booking.get("customer") == str(user["_id"]):
        return
    if _is_mediating_agent(booking, user):
        return
    raise ForbiddenError("Access denied")


async def _get_doc(ctx: AppContext, booking_id: str) -> dict:
    doc = await ctx.bookings.find_one({"_id": parse_object_id(booking_id, "Booking")})
    if not doc:
        raise NotFoundError("Booking not found")
    return doc


async def _apply(ctx: AppContext, booking: dict, guard: dict, update: dict, race_message: str) -> dict:
    updated = await ctx.bookings.find_one_and_update(
        {"_id": booking["_id"], **guard}, update, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise BadRequestError(race_message)
    return updated


# ---------- slots ----------


async def _reserve_slots(ctx: AppContext, package: dict, travelers: int) -> None:
    total = package["availability"]["total_slots"]
    reserved = await ctx.packages.find_one_and_update(
        {
            "_id": package["_id"],
            "is_approved": True,
            "availability.is_active": True,
            "availability.total_slots": total,
            "availability.booked_slots": {"$lte": total - travelers},
        },
        {"$inc": {"availability.booked_slots": travelers}, "$set": {"updated_at": utcnow()}},
    )
    if not reserved:
        raise BadRequestError("Not enough slots available for this package")


async def _release_slots(ctx: AppContext, package_id: str, travelers: int) -> None:
    if not package_id or travelers <= 0:
        return
    released = await ctx.packages.find_one_and_update(
        {"_id": parse_object_id(package_id, "Package"), "availability.booked_slots": {"$gte": travelers}},
        {"$inc": {"availability.booked_slots": -travelers}, "$set": {"updated_at": utcnow()}},
    )
    if released:
        logger.info(f"[booking] Released {travelers} slot(s) on package {package_id}")
    else:
        logger.warning(f"[booking] Could not release {travelers} slot(s) on package {package_id}")


# ---------- create / read ----------


async def _resolve_customer(ctx: AppContext, body: CreateBookingRequest, user: dict) -> str:
    if user["role"] == "customer":
        if body.customer_id and body.customer_id != str(user["_id"]):
            raise ForbiddenError("Customers can only book for themselves")
        return str(user["_id"])

    if not body.customer_id:
        if user["role"] == "agent":
            raise BadRequestError("customer_id is required when an agent books on behalf of a customer")
        return str(user["_id"])

    customer = await ctx.users.find_one(
        {"_id": parse_object_id(body.customer_id, "Customer"), "role": "customer", "is_active": True}
    )
    if not customer:
        raise NotFoundError("Customer not found")
    return str(customer["_id"])


async def _resolve_agent(ctx: AppContext, body: CreateBookingRequest, user: dict) -> str | None:
    if user["role"] == "agent":
        if body.agent_id and body.agent_id != str(user["_id"]):
            raise ForbiddenError("Agents can only record themselves on a booking")
        return str(user["_id"])
    if not body.agent_id:
        return None

    agent = await ctx.users.find_one(
        {"_id": parse_object_id(body.agent_id, "Agent"), "role": "agent", "is_active": True}
    )
    if not agent:
        raise NotFoundError("Agent not found")
    return str(agent["_id"])


async def create_booking(ctx: AppContext, body: CreateBookingRequest, user: dict) -> dict:
    package = await ctx.packages.find_one({"_id": parse_object_id(body.package_id, "Package")})
    if not package:
        raise NotFoundError("Package not found")
    if not is_available(package):
        raise BadRequestError("Package is not available for booking")

    travelers = body.travel_details.number_of_travelers.total
    if not can_reserve(package, travelers):
        raise BadRequestError("Not enough slots available for this package")

    customer_id = await _resolve_customer(ctx, body, user)
    agent_id = await _resolve_agent(ctx, body, user)
    pricing = compute_pricing(
        package["pricing"]["base_price"],
        travelers,
        tax_rate=ctx.settings.tax_rate,
        currency=package["pricing"].get("currency", "INR"),
        price_per_person=package["pricing"].get("price_per_person", True),
    )

    await _reserve_slots(ctx, package, travelers)

    note = _notification("Booking received", f"Your booking for {package['name']} has been received")
    doc: dict = {}
    for attempt in range(1, BOOKING_ID_ATTEMPTS + 1):
        booking = Booking(
            booking_id=generate_booking_id(ctx.settings.booking_id_prefix),
            customer=customer_id,
            agent=agent_id,
            package=str(package["_id"]),
            travel_details=body.travel_details,
            pricing=pricing,
            notifications=[note],
        )
        doc = booking.model_dump()
        try:
            result = await ctx.bookings.insert_one(doc)
        except DuplicateKeyError:
            logger.warning(f"[booking] Booking id {doc['booking_id']} taken (attempt {attempt}/{BOOKING_ID_ATTEMPTS})")
            continue
        doc["_id"] = result.inserted_id
        break
    else:
        await _release_slots(ctx, str(package["_id"]), travelers)
        raise InternalError("Could not allocate a unique booking id")

    logger.info(
        f"[booking] Created {doc['booking_id']} for customer {customer_id} on package {package['_id']} "
        f"({travelers} travelers, total {pricing.total_amount} {pricing.currency})"
    )
    _notify(doc, note)
    return serialize_booking(doc)


async def list_bookings(ctx: AppContext, user: dict, params: PageParams, status: str | None = None) -> dict:
    query: dict = {}
    if user["role"] == "customer":
        query["customer"] = str(user["_id"])
    elif user["role"] == "agent":
        query["agent"] = str(user["_id"])
    if status:
        query["status"] = status

    docs, pagination = await paginate(ctx.bookings, query, params, [("created_at", -1)])
    return {"bookings": [serialize_booking(d) for d in docs], "pagination": pagination}


async def get_booking(ctx: AppContext, booking_id: str, user: dict) -> dict:
    doc = await _get_doc(ctx, booking_id)
    _ensure_can_access(doc, user)
    return serialize_booking(doc)


async def list_pending_approval(ctx: AppContext, params: PageParams) -> dict:
    query = {"approval.status": "pending", "status": {"$ne": "cancelled"}}
    docs, pagination = await paginate(ctx.bookings, query, params, [("created_at", -1)])
    return {"bookings": [serialize_booking(d) for d in docs], "pagination": pagination}


async def admin_list_bookings(
    ctx: AppContext,
    params: PageParams,
    status: str | None = None,
    search: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    query: dict = {}
    if status:
        query["status"] = status
    if search:
        query["booking_id"] = {"$regex": re.escape(search), "$options": "i"}
    if date_from or date_to:
        created: dict = {}
        if date_from:
            created["$gte"] = date_from
        if date_to:
            created["$lte"] = date_to
        query["created_at"] = created

    if sort_by not in BOOKING_SORT_FIELDS:
        sort_by = "created_at"
    direction = 1 if sort_order == "asc" else -1
    docs, pagination = await paginate(ctx.bookings, query, params, [(sort_by, direction)])
    return {"bookings": [serialize_booking(d) for d in docs], "pagination": pagination}


# ---------- payment ----------


async def create_payment_order(ctx: AppContext, booking_id: str, user: dict) -> dict:
    booking = await _get_doc(ctx, booking_id)
    _ensure_can_access(booking, user)

    if booking["payment"]["status"] == "completed":
        raise BadRequestError("Payment already completed")
    if booking["status"] in TERMINAL_STATUSES:
        raise BadRequestError(f"Cannot pay for a {booking['status']} booking")
    if booking["approval"]["status"] == "rejected":
        raise BadRequestError("Cannot pay for a rejected booking")

    package = await ctx.packages.find_one({"_id": parse_object_id(booking["package"], "Package")}, {"name": 1})
    amount = order_amount(booking["pricing"]["total_amount"])
    currency = booking["pricing"].get("currency", "INR")

    # Gateway failures raise before any booking state is touched
    order = await ctx.gateway.create_order(
        amount=amount,
        currency=currency,
        receipt=booking["booking_id"],
        notes={"booking_id": booking["booking_id"], "package_name": package["name"] if package else ""},
    )

    await _apply(
        ctx,
        booking,
        {"payment.status": {"$ne": "completed"}, "status": {"$nin": list(TERMINAL_STATUSES)}},
        {"$set": {"payment.razorpay_order_id": order["id"], "updated_at": utcnow()}},
        "Booking changed while creating the payment order, please retry",
    )
    logger.info(f"[booking] Payment order {order['id']} attached to {booking['booking_id']}")

    return {
        "order_id": order["id"],
        "amount": order.get("amount", amount),
        "currency": order.get("currency", currency),
        "key_id": ctx.settings.razorpay_key_id,
    }


async def verify_payment(ctx: AppContext, booking_id: str, body: VerifyPaymentRequest, user: dict) -> dict:
    booking = await _get_doc(ctx, booking_id)
    _ensure_can_access(booking, user)

    if booking["payment"]["status"] == "completed":
        raise BadRequestError("Payment already completed")
    if booking["status"] != "pending" or booking["approval"]["status"] == "rejected":
        raise BadRequestError("Booking can no longer be paid")
    stored_order_id = booking["payment"].get("razorpay_order_id")
    if not stored_order_id or stored_order_id != body.razorpay_order_id:
        raise BadRequestError("Payment order does not belong to this booking")
    if not ctx.gateway.verify(body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature):
        logger.warning(f"[payment] Invalid signature for {booking['booking_id']}")
        raise BadRequestError("Invalid payment signature")

    now = utcnow()
    note = _notification("Payment received", f"Payment for booking {booking['booking_id']} was successful")
    updated = await _apply(
        ctx,
        booking,
        {
            "payment.status": {"$ne": "completed"},
            "payment.razorpay_order_id": stored_order_id,
            "status": "pending",
            "approval.status": {"$ne": "rejected"},
        },
        {
            "$set": {
                "payment.status": "completed",
                "payment.razorpay_payment_id": body.razorpay_payment_id,
                "payment.transaction_id": body.razorpay_payment_id,
                "payment.paid_at": now,
                "status": "confirmed",
                "updated_at": now,
            },
            "$push": {"notifications": note},
        },
        "Payment already completed",
    )
    logger.info(f"[payment] Verified payment for {booking['booking_id']}")
    _notify(updated, note)
    return serialize_booking(updated)


# ---------- admin approval ----------


async def approve_booking(ctx: AppContext, booking_id: str, admin: dict, notes: str | None = None) -> dict:
    booking = await _get_doc(ctx, booking_id)
    if booking["approval"]["status"] == "approved":
        raise BadRequestError("Booking is already approved")
    if booking["approval"]["status"] == "rejected":
        raise BadRequestError("Booking has been rejected and its slots released")
    if booking["status"] in TERMINAL_STATUSES:
        raise BadRequestError(f"Cannot approve a {booking['status']} booking")

    now = utcnow()
    note = _notification("Booking approved", f"Your booking {booking['booking_id']} has been approved")
    updated = await _apply(
        ctx,
        booking,
        {"approval.status": "pending", "status": {"$nin": list(TERMINAL_STATUSES)}},
        {
            "$set": {
                "approval.status": "approved",
                "approval.approved_by": str(admin["_id"]),
                "approval.approved_at": now,
                "approval.notes": notes,
                "updated_at": now,
            },
            "$push": {"notifications": note},
        },
        "Booking is already approved",
    )
    logger.info(f"[booking] Approved {booking['booking_id']} by {admin['_id']}")
    _notify(updated, note)
    return serialize_booking(updated)


async def reject_booking(ctx: AppContext, booking_id: str, admin: dict, reason: str | None = None) -> dict:
    booking = await _get_doc(ctx, booking_id)
    if booking["approval"]["status"] == "rejected":
        raise BadRequestError("Booking is already rejected")
    if booking["payment"]["status"] == "completed":
        raise BadRequestError("Paid bookings must be cancelled so the payment is refunded")
    if booking["status"] != "pending":
        raise BadRequestError(f"Cannot reject a {booking['status']} booking")

    release = not booking.get("slots_released", False)
    now = utcnow()
    note = _notification("Booking rejected", f"Your booking {booking['booking_id']} has been rejected")
    updated = await _apply(
        ctx,
        booking,
        {
            "approval.status": {"$ne": "rejected"},
            "payment.status": {"$ne": "completed"},
            "status": "pending",
            "slots_released": not release,
        },
        {
            "$set": {
                "approval.status": "rejected",
                "approval.rejected_by": str(admin["_id"]),
                "approval.rejected_at": now,
                "approval.rejection_reason": reason,
                "slots_released": True,
                "updated_at": now,
            },
            "$push": {"notifications": note},
        },
        "Booking changed while rejecting, please retry",
    )
    if release:
        await _release_slots(ctx, booking["package"], _travelers(booking))
    logger.info(f"[booking] Rejected {booking['booking_id']} by {admin['_id']}")
    _notify(updated, note)
    return serialize_booking(updated)


# ---------- cancel / complete ----------


async def cancel_booking(ctx: AppContext, booking_id: str, user: dict, reason: str | None = None) -> dict:
    booking = await _get_doc(ctx, booking_id)
    if user["role"] == "customer" and booking.get("customer") != str(user["_id"]):
        raise ForbiddenError("You can only cancel your own bookings")
    if user["role"] == "agent" and not _is_mediating_agent(booking, user):
        raise ForbiddenError("You can only cancel bookings you manage")
    if booking["status"] == "cancelled":
        raise BadRequestError("Booking is already cancelled")
    if booking["status"] == "completed":
        raise BadRequestError("Completed bookings cannot be cancelled")

    release = not booking.get("slots_released", False)
    paid = booking["payment"]["status"] == "completed"
    now = utcnow()
    changes: dict = {
        "status": "cancelled",
        "cancellation.requested_at": now,
        "cancellation.cancelled_by": str(user["_id"]),
        "cancellation.cancelled_at": now,
        "cancellation.cancellation_reason": reason,
        "slots_released": True,
        "updated_at": now,
    }
    if paid:
        # Gateway refund is handled offline; the booking records the entitlement
        changes.update(
            {
                "cancellation.refund_percentage": 100,
                "payment.status": "refunded",
                "payment.refund_amount": booking["pricing"]["total_amount"],
                "payment.refund_reason": reason or "Booking cancelled",
                "payment.refunded_at": now,
            }
        )

    note = _notification("Booking cancelled", f"Your booking {booking['booking_id']} has been cancelled")
    updated = await _apply(
        ctx,
        booking,
        {
            "status": {"$nin": list(TERMINAL_STATUSES)},
            "payment.status": booking["payment"]["status"],
            "slots_released": not release,
        },
        {"$set": changes, "$push": {"notifications": note}},
        "Booking changed while cancelling, please retry",
    )
    if release:
        await _release_slots(ctx, booking["package"], _travelers(booking))
    logger.info(f"[booking] Cancelled {booking['booking_id']} by {user['role']} {user['_id']} (refund={paid})")
    _notify(updated, note)
    return serialize_booking(updated)


async def complete_booking(ctx: AppContext, booking_id: str, admin: dict) -> dict:
    booking = await _get_doc(ctx, booking_id)
    if booking["status"] != "confirmed":
        raise BadRequestError("Only confirmed bookings can be completed")
    if booking["approval"]["status"] == "rejected":
        raise BadRequestError("Cannot complete a rejected booking")

    note = _notification("Trip completed", f"Thanks for travelling with us! Booking {booking['booking_id']} is complete")
    updated = await _apply(
        ctx,
        booking,
        {"status": "confirmed", "approval.status": {"$ne": "rejected"}},
        {"$set": {"status": "completed", "updated_at": utcnow()}, "$push": {"notifications": note}},
        "Only confirmed bookings can be completed",
    )
    logger.info(f"[booking] Completed {booking['booking_id']} by {admin['_id']}")
    _notify(updated, note)
    return serialize_booking(updated)


async def confirm_booking(ctx: AppContext, booking_id: str, admin: dict, notes: str | None = None) -> dict:
    """Manual confirmation by an admin, e.g. for offline payment."""
    booking = await _get_doc(ctx, booking_id)
    if booking["status"] != "pending":
        raise BadRequestError(f"Cannot confirm a {booking['status']} booking")
    if booking["approval"]["status"] == "rejected":
        raise BadRequestError("Cannot confirm a rejected booking")

    note = _notification("Booking confirmed", f"Your booking {booking['booking_id']} is confirmed")
    updated = await _apply(
        ctx,
        booking,
        {"status": "pending", "approval.status": {"$ne": "rejected"}},
        {
            "$set": {"status": "confirmed", "approval.notes": notes, "updated_at": utcnow()},
            "$push": {"notifications": note},
        },
        "Booking changed while confirming, please retry",
    )
    logger.info(f"[booking] Confirmed {booking['booking_id']} by {admin['_id']}")
    _notify(updated, note)
    return serialize_booking(updated)


async def admin_set_status(ctx: AppContext, booking_id: str, admin: dict, status: str, notes: str | None = None) -> dict:
    if status == "confirmed":
        return await confirm_booking(ctx, booking_id, admin, notes)
    if status == "cancelled":
        return await cancel_booking(ctx, booking_id, admin, notes)
    if status == "completed":
        return await complete_booking(ctx, booking_id, admin)
    raise BadRequestError("Invalid status. Must be confirmed, cancelled, or completed")


# ---------- embedded records ----------


async def add_review(ctx: AppContext, booking_id: str, user: dict, body: AddBookingReviewRequest) -> dict:
    booking = await _get_doc(ctx, booking_id)
    if booking.get("customer") != str(user["_id"]):
        raise ForbiddenError("Only the booking's customer can review it")
    if booking["status"] != "completed":
        raise BadRequestError("Reviews can only be added to completed bookings")

    review = EmbeddedReview(reviewer=str(user["_id"]), rating=body.rating, comment=body.comment)
    updated = await _apply(
        ctx,
        booking,
        {"status": "completed"},
        {"$push": {"reviews": review.model_dump()}, "$set": {"updated_at": utcnow()}},
        "Reviews can only be added to completed bookings",
    )
    logger.info(f"[booking] Review added to {booking['booking_id']}")
    return serialize_booking(updated)


async def add_document(ctx: AppContext, booking_id: str, user: dict, body: AddDocumentRequest) -> dict:
    booking = await _get_doc(ctx, booking_id)
    if user["role"] != "admin" and booking.get("customer") != str(user["_id"]):
        raise ForbiddenError("Only the booking's customer can attach documents")

    document = BookingDocument(type=body.type, name=body.name, url=body.url)
    updated = await _apply(
        ctx,
        booking,
        {},
        {"$push": {"documents": document.model_dump()}, "$set": {"updated_at": utcnow()}},
        "Booking not found",
    )
    logger.info(f"[booking] Document '{body.type}' attached to {booking['booking_id']}")
    return serialize_booking(updated)
