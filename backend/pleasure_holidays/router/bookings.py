"""
Bookings Router
Booking creation, payment, approval, cancellation and embedded records
"""

from fastapi import APIRouter, Depends, Query, Request

from pleasure_holidays.core.config import RATE_LIMIT_ADMIN, RATE_LIMIT_PAYMENT, RATE_LIMIT_UPLOAD
from pleasure_holidays.core.context import AppContext, get_context
from pleasure_holidays.core.rate_limit import limiter
from pleasure_holidays.models.booking import (
    AddBookingReviewRequest,
    AddDocumentRequest,
    BookingStatus,
    CreateBookingRequest,
    NotesRequest,
    ReasonRequest,
    VerifyPaymentRequest,
)
from pleasure_holidays.models.common import APIResponse, PageParams
from pleasure_holidays.models.user import ADMIN_ONLY, ANY_ROLE
from pleasure_holidays.router.deps import page_params, require_roles
from pleasure_holidays.services import bookings as booking_service

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=APIResponse, status_code=201)
@limiter.limit(RATE_LIMIT_PAYMENT)
async def create_booking(
    request: Request,
    body: CreateBookingRequest,
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    """
    Reserve slots on a package and create a pending booking with its pricing snapshot.
    Agents supply `customer_id` to book on a customer's behalf; customers and admins may name an `agent_id`.
    """
    booking = await booking_service.create_booking(ctx, body, user)
    return APIResponse(message="Booking created successfully", data={"booking": booking})


@router.get("", response_model=APIResponse)
async def list_bookings(
    params: PageParams = Depends(page_params),
    status: BookingStatus | None = Query(default=None),
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    """Customers see their own bookings, agents the ones they manage, admins all."""
    return APIResponse(data=await booking_service.list_bookings(ctx, user, params, status))


@router.get("/pending/approval", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def list_pending_approval(
    request: Request,
    params: PageParams = Depends(page_params),
    admin: dict = Depends(require_roles(*ADMIN_ONLY)),
    ctx: AppContext = Depends(get_context),
):
    return APIResponse(data=await booking_service.list_pending_approval(ctx, params))


@router.get("/{booking_id}", response_model=APIResponse)
async def get_booking(
    booking_id: str,
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    return APIResponse(data={"booking": await booking_service.get_booking(ctx, booking_id, user)})


@router.post("/{booking_id}/payment/create-order", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_PAYMENT)
async def create_payment_order(
    request: Request,
    booking_id: str,
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    order = await booking_service.create_payment_order(ctx, booking_id, user)
    return APIResponse(message="Payment order created successfully", data=order)


@router.post("/{booking_id}/payment/verify", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_PAYMENT)
async def verify_payment(
    request: Request,
    booking_id: str,
    body: VerifyPaymentRequest,
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    booking = await booking_service.verify_payment(ctx, booking_id, body, user)
    return APIResponse(message="Payment verified successfully", data={"booking": booking})


@router.post("/{booking_id}/approve", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def approve_booking(
    request: Request,
    booking_id: str,
    body: NotesRequest | None = None,
    admin: dict = Depends(require_roles(*ADMIN_ONLY)),
    ctx: AppContext = Depends(get_context),
):
    booking = await booking_service.approve_booking(ctx, booking_id, admin, body.notes if body else None)
    return APIResponse(message="Booking approved successfully", data={"booking": booking})


@router.post("/{booking_id}/reject", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def reject_booking(
    request: Request,
    booking_id: str,
    body: ReasonRequest | None = None,
    admin: dict = Depends(require_roles(*ADMIN_ONLY)),
    ctx: AppContext = Depends(get_context),
):
    booking = await booking_service.reject_booking(ctx, booking_id, admin, body.reason if body else None)
    return APIResponse(message="Booking rejected successfully", data={"booking": booking})


@router.post("/{booking_id}/cancel", response_model=APIResponse)
async def cancel_booking(
    booking_id: str,
    body: ReasonRequest | None = None,
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    booking = await booking_service.cancel_booking(ctx, booking_id, user, body.reason if body else None)
    return APIResponse(message="Booking cancelled successfully", data={"booking": booking})


@router.post("/{booking_id}/complete", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def complete_booking(
    request: Request,
    booking_id: str,
    admin: dict = Depends(require_roles(*ADMIN_ONLY)),
    ctx: AppContext = Depends(get_context),
):
    booking = await booking_service.complete_booking(ctx, booking_id, admin)
    return APIResponse(message="Booking completed successfully", data={"booking": booking})


@router.post("/{booking_id}/reviews", response_model=APIResponse, status_code=201)
async def add_booking_review(
    booking_id: str,
    body: AddBookingReviewRequest,
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    booking = await booking_service.add_review(ctx, booking_id, user, body)
    return APIResponse(message="Review added successfully", data={"booking": booking})


@router.post("/{booking_id}/documents", response_model=APIResponse, status_code=201)
@limiter.limit(RATE_LIMIT_UPLOAD)
async def add_booking_document(
    request: Request,
    booking_id: str,
    body: AddDocumentRequest,
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    booking = await booking_service.add_document(ctx, booking_id, user, body)
    return APIResponse(message="Document added successfully", data={"booking": booking})
