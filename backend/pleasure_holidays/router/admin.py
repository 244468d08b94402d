"""
Admin Router
User management, moderation of every resource, dashboard and system health
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from pleasure_holidays.core.config import RATE_LIMIT_ADMIN
from pleasure_holidays.core.context import AppContext, get_context
from pleasure_holidays.core.rate_limit import limiter
from pleasure_holidays.models.booking import AdminBookingStatusRequest, BookingStatus
from pleasure_holidays.models.common import APIResponse, PageParams
from pleasure_holidays.models.review import ModerateReviewRequest
from pleasure_holidays.models.transport import ActiveRequest, PricingRequest, SchedulesRequest, TransportType
from pleasure_holidays.models.user import ADMIN_ONLY, AdminUpdateUserRequest, Role
from pleasure_holidays.router.deps import page_params, require_roles
from pleasure_holidays.services import bookings as booking_service
from pleasure_holidays.services import packages as package_service
from pleasure_holidays.services import reviews as review_service
from pleasure_holidays.services import transport as transport_service
from pleasure_holidays.services import users as user_service

router = APIRouter(prefix="/admin", tags=["Admin"])

require_admin = require_roles(*ADMIN_ONLY)


class PackageStatusRequest(BaseModel):
    status: Literal["approved", "rejected"]
    notes: str | None = Field(default=None, max_length=500)


# ==================== USER MANAGEMENT ====================


@router.get("/users", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def list_users(
    request: Request,
    params: PageParams = Depends(page_params),
    role: Role | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    data = await user_service.list_users(
        ctx, params, role=role, is_active=is_active, search=search, sort_by=sort_by, sort_order=sort_order
    )
    return APIResponse(data=data)


@router.get("/users/{user_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def get_user(
    request: Request, user_id: str, admin: dict = Depends(require_admin), ctx: AppContext = Depends(get_context)
):
    return APIResponse(data={"user": await user_service.get_user(ctx, user_id)})


@router.put("/users/{user_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def update_user(
    request: Request,
    user_id: str,
    body: AdminUpdateUserRequest,
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    """The only place a user's role can change."""
    user = await user_service.admin_update_user(ctx, admin, user_id, body)
    return APIResponse(message="User updated successfully", data={"user": user})


@router.delete("/users/{user_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def deactivate_user(
    request: Request, user_id: str, admin: dict = Depends(require_admin), ctx: AppContext = Depends(get_context)
):
    user = await user_service.admin_deactivate_user(ctx, admin, user_id)
    return APIResponse(message="User deactivated successfully", data={"user": user})


# ==================== PACKAGE MANAGEMENT ====================


@router.get("/packages", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def list_packages(
    request: Request,
    params: PageParams = Depends(page_params),
    status: Literal["pending", "approved", "rejected"] | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: str = Query(default="created_at", pattern="^(created_at|price|rating|duration|name)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    data = await package_service.admin_list_packages(
        ctx, params, status=status, search=search, sort_by=sort_by, sort_order=sort_order
    )
    return APIResponse(data=data)


@router.put("/packages/{package_id}/status", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def set_package_status(
    request: Request,
    package_id: str,
    body: PackageStatusRequest,
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    if body.status == "approved":
        package = await package_service.approve_package(ctx, package_id, admin)
    else:
        package = await package_service.reject_package(ctx, package_id, admin, body.notes)
    return APIResponse(message=f"Package {body.status} successfully", data={"package": package})


# ==================== BOOKING MANAGEMENT ====================


@router.get("/bookings", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def list_bookings(
    request: Request,
    params: PageParams = Depends(page_params),
    status: BookingStatus | None = Query(default=None),
    search: str | None = Query(default=None, description="Booking id substring"),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    data = await booking_service.admin_list_bookings(
        ctx,
        params,
        status=status,
        search=search,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return APIResponse(data=data)


@router.put("/bookings/{booking_id}/status", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def set_booking_status(
    request: Request,
    booking_id: str,
    body: AdminBookingStatusRequest,
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    booking = await booking_service.admin_set_status(ctx, booking_id, admin, body.status, body.notes)
    return APIResponse(message=f"Booking {body.status} successfully", data={"booking": booking})


# ==================== REVIEW MANAGEMENT ====================


@router.get("/reviews", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def list_reviews(
    request: Request,
    params: PageParams = Depends(page_params),
    status: Literal["pending", "approved", "rejected"] | None = Query(default=None),
    rating: int | None = Query(default=None, ge=1, le=5),
    search: str | None = Query(default=None),
    sort_by: str = Query(default="created_at", pattern="^(created_at|rating)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    data = await review_service.admin_list_reviews(
        ctx, params, status=status, rating=rating, search=search, sort_by=sort_by, sort_order=sort_order
    )
    return APIResponse(data=data)


@router.put("/reviews/{review_id}/status", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def moderate_review(
    request: Request,
    review_id: str,
    body: ModerateReviewRequest,
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    review = await review_service.moderate_review(ctx, review_id, admin, body)
    return APIResponse(message=f"Review {body.status} successfully", data={"review": review})


# ==================== TRANSPORT OPTION MANAGEMENT ====================


@router.get("/transport-options", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def list_transport_options(
    request: Request,
    params: PageParams = Depends(page_params),
    type: TransportType | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: str = Query(default="created_at", pattern="^(name|type|price|created_at)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    data = await transport_service.admin_list_options(
        ctx, params, type=type, is_active=is_active, search=search, sort_by=sort_by, sort_order=sort_order
    )
    return APIResponse(data=data)


@router.put("/transport-options/{option_id}/active", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def set_transport_active(
    request: Request,
    option_id: str,
    body: ActiveRequest,
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    option = await transport_service.admin_set_active(ctx, option_id, body.is_active, admin)
    state = "activated" if body.is_active else "deactivated"
    return APIResponse(message=f"Transport option {state} successfully", data={"transport_option": option})


@router.put("/transport-options/{option_id}/schedules", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def replace_transport_schedules(
    request: Request,
    option_id: str,
    body: SchedulesRequest,
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    option = await transport_service.admin_replace_schedules(ctx, option_id, body.schedules, admin)
    return APIResponse(message="Schedules updated successfully", data={"transport_option": option})


@router.put("/transport-options/{option_id}/pricing", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def replace_transport_pricing(
    request: Request,
    option_id: str,
    body: PricingRequest,
    admin: dict = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    option = await transport_service.update_pricing(ctx, option_id, body.pricing, admin)
    return APIResponse(message="Pricing updated successfully", data={"transport_option": option})


# ==================== DASHBOARD & SYSTEM ====================


@router.get("/dashboard", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def dashboard(request: Request, admin: dict = Depends(require_admin), ctx: AppContext = Depends(get_context)):
    return APIResponse(data=await user_service.dashboard_stats(ctx))


@router.get("/system/health", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def system_health(request: Request, admin: dict = Depends(require_admin), ctx: AppContext = Depends(get_context)):
    return APIResponse(data={"system_info": user_service.system_health(ctx)})
