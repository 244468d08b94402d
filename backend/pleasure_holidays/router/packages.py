"""
Packages Router
Public catalog browsing plus agent/admin package management and approval
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from pleasure_holidays.core.config import RATE_LIMIT_ADMIN, RATE_LIMIT_GENERAL
from pleasure_holidays.core.context import AppContext, get_context
from pleasure_holidays.core.rate_limit import limiter
from pleasure_holidays.models.common import APIResponse, PageParams
from pleasure_holidays.models.package import Category, PackageIn, PackageUpdate, RejectRequest
from pleasure_holidays.models.user import ADMIN_ONLY, AGENT_OR_ADMIN
from pleasure_holidays.router.deps import page_params, require_roles
from pleasure_holidays.services import packages as package_service

router = APIRouter(prefix="/packages", tags=["Packages"])


@router.get("", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def list_packages(
    request: Request,
    params: PageParams = Depends(page_params),
    category: Category | None = Query(default=None),
    destination: str | None = Query(default=None, description="Country or city substring"),
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
    max_duration: int | None = Query(default=None, ge=1, description="Maximum number of days"),
    search: str | None = Query(default=None),
    sort_by: str = Query(default="created_at", pattern="^(created_at|price|rating|duration|name)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    ctx: AppContext = Depends(get_context),
):
    """
    List approved, active packages with filters, sorting and pagination.
    """
    data = await package_service.list_packages(
        ctx,
        params,
        category=category,
        destination=destination,
        min_price=min_price,
        max_price=max_price,
        max_duration=max_duration,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return APIResponse(data=data)


# Static paths are declared before /{package_id}


@router.get("/categories", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def list_categories(request: Request, ctx: AppContext = Depends(get_context)):
    return APIResponse(data={"categories": await package_service.list_categories(ctx)})


@router.get("/destinations", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def list_destinations(request: Request, ctx: AppContext = Depends(get_context)):
    return APIResponse(data={"destinations": await package_service.list_destinations(ctx)})


@router.get("/featured", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def list_featured(
    request: Request,
    limit: int = Query(default=6, ge=1, le=50),
    ctx: AppContext = Depends(get_context),
):
    return APIResponse(data={"packages": await package_service.list_featured(ctx, limit)})


@router.get("/pending/approval", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def list_pending(
    request: Request,
    params: PageParams = Depends(page_params),
    admin: dict = Depends(require_roles(*ADMIN_ONLY)),
    ctx: AppContext = Depends(get_context),
):
    return APIResponse(data=await package_service.list_pending(ctx, params))


@router.get("/mine", response_model=APIResponse)
async def list_my_packages(
    params: PageParams = Depends(page_params),
    user: dict = Depends(require_roles(*AGENT_OR_ADMIN)),
    ctx: AppContext = Depends(get_context),
):
    """Packages created by the caller, in any approval state."""
    return APIResponse(data=await package_service.list_mine(ctx, user, params))


@router.get("/{package_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def get_package(request: Request, package_id: str, ctx: AppContext = Depends(get_context)):
    return APIResponse(data={"package": await package_service.get_package(ctx, package_id)})


@router.get("/{package_id}/price", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def get_package_price(
    request: Request,
    package_id: str,
    date: datetime = Query(..., description="Travel date"),
    ctx: AppContext = Depends(get_context),
):
    """Effective per-person price on a date, after seasonal multipliers."""
    return APIResponse(data=await package_service.package_price(ctx, package_id, date))


@router.post("", response_model=APIResponse, status_code=201)
async def create_package(
    body: PackageIn,
    user: dict = Depends(require_roles(*AGENT_OR_ADMIN)),
    ctx: AppContext = Depends(get_context),
):
    package = await package_service.create_package(ctx, body, user)
    return APIResponse(message="Package created successfully", data={"package": package})


@router.put("/{package_id}", response_model=APIResponse)
async def update_package(
    package_id: str,
    body: PackageUpdate,
    user: dict = Depends(require_roles(*AGENT_OR_ADMIN)),
    ctx: AppContext = Depends(get_context),
):
    package = await package_service.update_package(ctx, package_id, body, user)
    return APIResponse(message="Package updated successfully", data={"package": package})


@router.delete("/{package_id}", response_model=APIResponse)
async def delete_package(
    package_id: str,
    admin: dict = Depends(require_roles(*ADMIN_ONLY)),
    ctx: AppContext = Depends(get_context),
):
    await package_service.delete_package(ctx, package_id, admin)
    return APIResponse(message="Package deleted successfully")


@router.post("/{package_id}/approve", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def approve_package(
    request: Request,
    package_id: str,
    admin: dict = Depends(require_roles(*ADMIN_ONLY)),
    ctx: AppContext = Depends(get_context),
):
    package = await package_service.approve_package(ctx, package_id, admin)
    return APIResponse(message="Package approved successfully", data={"package": package})


@router.post("/{package_id}/reject", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_ADMIN)
async def reject_package(
    request: Request,
    package_id: str,
    body: RejectRequest | None = None,
    admin: dict = Depends(require_roles(*ADMIN_ONLY)),
    ctx: AppContext = Depends(get_context),
):
    reason = body.reason if body else None
    package = await package_service.reject_package(ctx, package_id, admin, reason)
    return APIResponse(message="Package rejected successfully", data={"package": package})
