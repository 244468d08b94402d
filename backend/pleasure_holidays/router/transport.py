"""
Transport Options Router
Public transport catalog, route search and agent/admin schedule management
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from pleasure_holidays.core.config import RATE_LIMIT_GENERAL
from pleasure_holidays.core.context import AppContext, get_context
from pleasure_holidays.core.rate_limit import limiter
from pleasure_holidays.models.common import APIResponse, PageParams
from pleasure_holidays.models.transport import (
    PricingRequest,
    ScheduleUpdate,
    SchedulesRequest,
    TransportOptionIn,
    TransportOptionUpdate,
    TransportType,
)
from pleasure_holidays.models.user import AGENT_OR_ADMIN
from pleasure_holidays.router.deps import page_params, require_roles
from pleasure_holidays.services import transport as transport_service

router = APIRouter(prefix="/transport-options", tags=["Transport Options"])


@router.get("", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def list_transport_options(
    request: Request,
    params: PageParams = Depends(page_params),
    type: TransportType | None = Query(default=None),
    destination: str | None = Query(default=None, description="Matches route origin or destination"),
    search: str | None = Query(default=None),
    sort_by: str = Query(default="name", pattern="^(name|type|price|created_at)$"),
    sort_order: str = Query(default="asc", pattern="^(asc|desc)$"),
    ctx: AppContext = Depends(get_context),
):
    data = await transport_service.list_options(
        ctx, params, type=type, destination=destination, search=search, sort_by=sort_by, sort_order=sort_order
    )
    return APIResponse(data=data)


@router.get("/type/{transport_type}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def list_by_type(
    request: Request,
    transport_type: TransportType,
    params: PageParams = Depends(page_params),
    ctx: AppContext = Depends(get_context),
):
    return APIResponse(data=await transport_service.list_by_type(ctx, transport_type, params))


@router.get("/route/search", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def search_routes(
    request: Request,
    from_location: str | None = Query(default=None, alias="from"),
    to_location: str | None = Query(default=None, alias="to"),
    date: datetime | None = Query(default=None),
    passengers: int = Query(default=1, ge=1),
    ctx: AppContext = Depends(get_context),
):
    """
    Options serving the route in either direction, cheapest first.
    With `date`, only options with a later departure that has `passengers` seats free.
    """
    options = await transport_service.search_routes(ctx, from_location, to_location, date, passengers)
    return APIResponse(data={"transport_options": options})


@router.get("/{option_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def get_transport_option(request: Request, option_id: str, ctx: AppContext = Depends(get_context)):
    return APIResponse(data={"transport_option": await transport_service.get_option(ctx, option_id)})


@router.get("/{option_id}/availability", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def check_availability(
    request: Request,
    option_id: str,
    date: datetime | None = Query(default=None),
    passengers: int = Query(default=1, ge=1),
    ctx: AppContext = Depends(get_context),
):
    return APIResponse(data=await transport_service.availability(ctx, option_id, date, passengers))


@router.get("/{option_id}/class-price", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def get_class_price(
    request: Request,
    option_id: str,
    travel_class: str = Query(..., alias="class", min_length=1),
    ctx: AppContext = Depends(get_context),
):
    return APIResponse(data=await transport_service.get_class_price(ctx, option_id, travel_class))


@router.post("", response_model=APIResponse, status_code=201)
async def create_transport_option(
    body: TransportOptionIn,
    user: dict = Depends(require_roles(*AGENT_OR_ADMIN)),
    ctx: AppContext = Depends(get_context),
):
    option = await transport_service.create_option(ctx, body, user)
    return APIResponse(message="Transport option created successfully", data={"transport_option": option})


@router.put("/{option_id}", response_model=APIResponse)
async def update_transport_option(
    option_id: str,
    body: TransportOptionUpdate,
    user: dict = Depends(require_roles(*AGENT_OR_ADMIN)),
    ctx: AppContext = Depends(get_context),
):
    option = await transport_service.update_option(ctx, option_id, body, user)
    return APIResponse(message="Transport option updated successfully", data={"transport_option": option})


@router.delete("/{option_id}", response_model=APIResponse)
async def deactivate_transport_option(
    option_id: str,
    user: dict = Depends(require_roles(*AGENT_OR_ADMIN)),
    ctx: AppContext = Depends(get_context),
):
    option = await transport_service.deactivate_option(ctx, option_id, user)
    return APIResponse(message="Transport option deactivated successfully", data={"transport_option": option})


@router.post("/{option_id}/schedules", response_model=APIResponse)
async def add_schedules(
    option_id: str,
    body: SchedulesRequest,
    user: dict = Depends(require_roles(*AGENT_OR_ADMIN)),
    ctx: AppContext = Depends(get_context),
):
    option = await transport_service.add_schedules(ctx, option_id, body.schedules, user)
    return APIResponse(message="Schedules added successfully", data={"transport_option": option})


@router.put("/{option_id}/schedules/{schedule_id}", response_model=APIResponse)
async def update_schedule(
    option_id: str,
    schedule_id: str,
    body: ScheduleUpdate,
    user: dict = Depends(require_roles(*AGENT_OR_ADMIN)),
    ctx: AppContext = Depends(get_context),
):
    option = await transport_service.update_schedule(ctx, option_id, schedule_id, body, user)
    return APIResponse(message="Schedule updated successfully", data={"transport_option": option})


@router.put("/{option_id}/pricing", response_model=APIResponse)
async def update_pricing(
    option_id: str,
    body: PricingRequest,
    user: dict = Depends(require_roles(*AGENT_OR_ADMIN)),
    ctx: AppContext = Depends(get_context),
):
    option = await transport_service.update_pricing(ctx, option_id, body.pricing, user)
    return APIResponse(message="Pricing updated successfully", data={"transport_option": option})
