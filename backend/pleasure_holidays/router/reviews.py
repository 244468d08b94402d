"""
Reviews Router
Package reviews from completed bookings, helpful votes and reports
"""

from fastapi import APIRouter, Depends, Request

from pleasure_holidays.core.config import RATE_LIMIT_GENERAL
from pleasure_holidays.core.context import AppContext, get_context
from pleasure_holidays.core.rate_limit import limiter
from pleasure_holidays.models.common import APIResponse, PageParams
from pleasure_holidays.models.review import CreateReviewRequest, HelpfulVoteRequest, ReportRequest
from pleasure_holidays.models.user import ANY_ROLE
from pleasure_holidays.router.deps import page_params, require_roles
from pleasure_holidays.services import reviews as review_service

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post("", response_model=APIResponse, status_code=201)
async def create_review(
    body: CreateReviewRequest,
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    review = await review_service.create_review(ctx, body, user)
    return APIResponse(message="Review submitted successfully", data={"review": review})


@router.get("/package/{package_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def list_package_reviews(
    request: Request,
    package_id: str,
    params: PageParams = Depends(page_params),
    ctx: AppContext = Depends(get_context),
):
    return APIResponse(data=await review_service.list_package_reviews(ctx, package_id, params))


@router.get("/{review_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def get_review(request: Request, review_id: str, ctx: AppContext = Depends(get_context)):
    return APIResponse(data={"review": await review_service.get_review(ctx, review_id)})


@router.post("/{review_id}/helpful", response_model=APIResponse)
async def vote_helpful(
    review_id: str,
    body: HelpfulVoteRequest,
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    review = await review_service.vote_helpful(ctx, review_id, user, body.helpful)
    return APIResponse(message="Vote recorded", data={"review": review})


@router.post("/{review_id}/report", response_model=APIResponse)
async def report_review(
    review_id: str,
    body: ReportRequest,
    user: dict = Depends(require_roles(*ANY_ROLE)),
    ctx: AppContext = Depends(get_context),
):
    review = await review_service.report_review(ctx, review_id, user, body.reason)
    return APIResponse(message="Review reported", data={"review": review})
