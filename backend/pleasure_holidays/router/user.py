"""
User Router
Self-service profile, preferences, email verification and account deactivation
"""

from fastapi import APIRouter, Depends, Request

from pleasure_holidays.core.config import RATE_LIMIT_AUTH, RATE_LIMIT_GENERAL
from pleasure_holidays.core.context import AppContext, get_context
from pleasure_holidays.core.rate_limit import limiter
from pleasure_holidays.models.common import APIResponse
from pleasure_holidays.models.user import (
    Address,
    ChangePasswordRequest,
    ConfirmEmailRequest,
    PreferencesRequest,
    UpdateProfileRequest,
    public_user,
)
from pleasure_holidays.router.deps import get_current_user
from pleasure_holidays.services import auth as auth_service
from pleasure_holidays.services import users as user_service

router = APIRouter(prefix="/user", tags=["User"])


@router.get("/profile", response_model=APIResponse)
async def get_profile(user: dict = Depends(get_current_user)):
    return APIResponse(data={"user": public_user(user)})


@router.put("/profile", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
async def update_profile(
    request: Request,
    body: UpdateProfileRequest,
    user: dict = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    """Names, phone, address and preferences only; role and email are not editable here."""
    updated = await user_service.update_profile(ctx, user, body)
    return APIResponse(message="Profile updated successfully", data={"user": updated})


@router.put("/address", response_model=APIResponse)
async def update_address(body: Address, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    updated = await user_service.update_address(ctx, user, body)
    return APIResponse(message="Address updated successfully", data={"user": updated})


@router.get("/preferences", response_model=APIResponse)
async def get_preferences(user: dict = Depends(get_current_user)):
    return APIResponse(data={"preferences": user.get("preferences") or {}})


@router.put("/preferences", response_model=APIResponse)
async def update_preferences(
    body: PreferencesRequest, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)
):
    preferences = await user_service.update_preferences(ctx, user, body.preferences)
    return APIResponse(message="Preferences updated successfully", data={"preferences": preferences})


@router.post("/change-password", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_AUTH)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user: dict = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    await auth_service.change_password(ctx, user, body)
    return APIResponse(message="Password changed successfully")


@router.post("/verify-email", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_AUTH)
async def verify_email(request: Request, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    data = await auth_service.request_email_verification(ctx, user)
    return APIResponse(message="Verification email sent", data=data or None)


@router.post("/confirm-email", response_model=APIResponse)
async def confirm_email(
    body: ConfirmEmailRequest, user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)
):
    updated = await auth_service.confirm_email(ctx, user, body.token)
    return APIResponse(message="Email verified successfully", data={"user": updated})


@router.delete("/account", response_model=APIResponse)
async def deactivate_account(user: dict = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    await user_service.deactivate_own_account(ctx, user)
    return APIResponse(message="Account deactivated successfully")
