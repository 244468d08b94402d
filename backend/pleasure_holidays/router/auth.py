"""
Auth Router
Registration, login, current user and password flows
"""

from fastapi import APIRouter, Depends, Request

from pleasure_holidays.core.config import RATE_LIMIT_AUTH
from pleasure_holidays.core.context import AppContext, get_context
from pleasure_holidays.core.rate_limit import limiter
from pleasure_holidays.models.common import APIResponse
from pleasure_holidays.models.user import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    public_user,
)
from pleasure_holidays.router.deps import get_current_user
from pleasure_holidays.services import auth as auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=APIResponse, status_code=201)
@limiter.limit(RATE_LIMIT_AUTH)
async def register(request: Request, body: RegisterRequest, ctx: AppContext = Depends(get_context)):
    """
    Create a customer or agent account and return a bearer token.
    Admin accounts are never self-registered.
    """
    data = await auth_service.register(ctx, body)
    return APIResponse(message="User registered successfully", data=data)


@router.post("/login", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_AUTH)
async def login(request: Request, body: LoginRequest, ctx: AppContext = Depends(get_context)):
    data = await auth_service.login(ctx, body)
    return APIResponse(message="Login successful", data=data)


@router.get("/me", response_model=APIResponse)
async def me(user: dict = Depends(get_current_user)):
    return APIResponse(data={"user": public_user(user)})


@router.post("/logout", response_model=APIResponse)
async def logout(user: dict = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    return APIResponse(message="Logged out successfully")


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


@router.post("/forgot-password", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_AUTH)
async def forgot_password(request: Request, body: ForgotPasswordRequest, ctx: AppContext = Depends(get_context)):
    result = await auth_service.request_password_reset(ctx, body.email)
    return APIResponse(message=result["message"], data=result["data"])


@router.post("/reset-password", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_AUTH)
async def reset_password(request: Request, body: ResetPasswordRequest, ctx: AppContext = Depends(get_context)):
    await auth_service.reset_password(ctx, body)
    return APIResponse(message="Password has been reset successfully")
