"""
Shared request dependencies: current user resolution and role gates
"""

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pleasure_holidays.core.context import AppContext, get_context
from pleasure_holidays.core.errors import ForbiddenError
from pleasure_holidays.models.common import PageParams
from pleasure_holidays.services import auth as auth_service

# Missing credentials resolve to None; authenticate() answers with 401
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    ctx: AppContext = Depends(get_context),
) -> dict:
    token = credentials.credentials if credentials else None
    return await auth_service.authenticate(ctx, token)


def require_roles(*roles: str):
    """
    Dependency factory: resolves the current user and rejects roles outside `roles`.

        @router.get("/x", dependencies=[Depends(require_roles(*ADMIN_ONLY))])
    """

    async def _check(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in roles:
            raise ForbiddenError(f"User role '{user.get('role')}' is not authorized to access this route")
        return user

    return _check


def page_params(
    page: int = Query(default=1, ge=1, description="1-based page number"),
    page_size: int = Query(default=10, ge=1, le=100, description="Items per page"),
) -> PageParams:
    return PageParams(page=page, page_size=page_size)
