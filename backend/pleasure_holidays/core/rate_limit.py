"""
Per-IP rate limiting with distinct buckets per traffic class
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from pleasure_holidays.core.config import RATE_LIMIT_ENABLED

logger = logging.getLogger(__name__)

# Decorators are bound at import time; create_app toggles `limiter.enabled` from settings
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"[rate_limit] {get_remote_address(request)} exceeded {exc.detail} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": f"Too many requests from this IP ({exc.detail}), please try again later",
        },
    )
