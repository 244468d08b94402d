from fastapi import APIRouter

from pleasure_holidays.core.config import APP_NAME, APP_VERSION
from pleasure_holidays.models.common import APIResponse, utcnow

router = APIRouter(tags=["System"])


@router.get("/", response_model=APIResponse)
def root():
    return APIResponse(message="ok", data={"msg": f"{APP_NAME}. Browse packages at /api/packages."})


@router.get("/health", response_model=APIResponse)
def health_check():
    return APIResponse(
        message="ok",
        data={
            "status": "healthy",
            "service": "pleasure-holidays-api",
            "version": APP_VERSION,
            "timestamp": utcnow().isoformat(),
        },
    )
