import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from pleasure_holidays.core.config import APP_NAME, APP_VERSION, SERVER_HOST, SERVER_PORT, Settings
from pleasure_holidays.core.context import AppContext
from pleasure_holidays.core.errors import AppError
from pleasure_holidays.core.rate_limit import limiter, rate_limit_exceeded_handler
from pleasure_holidays.db.database import close_database_connection, connect, init_indexes, test_connection
from pleasure_holidays.router.admin import router as admin_router
from pleasure_holidays.router.auth import router as auth_router
from pleasure_holidays.router.bookings import router as bookings_router
from pleasure_holidays.router.packages import router as packages_router
from pleasure_holidays.router.reviews import router as reviews_router
from pleasure_holidays.router.system import router as system_router
from pleasure_holidays.router.transport import router as transport_router
from pleasure_holidays.router.user import router as user_router
from pleasure_holidays.services import auth as auth_service
from pleasure_holidays.services.payments import PaymentGateway

logger = logging.getLogger(__name__)

VALIDATION_LOCATIONS = ("body", "query", "path", "header")


def _error(status_code: int, message: str, data: dict | None = None) -> JSONResponse:
    content = {"success": False, "message": message}
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=status_code, content=content)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[error] {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"[error] {request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return _error(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in VALIDATION_LOCATIONS:
            loc = loc[1:]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return _error(400, "Validation failed", {"errors": errors})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[error] Unhandled error on {request.method} {request.url.path}")
    return _error(500, "Internal server error")


def create_app(
    settings: Settings | None = None,
    database: AsyncIOMotorDatabase | None = None,
    gateway: PaymentGateway | None = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        settings: Configuration; defaults to the environment-derived Settings()
        database: Pre-built database handle. When given, no MongoDB client is opened.
        gateway: Payment gateway client; defaults to a Razorpay client built from settings
    """
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx = AppContext(settings=settings, db=database, gateway=gateway)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: connect, ensure indexes and seed the bootstrap admin
        logger.info(f"🚀 Starting up {APP_NAME} ({settings.environment})...")
        client = None
        if ctx.db is None:
            client, ctx.db = connect(settings.mongodb_uri, settings.database_name)
            await test_connection(ctx.db)
        await init_indexes(ctx.db)
        await auth_service.seed_admin(ctx)
        yield
        # Shutdown: close the client we opened
        logger.info(f"🛑 Shutting down {APP_NAME}...")
        await close_database_connection(client)

    app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)
    app.state.context = ctx

    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount routers
    app.include_router(system_router)
    for router in (
        auth_router,
        user_router,
        packages_router,
        bookings_router,
        reviews_router,
        transport_router,
        admin_router,
    ):
        app.include_router(router, prefix="/api")

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
