"""
Identity service: registration, login, token authentication and password flows
"""

import logging
from datetime import timedelta

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from pleasure_holidays.core.context import AppContext
from pleasure_holidays.core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    UnauthorizedError,
)
from pleasure_holidays.core.security import (
    create_access_token,
    decode_access_token,
    generate_one_time_token,
    hash_one_time_token,
    hash_password,
    verify_password,
)
from pleasure_holidays.models.common import utcnow
from pleasure_holidays.models.user import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    User,
    public_user,
)

logger = logging.getLogger(__name__)

SELF_REGISTER_ROLES = ("customer", "agent")
INVALID_CREDENTIALS = "Invalid email or password"
RESET_REQUESTED = "If an account exists for that email, a password reset link has been sent"


def _auth_payload(ctx: AppContext, user_doc: dict) -> dict:
    return {
        "token": create_access_token(ctx.settings, str(user_doc["_id"])),
        "token_type": "bearer",
        "user": public_user(user_doc),
    }


async def register(ctx: AppContext, body: RegisterRequest) -> dict:
    if body.role not in SELF_REGISTER_ROLES:
        raise ForbiddenError("Admin accounts cannot be self-registered")

    if await ctx.users.find_one({"email": body.email}):
        raise ConflictError("User already exists with this email")

    user = User(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password_hash=hash_password(ctx.pwd_context, body.password),
        role=body.role,
        phone=body.phone,
    )
    doc = user.model_dump()
    try:
        result = await ctx.users.insert_one(doc)
    except DuplicateKeyError as e:
        # Lost a race with a concurrent registration for the same email
        raise ConflictError("User already exists with this email", cause=e)
    doc["_id"] = result.inserted_id

    logger.info(f"[auth] Registered {body.role} {result.inserted_id}")
    return _auth_payload(ctx, doc)


async def login(ctx: AppContext, body: LoginRequest) -> dict:
    user_doc = await ctx.users.find_one({"email": body.email})

    password_ok = verify_password(ctx.pwd_context, body.password, user_doc.get("password_hash") if user_doc else None)
    if not user_doc or not password_ok or not user_doc.get("is_active", True):
        logger.info("[auth] Rejected login attempt")
        raise UnauthorizedError(INVALID_CREDENTIALS)

    now = utcnow()
    await ctx.users.update_one({"_id": user_doc["_id"]}, {"$set": {"last_login": now}})
    user_doc["last_login"] = now

    logger.info(f"[auth] Login for user {user_doc['_id']}")
    return _auth_payload(ctx, user_doc)


async def authenticate(ctx: AppContext, token: str | None) -> dict:
    """
    Resolve a bearer token to the stored user document.
    Role and active status come from the store, never from the token.
    """
    if not token:
        raise UnauthorizedError("Not authorized, no token provided")

    user_id = decode_access_token(ctx.settings, token)
    if not ObjectId.is_valid(user_id):
        raise UnauthorizedError("Invalid token payload")

    user_doc = await ctx.users.find_one({"_id": ObjectId(user_id)})
    if not user_doc:
        raise UnauthorizedError("User no longer exists")
    if not user_doc.get("is_active", True):
        raise UnauthorizedError("Account has been deactivated")
    return user_doc


async def change_password(ctx: AppContext, user: dict, body: ChangePasswordRequest) -> None:
    if not verify_password(ctx.pwd_context, body.current_password, user.get("password_hash")):
        raise BadRequestError("Current password is incorrect")

    await ctx.users.update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": hash_password(ctx.pwd_context, body.new_password), "updated_at": utcnow()}},
    )
    logger.info(f"[auth] Password changed for user {user['_id']}")


async def request_password_reset(ctx: AppContext, email: str) -> dict:
    """
    Issue a reset token for the account, if any.
    The answer is the same whether or not the email is registered.
    """
    data: dict = {}
    user_doc = await ctx.users.find_one({"email": email.lower(), "is_active": True})
    if user_doc:
        raw, digest = generate_one_time_token()
        expires_at = utcnow() + timedelta(minutes=ctx.settings.password_reset_expire_minutes)
        await ctx.users.update_one(
            {"_id": user_doc["_id"]},
            {"$set": {"password_reset_token_hash": digest, "password_reset_expires_at": expires_at}},
        )
        # Mail delivery is stubbed
        logger.info(f"[auth] Password reset issued for user {user_doc['_id']}")
        if ctx.settings.is_development:
            data["reset_token"] = raw

    return {"message": RESET_REQUESTED, "data": data or None}


async def reset_password(ctx: AppContext, body: ResetPasswordRequest) -> None:
    digest = hash_one_time_token(body.token)
    updated = await ctx.users.find_one_and_update(
        {"password_reset_token_hash": digest, "password_reset_expires_at": {"$gt": utcnow()}},
        {
            "$set": {
                "password_hash": hash_password(ctx.pwd_context, body.new_password),
                "password_reset_token_hash": None,
                "password_reset_expires_at": None,
                "updated_at": utcnow(),
            }
        },
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise BadRequestError("Invalid or expired reset token")
    logger.info(f"[auth] Password reset completed for user {updated['_id']}")


async def request_email_verification(ctx: AppContext, user: dict) -> dict:
    if user.get("is_email_verified"):
        raise BadRequestError("Email is already verified")

    raw, digest = generate_one_time_token()
    expires_at = utcnow() + timedelta(hours=ctx.settings.email_verification_expire_hours)
    await ctx.users.update_one(
        {"_id": user["_id"]},
        {"$set": {"email_verification_token_hash": digest, "email_verification_expires_at": expires_at}},
    )
    logger.info(f"[auth] Email verification issued for user {user['_id']}")
    return {"verification_token": raw} if ctx.settings.is_development else {}


async def confirm_email(ctx: AppContext, user_doc: dict, token: str) -> dict:
    if user_doc.get("is_email_verified"):
        raise BadRequestError("Email is already verified")
    digest = hash_one_time_token(token)
    if user_doc.get("email_verification_token_hash") != digest:
        raise BadRequestError("Invalid verification token")
    expires_at = user_doc.get("email_verification_expires_at")
    if not expires_at or expires_at <= utcnow():
        raise BadRequestError("Verification token has expired")

    updated = await ctx.users.find_one_and_update(
        {"_id": user_doc["_id"], "email_verification_token_hash": digest},
        {
            "$set": {
                "is_email_verified": True,
                "email_verification_token_hash": None,
                "email_verification_expires_at": None,
                "updated_at": utcnow(),
            }
        },
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise BadRequestError("Invalid verification token")
    return public_user(updated)


async def seed_admin(ctx: AppContext) -> None:
    """Create the bootstrap admin from ADMIN_EMAIL/ADMIN_PASSWORD if it does not exist yet."""
    email = ctx.settings.admin_email
    password = ctx.settings.admin_password
    if not email or not password:
        return

    email = email.lower()
    if await ctx.users.find_one({"email": email}):
        return

    admin = User(
        first_name="Admin",
        last_name="User",
        email=email,
        password_hash=hash_password(ctx.pwd_context, password),
        role="admin",
        is_email_verified=True,
    )
    try:
        result = await ctx.users.insert_one(admin.model_dump())
    except DuplicateKeyError:
        logger.info("[auth] Bootstrap admin already created by another worker")
        return
    logger.info(f"[auth] Seeded bootstrap admin {result.inserted_id}")
