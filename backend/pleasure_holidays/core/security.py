"""
Password hashing, JWT issuing/decoding and one-time token helpers
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from pleasure_holidays.core.config import Settings
from pleasure_holidays.core.errors import UnauthorizedError


def build_password_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(pwd_context: CryptContext, password: str) -> str:
    return pwd_context.hash(password)


def verify_password(pwd_context: CryptContext, password: str, hashed: str | None) -> bool:
    if not hashed:
        # Still burn a hash so unknown accounts cost the same as wrong passwords
        pwd_context.dummy_verify()
        return False
    return pwd_context.verify(password, hashed)


def create_access_token(settings: Settings, user_id: str) -> str:
    """
    Sign a bearer token carrying only the user id.
    Role and active status are re-read from the store on every request.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": now + timedelta(hours=settings.jwt_expiration_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: Settings, token: str) -> str:
    """Return the user id from a token, or raise UnauthorizedError."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise UnauthorizedError("Invalid or expired token", cause=e)

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload")
    return str(user_id)


def generate_one_time_token() -> tuple[str, str]:
    """
    Create an opaque token for password reset / email verification.
    Returns (raw_token, sha256_digest); only the digest is persisted.
    """
    raw = secrets.token_hex(32)
    return raw, hash_one_time_token(raw)


def hash_one_time_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
