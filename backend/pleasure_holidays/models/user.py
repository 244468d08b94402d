"""
User model for MongoDB storage and auth request/response schemas
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from pleasure_holidays.models.common import serialize_doc, utcnow

Role = Literal["customer", "agent", "admin"]

ADMIN_ONLY: tuple[str, ...] = ("admin",)
AGENT_OR_ADMIN: tuple[str, ...] = ("agent", "admin")
ANY_ROLE: tuple[str, ...] = ("customer", "agent", "admin")

# Fields that must never leave the server
PRIVATE_FIELDS = (
    "password_hash",
    "password_reset_token_hash",
    "password_reset_expires_at",
    "email_verification_token_hash",
    "email_verification_expires_at",
)


class Address(BaseModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    postal_code: str | None = None


class User(BaseModel):
    """
    User model for MongoDB storage
    """

    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr = Field(..., description="Unique, stored lower-cased")
    password_hash: str
    role: Role = "customer"
    phone: str | None = None
    address: Address | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)

    is_active: bool = True
    is_email_verified: bool = False
    email_verification_token_hash: str | None = None
    email_verification_expires_at: datetime | None = None
    password_reset_token_hash: str | None = None
    password_reset_expires_at: datetime | None = None
    last_login: datetime | None = None

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


def public_user(doc: dict) -> dict:
    """Public projection of a stored user: no hashes or tokens."""
    return serialize_doc({k: v for k, v in doc.items() if k not in PRIVATE_FIELDS})


# Request/Response Models
class RegisterRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    phone: str | None = Field(default=None, max_length=20)
    role: Role = "customer"

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class ConfirmEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    phone: str | None = Field(default=None, max_length=20)
    address: Address | None = None
    preferences: dict[str, Any] | None = None


class PreferencesRequest(BaseModel):
    preferences: dict[str, Any]


class AdminUpdateUserRequest(BaseModel):
    role: Role | None = None
    is_active: bool | None = None
    is_email_verified: bool | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    phone: str | None = Field(default=None, max_length=20)
    address: Address | None = None


class AuthResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: dict
