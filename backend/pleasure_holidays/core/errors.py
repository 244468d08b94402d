"""Typed errors for the booking API.

Services raise these instead of building HTTP responses themselves; the
handlers registered in ``main.create_app`` turn each one into the JSON
envelope with the matching status code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Optional


@dataclass
class AppError(Exception):
    """Base error for the application.

    Attributes:
        message: Human-readable error description, sent to the client
        cause: Optional underlying exception, kept for logs only
    """

    message: str
    cause: Optional[Exception] = field(default=None, repr=False)

    status_code: ClassVar[int] = 500

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass
class BadRequestError(AppError):
    """Validation or state-precondition failure (e.g. "already approved")."""

    status_code: ClassVar[int] = 400


@dataclass
class UnauthorizedError(AppError):
    """Missing, invalid or expired token, or bad credentials."""

    status_code: ClassVar[int] = 401


@dataclass
class ForbiddenError(AppError):
    """Authenticated but lacking the role or ownership required."""

    status_code: ClassVar[int] = 403


@dataclass
class NotFoundError(AppError):
    status_code: ClassVar[int] = 404


@dataclass
class ConflictError(AppError):
    status_code: ClassVar[int] = 409


@dataclass
class InternalError(AppError):
    """Unexpected store or payment gateway failure."""

    status_code: ClassVar[int] = 500
