"""
Application context shared by every request handler
"""

from dataclasses import dataclass, field

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from passlib.context import CryptContext

from pleasure_holidays.core.config import Settings
from pleasure_holidays.core.security import build_password_context
from pleasure_holidays.services.payments import PaymentGateway


@dataclass
class AppContext:
    """
    Built once in create_app and passed explicitly into every service call.

    Attributes:
        settings: Configuration snapshot
        db: Motor database handle (set during lifespan startup when not injected)
        gateway: Payment gateway client used for order creation
        pwd_context: Password hasher
    """

    settings: Settings
    db: AsyncIOMotorDatabase | None = None
    gateway: PaymentGateway | None = None
    pwd_context: CryptContext | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.pwd_context is None:
            self.pwd_context = build_password_context(self.settings.bcrypt_rounds)
        if self.gateway is None:
            self.gateway = PaymentGateway(
                key_id=self.settings.razorpay_key_id,
                key_secret=self.settings.razorpay_key_secret,
                api_url=self.settings.razorpay_api_url,
            )

    # Collections
    @property
    def users(self):
        return self.db.users

    @property
    def packages(self):
        return self.db.packages

    @property
    def bookings(self):
        return self.db.bookings

    @property
    def reviews(self):
        return self.db.reviews

    @property
    def transport_options(self):
        return self.db.transport_options


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the context stored on app.state."""
    return request.app.state.context
