"""
Models package for database schemas
"""

from pleasure_holidays.models.booking import Booking
from pleasure_holidays.models.package import Package
from pleasure_holidays.models.review import Review
from pleasure_holidays.models.transport import TransportOption
from pleasure_holidays.models.user import User

__all__ = ["Booking", "Package", "Review", "TransportOption", "User"]
