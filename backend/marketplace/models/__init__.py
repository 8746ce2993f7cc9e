"""SQLAlchemy models for the rental marketplace."""

from marketplace.models.user import User
from marketplace.models.listing import Listing
from marketplace.models.booking import Booking
from marketplace.models.audit import AuditLog

__all__ = [
    "User",
    "Listing",
    "Booking",
    "AuditLog",
]
