"""API Routers for the rental marketplace."""

from marketplace.routers.bookings import router as bookings_router

__all__ = [
    "bookings_router",
]
