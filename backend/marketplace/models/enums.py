"""Enumeration types for the rental marketplace domain model."""

from enum import Enum

from marketplace.refunds.calculator import CancellationPolicy, CancellingParty  # noqa: F401


class UserRole(str, Enum):
    """Platform role of an account."""
    GUEST = "guest"
    HOST = "host"
    ADMIN = "admin"


class ListingCategory(str, Enum):
    """What a listing rents out."""
    STAY = "stay"
    VEHICLE = "vehicle"


class CancelledByRole(str, Enum):
    """Who actually performed a cancellation."""
    GUEST = "guest"
    HOST = "host"
    ADMIN = "admin"


class BookingStatus(str, Enum):
    """Status of a booking."""
    PENDING = "pending"                  # Waiting for host approval
    PENDING_PAYMENT = "pending_payment"  # Awaiting payment completion
    CONFIRMED = "confirmed"              # Host approved
    PAID = "paid"                        # Payment completed
    ACTIVE = "active"                    # Stay in progress
    COMPLETED = "completed"
    CANCELLED_BY_GUEST = "cancelled_by_guest"
    CANCELLED_BY_HOST = "cancelled_by_host"
    CANCELLED_BY_ADMIN = "cancelled_by_admin"
    EXPIRED = "expired"                  # Payment not made in time
    DISPUTED = "disputed"


class PaymentStatus(str, Enum):
    """Status of the payment collected for a booking."""
    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUND_PENDING = "refund_pending"  # Deferred to reconciliation


class Currency(str, Enum):
    """Currencies bookings are priced in."""
    DZD = "DZD"
    EUR = "EUR"


class AuditAction(str, Enum):
    """Actions tracked in audit log."""
    BOOKING_CANCELLED = "booking_cancelled"
    REFUND_INSTRUCTED = "refund_instructed"
