"""Errors raised by the cancellation flow.

Routers translate these into HTTP responses; messages for DataIntegrityError
and PaymentProviderError stay generic toward the caller and carry detail in
the logs.
"""

from typing import Optional
from uuid import UUID


class CancellationError(Exception):
    """Base class for cancellation failures."""

    status_code = 400
    public_message: Optional[str] = None

    def __init__(self, message: str, booking_id: Optional[UUID] = None):
        super().__init__(message)
        self.message = message
        self.booking_id = booking_id

    @property
    def detail(self) -> str:
        return self.public_message or self.message


class BookingNotFoundError(CancellationError):
    status_code = 404


class CancellationNotAllowedError(CancellationError):
    """The caller may not cancel this booking (or use this option)."""

    status_code = 403


class InvalidStateError(CancellationError):
    """The booking is not in a cancellable status."""

    status_code = 409


class MissingReasonError(CancellationError):
    status_code = 422


class DataIntegrityError(CancellationError):
    """Stored pricing does not add up; nothing may be refunded."""

    status_code = 500
    public_message = "Cancellation could not be completed. Please contact support."


class PaymentProviderError(CancellationError):
    """The refund instruction was not accepted by the payment provider."""

    status_code = 502
    public_message = "Refund could not be processed. Your booking has not been cancelled."
