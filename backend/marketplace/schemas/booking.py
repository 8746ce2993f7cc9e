"""Booking and cancellation schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from marketplace.schemas.base import BaseSchema
from marketplace.models.enums import (
    BookingStatus,
    CancellationPolicy,
    CancelledByRole,
    CancellingParty,
    Currency,
    PaymentStatus,
)


class BookingResponse(BaseSchema):
    """Booking detail."""

    id: UUID
    listing_id: UUID
    guest_id: UUID
    host_id: UUID
    start_date: datetime
    end_date: datetime
    nightly_price_cents: int
    nights: int
    subtotal_cents: int
    cleaning_fee_cents: int
    service_fee_cents: int
    taxes_cents: int
    total_amount_cents: int
    currency: Currency
    status: BookingStatus
    payment_status: PaymentStatus
    # Cancellation record
    cancelled_by_role: Optional[CancelledByRole] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    refund_amount_cents: Optional[int] = None
    cancellation_fee_cents: Optional[int] = None
    created_at: Optional[datetime] = None  # missing on legacy bookings
    updated_at: Optional[datetime] = None


class RefundBreakdownResponse(BaseSchema):
    """Per-component refund computed for a cancellation."""

    policy: CancellationPolicy
    days_until_check_in: int
    subtotal_refund_percent: int = Field(ge=0, le=100)
    subtotal_refund_cents: int
    cleaning_fee_refund_cents: int
    service_fee_refund_cents: int
    refund_amount_cents: int
    cancellation_fee_cents: int
    refund_percentage: float  # Display only
    is_in_grace_period: bool


class RefundDistributionResponse(BaseSchema):
    """How the non-refunded amount splits between host and platform."""

    host_kept_base_cents: int
    host_commission_cents: int
    host_payout_cents: int
    platform_keeps_cents: int


class RefundPreviewResponse(BaseSchema):
    """Dry-run of a cancellation; nothing is applied."""

    booking_id: UUID
    cancelling_party: CancellingParty
    cancelled_by: CancelledByRole
    currency: Currency
    total_amount_cents: int
    payment_captured: bool
    # What cancelling would refund and record; 0 when nothing was captured
    refund_amount_cents: int
    cancellation_fee_cents: int
    breakdown: RefundBreakdownResponse
    distribution: RefundDistributionResponse
    summary: str
    evaluated_at: datetime


class CancelBookingRequest(BaseSchema):
    """Request to cancel a booking. The canceller comes from the session."""

    reason: str = Field(..., max_length=1000)
    refund_percent_override: Optional[int] = Field(None, ge=0, le=100)  # Admin only


class CancellationResponse(BaseSchema):
    """Applied cancellation."""

    booking_id: UUID
    status: BookingStatus
    cancelled_by: CancelledByRole
    cancelled_at: datetime
    currency: Currency
    refund_amount_cents: int
    cancellation_fee_cents: int
    refund_status: str  # refunded | pending | not_applicable
    refund_reference: Optional[str] = None
    breakdown: RefundBreakdownResponse
    distribution: RefundDistributionResponse
    summary: str
