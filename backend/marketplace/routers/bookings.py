"""Bookings router: detail, refund preview and cancellation."""

from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.clock import utcnow
from marketplace.core.config import get_settings
from marketplace.core.database import get_db
from marketplace.core.security import AuthenticatedUser, get_current_user
from marketplace.models.booking import Booking
from marketplace.schemas.booking import (
    BookingResponse,
    CancelBookingRequest,
    CancellationResponse,
    RefundBreakdownResponse,
    RefundDistributionResponse,
    RefundPreviewResponse,
)
from marketplace.services.cancellation import CancellationService
from marketplace.services.errors import CancellationError
from marketplace.services.payments import PaymentGateway, get_payment_gateway

router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_clock() -> Callable[[], datetime]:
    """Source of the evaluation time for refund rules."""
    return utcnow


def get_cancellation_service(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> CancellationService:
    settings = get_settings()
    return CancellationService(db, gateway, host_commission_bps=settings.host_commission_bps)


def _http_error(error: CancellationError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.detail)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Get a booking the caller is a party to (admins see all)."""
    query = select(Booking).where(Booking.id == booking_id)
    if not current_user.is_admin:
        query = query.where(
            or_(
                Booking.guest_id == current_user.db_user_id,
                Booking.host_id == current_user.db_user_id,
            )
        )
    result = await db.execute(query)
    booking = result.scalar_one_or_none()

    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/refund-preview", response_model=RefundPreviewResponse)
async def preview_refund(
    booking_id: UUID,
    refund_percent_override: Optional[int] = Query(None, ge=0, le=100),
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: CancellationService = Depends(get_cancellation_service),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Estimate the refund if the caller cancelled now.

    Runs the same computation as the cancellation itself; nothing is written.
    """
    now = clock()
    try:
        quote = await service.preview(
            booking_id,
            current_user,
            now=now,
            refund_percent_override=refund_percent_override,
        )
    except CancellationError as e:
        raise _http_error(e)

    return RefundPreviewResponse(
        booking_id=quote.booking.id,
        cancelling_party=quote.party,
        cancelled_by=quote.cancelled_by,
        currency=quote.booking.currency,
        total_amount_cents=quote.pricing.total_amount_cents,
        payment_captured=quote.payment_captured,
        refund_amount_cents=quote.refund_amount_cents,
        cancellation_fee_cents=quote.cancellation_fee_cents,
        breakdown=RefundBreakdownResponse.model_validate(quote.breakdown),
        distribution=RefundDistributionResponse.model_validate(quote.distribution),
        summary=quote.summary,
        evaluated_at=now,
    )


@router.post("/{booking_id}/cancel", response_model=CancellationResponse)
async def cancel_booking(
    booking_id: UUID,
    data: CancelBookingRequest,
    request: Request,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: CancellationService = Depends(get_cancellation_service),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Cancel a booking and refund per the listing's cancellation policy.

    Guest, host or admin is derived from the session. The booking stays
    unchanged if the refund cannot be instructed.
    """
    try:
        outcome = await service.cancel(
            booking_id,
            current_user,
            reason=data.reason,
            now=clock(),
            refund_percent_override=data.refund_percent_override,
            ip_address=request.client.host if request.client else None,
        )
    except CancellationError as e:
        raise _http_error(e)

    booking = outcome.booking
    quote = outcome.quote
    return CancellationResponse(
        booking_id=booking.id,
        status=booking.status,
        cancelled_by=quote.cancelled_by,
        cancelled_at=booking.cancelled_at,
        currency=booking.currency,
        refund_amount_cents=outcome.refund_amount_cents,
        cancellation_fee_cents=outcome.cancellation_fee_cents,
        refund_status=outcome.refund_status,
        refund_reference=outcome.refund_reference,
        breakdown=RefundBreakdownResponse.model_validate(quote.breakdown),
        distribution=RefundDistributionResponse.model_validate(quote.distribution),
        summary=quote.summary,
    )
