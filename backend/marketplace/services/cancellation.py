"""
Booking cancellation authority.

Runs the refund calculator against the booking and listing as stored, then
applies the outcome as one transaction:

1. Lock the booking row (SELECT ... FOR UPDATE) so duplicate cancel
   requests serialize; the second one finds a cancelled status.
2. Validate status, caller and the pricing snapshot.
3. Instruct the payment gateway (idempotency key = booking ID).
4. Only once the gateway confirmed or deferred the refund, write the
   cancelled status and the cancellation record, then commit.

The preview runs steps 2 and the calculation without writing anything, so
what the guest is shown is exactly what the cancellation would apply.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.clock import utcnow
from marketplace.core.security import AuthenticatedUser
from marketplace.models.booking import Booking
from marketplace.models.enums import BookingStatus, CancelledByRole, PaymentStatus
from marketplace.models.listing import Listing
from marketplace.refunds import (
    BookingPricingSnapshot,
    BookingTiming,
    CancellingParty,
    PricingIntegrityError,
    RefundBreakdown,
    RefundDistribution,
    compute_payout_split,
    compute_refund,
    is_policy_known,
    summarize_refund,
    validate_pricing_snapshot,
)
from marketplace.services.audit import AuditService
from marketplace.services.errors import (
    BookingNotFoundError,
    CancellationError,
    CancellationNotAllowedError,
    DataIntegrityError,
    InvalidStateError,
    MissingReasonError,
)
from marketplace.services.payments import PaymentGateway

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = frozenset({
    BookingStatus.PENDING,
    BookingStatus.PENDING_PAYMENT,
    BookingStatus.CONFIRMED,
    BookingStatus.PAID,
    BookingStatus.ACTIVE,
})

CANCELLED_STATUS_BY_ROLE = {
    CancelledByRole.GUEST: BookingStatus.CANCELLED_BY_GUEST,
    CancelledByRole.HOST: BookingStatus.CANCELLED_BY_HOST,
    CancelledByRole.ADMIN: BookingStatus.CANCELLED_BY_ADMIN,
}

# Admin cancellations follow the guest rules unless a settlement percent is given
PARTY_BY_ROLE = {
    CancelledByRole.GUEST: CancellingParty.GUEST,
    CancelledByRole.HOST: CancellingParty.HOST,
    CancelledByRole.ADMIN: CancellingParty.GUEST,
}

REFUND_STATUS_REFUNDED = "refunded"
REFUND_STATUS_PENDING = "pending"
REFUND_STATUS_NOT_APPLICABLE = "not_applicable"

NOT_CAPTURED_SUMMARY = "No payment was captured: nothing is refunded or charged."


@dataclass(frozen=True)
class CancellationQuote:
    """Refund outcome computed for a booking, before anything is applied.

    ``refund_amount_cents`` and ``cancellation_fee_cents`` are what the
    cancellation records and instructs; they are 0 when no payment was
    captured, whatever the policy breakdown says.
    """

    booking: Booking
    cancelled_by: CancelledByRole
    party: CancellingParty
    pricing: BookingPricingSnapshot
    breakdown: RefundBreakdown
    distribution: RefundDistribution
    summary: str
    payment_captured: bool
    refund_amount_cents: int
    cancellation_fee_cents: int


@dataclass(frozen=True)
class CancellationOutcome:
    """A committed cancellation."""

    quote: CancellationQuote
    refund_status: str
    refund_amount_cents: int
    cancellation_fee_cents: int
    refund_reference: Optional[str] = None

    @property
    def booking(self) -> Booking:
        return self.quote.booking


def pricing_snapshot_for(booking: Booking) -> BookingPricingSnapshot:
    """Build the calculator input from a booking row."""
    return BookingPricingSnapshot(
        subtotal_cents=booking.subtotal_cents,
        cleaning_fee_cents=booking.cleaning_fee_cents or 0,
        guest_service_fee_cents=booking.service_fee_cents or 0,
        taxes_cents=booking.taxes_cents or 0,
        total_amount_cents=booking.total_amount_cents,
        currency=booking.currency.value,
        nights=booking.nights,
    )


class CancellationService:
    """Previews and applies booking cancellations."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        host_commission_bps: int = 300,
    ):
        self.db = db
        self.gateway = gateway
        self.host_commission_bps = host_commission_bps

    async def _load_booking(self, booking_id: UUID, for_update: bool = False) -> Booking:
        query = select(Booking).where(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        booking = result.scalar_one_or_none()
        if not booking:
            raise BookingNotFoundError("Booking not found", booking_id)
        return booking

    async def _policy_for(self, booking: Booking) -> Optional[str]:
        result = await self.db.execute(
            select(Listing.cancellation_policy).where(Listing.id == booking.listing_id)
        )
        policy = result.scalar_one_or_none()
        if not is_policy_known(policy):
            logger.warning(
                f"[CANCEL] Listing {booking.listing_id} has unknown cancellation policy "
                f"{policy!r}; applying moderate"
            )
        return policy

    @staticmethod
    def _resolve_actor(
        booking: Booking,
        user: AuthenticatedUser,
        settling: bool = False,
    ) -> CancelledByRole:
        # An admin settling a booking acts as admin even on their own booking
        if settling and user.is_admin:
            return CancelledByRole.ADMIN
        if user.db_user_id == booking.guest_id:
            return CancelledByRole.GUEST
        if user.db_user_id == booking.host_id:
            return CancelledByRole.HOST
        if user.is_admin:
            return CancelledByRole.ADMIN
        raise CancellationNotAllowedError(
            "You do not have permission to cancel this booking", booking.id
        )

    @staticmethod
    def _check_cancellable(booking: Booking) -> None:
        if booking.status not in CANCELLABLE_STATUSES:
            raise InvalidStateError(
                f"Booking in status '{booking.status.value}' cannot be cancelled", booking.id
            )
        if (
            booking.status == BookingStatus.PENDING_PAYMENT
            and booking.payment_status != PaymentStatus.PAID
        ):
            raise InvalidStateError(
                "Booking is awaiting payment; there is no payment to refund", booking.id
            )

    def _quote(
        self,
        booking: Booking,
        policy: Optional[str],
        cancelled_by: CancelledByRole,
        now: datetime,
        refund_percent_override: Optional[int] = None,
    ) -> CancellationQuote:
        pricing = pricing_snapshot_for(booking)
        try:
            validate_pricing_snapshot(pricing)
        except PricingIntegrityError as e:
            logger.error(f"[CANCEL] Pricing integrity failure on booking {booking.id}: {e}")
            raise DataIntegrityError(str(e), booking.id) from e

        party = PARTY_BY_ROLE[cancelled_by]
        timing = BookingTiming(
            start_date=booking.start_date,
            now=now,
            created_at=booking.created_at,
        )
        breakdown = compute_refund(
            pricing,
            policy,
            party,
            timing,
            refund_percent_override=refund_percent_override,
        )
        if breakdown.cancellation_fee_cents < 0:
            logger.error(
                f"[CANCEL] Negative cancellation fee on booking {booking.id}: "
                f"{breakdown.to_payload()}"
            )
            raise DataIntegrityError(
                f"Computed cancellation fee is negative ({breakdown.cancellation_fee_cents})",
                booking.id,
            )

        payment_captured = booking.payment_status == PaymentStatus.PAID
        if payment_captured:
            distribution = compute_payout_split(pricing, breakdown, self.host_commission_bps)
            summary = summarize_refund(breakdown, party)
        else:
            # Nothing was captured, so nothing is refunded or forfeited
            distribution = RefundDistribution(0, 0, 0, 0)
            summary = NOT_CAPTURED_SUMMARY

        return CancellationQuote(
            booking=booking,
            cancelled_by=cancelled_by,
            party=party,
            pricing=pricing,
            breakdown=breakdown,
            distribution=distribution,
            summary=summary,
            payment_captured=payment_captured,
            refund_amount_cents=breakdown.refund_amount_cents if payment_captured else 0,
            cancellation_fee_cents=breakdown.cancellation_fee_cents if payment_captured else 0,
        )

    async def _prepare(
        self,
        booking: Booking,
        user: AuthenticatedUser,
        now: datetime,
        refund_percent_override: Optional[int],
    ) -> CancellationQuote:
        settling = refund_percent_override is not None
        cancelled_by = self._resolve_actor(booking, user, settling=settling)
        if settling and cancelled_by != CancelledByRole.ADMIN:
            raise CancellationNotAllowedError(
                "Only admins can set a refund percentage", booking.id
            )
        self._check_cancellable(booking)
        policy = await self._policy_for(booking)
        return self._quote(booking, policy, cancelled_by, now, refund_percent_override)

    async def preview(
        self,
        booking_id: UUID,
        user: AuthenticatedUser,
        now: Optional[datetime] = None,
        refund_percent_override: Optional[int] = None,
    ) -> CancellationQuote:
        """Compute what cancelling now would refund. Writes nothing."""
        booking = await self._load_booking(booking_id)
        return await self._prepare(booking, user, now or utcnow(), refund_percent_override)

    async def cancel(
        self,
        booking_id: UUID,
        user: AuthenticatedUser,
        reason: Optional[str],
        now: Optional[datetime] = None,
        refund_percent_override: Optional[int] = None,
        ip_address: Optional[str] = None,
    ) -> CancellationOutcome:
        """Cancel a booking and issue its refund.

        Raises:
            MissingReasonError: reason is blank
            BookingNotFoundError: no such booking
            CancellationNotAllowedError: caller is not guest, host or admin,
                or a non-admin passed a settlement percent
            InvalidStateError: booking is not cancellable
            DataIntegrityError: stored pricing does not add up
            PaymentProviderError: gateway did not accept the refund
        """
        reason = (reason or "").strip()
        if not reason:
            raise MissingReasonError("A cancellation reason is required", booking_id)
        now = now or utcnow()

        try:
            booking = await self._load_booking(booking_id, for_update=True)
            quote = await self._prepare(booking, user, now, refund_percent_override)
            outcome = await self._apply(quote, user, reason, now, ip_address)
            await self.db.commit()
        except CancellationError:
            await self.db.rollback()
            raise

        logger.info(
            f"[CANCEL] Booking {booking_id} cancelled by {quote.cancelled_by.value}: "
            f"refund={outcome.refund_amount_cents} fee={outcome.cancellation_fee_cents} "
            f"({outcome.refund_status})"
        )
        return outcome

    async def _apply(
        self,
        quote: CancellationQuote,
        user: AuthenticatedUser,
        reason: str,
        now: datetime,
        ip_address: Optional[str],
    ) -> CancellationOutcome:
        booking = quote.booking
        refund_amount = quote.refund_amount_cents
        audit = AuditService(self.db)

        refund_reference = None
        refund_status = REFUND_STATUS_NOT_APPLICABLE
        if refund_amount > 0:
            result = await self.gateway.refund(
                booking_id=booking.id,
                amount_cents=refund_amount,
                currency=quote.pricing.currency,
                reason=f"Cancelled by {quote.cancelled_by.value}: {reason}",
                payment_reference=booking.payment_reference,
            )
            refund_reference = result.reference
            if result.is_pending:
                refund_status = REFUND_STATUS_PENDING
                booking.payment_status = PaymentStatus.REFUND_PENDING
            else:
                refund_status = REFUND_STATUS_REFUNDED
                booking.payment_status = (
                    PaymentStatus.REFUNDED
                    if refund_amount == quote.pricing.total_amount_cents
                    else PaymentStatus.PARTIALLY_REFUNDED
                )
            await audit.log_refund_instructed(
                booking_id=booking.id,
                user_id=user.db_user_id,
                amount_cents=refund_amount,
                currency=quote.pricing.currency,
                refund_reference=result.reference,
                refund_status=result.status,
            )

        booking.status = CANCELLED_STATUS_BY_ROLE[quote.cancelled_by]
        booking.cancelled_by_id = user.db_user_id
        booking.cancelled_by_role = quote.cancelled_by
        booking.cancelled_at = now
        booking.cancellation_reason = reason
        booking.refund_amount_cents = refund_amount
        booking.cancellation_fee_cents = quote.cancellation_fee_cents
        booking.refund_reference = refund_reference

        await audit.log_booking_cancelled(
            booking_id=booking.id,
            user_id=user.db_user_id,
            cancelled_by=quote.cancelled_by.value,
            breakdown=quote.breakdown.to_payload(),
            reason=reason,
            ip_address=ip_address,
        )

        return CancellationOutcome(
            quote=quote,
            refund_status=refund_status,
            refund_amount_cents=refund_amount,
            cancellation_fee_cents=quote.cancellation_fee_cents,
            refund_reference=refund_reference,
        )
