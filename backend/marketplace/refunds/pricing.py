"""Booking price quotes, snapshot integrity checks and payout splits.

Fee structure:
- Guest service fee: a rate of (subtotal + cleaning fee), charged on top.
- Host commission: a rate of what the host keeps after refunds.
- No taxes: hosts declare their own.
"""

from __future__ import annotations

from dataclasses import dataclass

from marketplace.refunds.calculator import BookingPricingSnapshot, RefundBreakdown, round_half_up

DEFAULT_GUEST_SERVICE_FEE_BPS = 800
DEFAULT_HOST_COMMISSION_BPS = 300


class PricingIntegrityError(ValueError):
    """A pricing snapshot does not add up."""


@dataclass(frozen=True)
class RefundDistribution:
    """Who ends up with what after a refund."""

    host_kept_base_cents: int
    host_commission_cents: int
    host_payout_cents: int
    platform_keeps_cents: int

    def to_payload(self) -> dict[str, int]:
        return {
            "host_kept_base_cents": self.host_kept_base_cents,
            "host_commission_cents": self.host_commission_cents,
            "host_payout_cents": self.host_payout_cents,
            "platform_keeps_cents": self.platform_keeps_cents,
        }


def quote_pricing(
    nightly_price_cents: int,
    nights: int,
    cleaning_fee_cents: int,
    currency: str,
    service_fee_bps: int = DEFAULT_GUEST_SERVICE_FEE_BPS,
) -> BookingPricingSnapshot:
    """Price a stay the way checkout charges it."""
    if nights < 1:
        raise ValueError("nights must be at least 1")
    if nightly_price_cents < 0 or cleaning_fee_cents < 0:
        raise ValueError("prices must be non-negative")

    subtotal = nightly_price_cents * nights
    service_fee = round_half_up((subtotal + cleaning_fee_cents) * service_fee_bps, 10_000)
    return BookingPricingSnapshot(
        subtotal_cents=subtotal,
        cleaning_fee_cents=cleaning_fee_cents,
        guest_service_fee_cents=service_fee,
        total_amount_cents=subtotal + cleaning_fee_cents + service_fee,
        currency=currency,
        nights=nights,
        taxes_cents=0,
    )


def validate_pricing_snapshot(pricing: BookingPricingSnapshot) -> None:
    """Raise PricingIntegrityError unless the snapshot is internally consistent."""
    components = {
        "subtotal_cents": pricing.subtotal_cents,
        "cleaning_fee_cents": pricing.cleaning_fee_cents,
        "guest_service_fee_cents": pricing.guest_service_fee_cents,
        "taxes_cents": pricing.taxes_cents,
        "total_amount_cents": pricing.total_amount_cents,
    }
    negative = [name for name, value in components.items() if value < 0]
    if negative:
        raise PricingIntegrityError(f"Negative pricing components: {', '.join(negative)}")

    if pricing.nights < 1:
        raise PricingIntegrityError(f"Invalid night count: {pricing.nights}")

    expected = (
        pricing.subtotal_cents
        + pricing.cleaning_fee_cents
        + pricing.guest_service_fee_cents
        + pricing.taxes_cents
    )
    if pricing.total_amount_cents != expected:
        raise PricingIntegrityError(
            f"total_amount_cents={pricing.total_amount_cents} does not match "
            f"sum of components={expected}"
        )


def compute_payout_split(
    pricing: BookingPricingSnapshot,
    breakdown: RefundBreakdown,
    host_commission_bps: int = DEFAULT_HOST_COMMISSION_BPS,
) -> RefundDistribution:
    """Split what was not refunded between host and platform."""
    kept_base = (pricing.subtotal_cents - breakdown.subtotal_refund_cents) + (
        pricing.cleaning_fee_cents - breakdown.cleaning_fee_refund_cents
    )
    commission = round_half_up(kept_base * host_commission_bps, 10_000)
    service_fee_kept = pricing.guest_service_fee_cents - breakdown.service_fee_refund_cents
    return RefundDistribution(
        host_kept_base_cents=kept_base,
        host_commission_cents=commission,
        host_payout_cents=kept_base - commission,
        platform_keeps_cents=service_fee_kept + commission,
    )
