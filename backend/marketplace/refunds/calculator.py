"""Cancellation refund calculator.

Given a booking's pricing snapshot, the listing's cancellation policy, who
cancels and when, compute how much of the guest's payment is refunded and
how much is forfeited.

This module is the single implementation used both for the cancellation
preview and for the refund actually issued. It performs no I/O and never
reads the clock: the evaluation time arrives in ``BookingTiming.now``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union


# Standard grace period: cancel within 48h of booking with check-in 14+ days away
GRACE_PERIOD_HOURS_AFTER_BOOKING = 48
GRACE_PERIOD_MIN_DAYS_BEFORE_CHECK_IN = 14

# strict_long_term: stays of this many nights use the long-stay rule
LONG_STAY_MIN_NIGHTS = 28
LONG_STAY_GRACE_MIN_DAYS_BEFORE_CHECK_IN = 28


class CancellationPolicy(str, Enum):
    """Cancellation policy a host attaches to a listing."""
    FLEXIBLE = "flexible"
    MODERATE = "moderate"
    STRICT = "strict"
    STRICT_LONG_TERM = "strict_long_term"
    SUPER_STRICT = "super_strict"
    NON_REFUNDABLE = "non_refundable"


class CancellingParty(str, Enum):
    """Whose side a cancellation is evaluated for."""
    GUEST = "guest"
    HOST = "host"


@dataclass(frozen=True)
class BookingPricingSnapshot:
    """Pricing of a booking as charged, in minor currency units."""

    subtotal_cents: int
    cleaning_fee_cents: int
    guest_service_fee_cents: int
    total_amount_cents: int
    currency: str
    nights: int
    taxes_cents: int = 0


@dataclass(frozen=True)
class BookingTiming:
    """Timestamps a refund depends on.

    ``created_at`` may be missing on legacy bookings; such bookings never
    qualify for a grace period. Naive datetimes are read as UTC.
    """

    start_date: datetime
    now: datetime
    created_at: Optional[datetime] = None

    @property
    def days_until_check_in(self) -> int:
        seconds = (_as_utc(self.start_date) - _as_utc(self.now)).total_seconds()
        return math.ceil(seconds / 86400)

    @property
    def hours_until_check_in(self) -> int:
        return self.days_until_check_in * 24

    @property
    def hours_since_booking(self) -> Optional[float]:
        if self.created_at is None:
            return None
        return (_as_utc(self.now) - _as_utc(self.created_at)).total_seconds() / 3600


@dataclass(frozen=True)
class RefundBreakdown:
    """Result of a refund computation."""

    policy: CancellationPolicy
    days_until_check_in: int
    subtotal_refund_percent: int
    subtotal_refund_cents: int
    cleaning_fee_refund_cents: int
    service_fee_refund_cents: int
    refund_amount_cents: int
    cancellation_fee_cents: int
    refund_percentage: float
    is_in_grace_period: bool

    def to_payload(self) -> dict[str, object]:
        return {
            "policy": self.policy.value,
            "days_until_check_in": self.days_until_check_in,
            "subtotal_refund_percent": self.subtotal_refund_percent,
            "subtotal_refund_cents": self.subtotal_refund_cents,
            "cleaning_fee_refund_cents": self.cleaning_fee_refund_cents,
            "service_fee_refund_cents": self.service_fee_refund_cents,
            "refund_amount_cents": self.refund_amount_cents,
            "cancellation_fee_cents": self.cancellation_fee_cents,
            "refund_percentage": self.refund_percentage,
            "is_in_grace_period": self.is_in_grace_period,
        }


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounded to nearest, halves away from zero.

    Operands are non-negative amounts, so this matches ``Math.round``.
    """
    return (2 * numerator + denominator) // (2 * denominator)


def resolve_policy(policy: Union[CancellationPolicy, str, None]) -> CancellationPolicy:
    """Map a stored policy string to a policy; unknown values use moderate."""
    if isinstance(policy, CancellationPolicy):
        return policy
    try:
        return CancellationPolicy(policy)
    except ValueError:
        return CancellationPolicy.MODERATE


def is_policy_known(policy: Union[CancellationPolicy, str, None]) -> bool:
    if isinstance(policy, CancellationPolicy):
        return True
    return policy in {p.value for p in CancellationPolicy}


def is_in_grace_period(
    timing: BookingTiming,
    min_days_before_check_in: int = GRACE_PERIOD_MIN_DAYS_BEFORE_CHECK_IN,
) -> bool:
    """True when the booking was made recently and check-in is still far away."""
    hours_since_booking = timing.hours_since_booking
    if hours_since_booking is None:
        return False
    return (
        hours_since_booking <= GRACE_PERIOD_HOURS_AFTER_BOOKING
        and timing.days_until_check_in >= min_days_before_check_in
    )


def _tiered_percent(days: int, full_from_days: int, half_from_days: int) -> int:
    if days >= full_from_days:
        return 100
    if days >= half_from_days:
        return 50
    return 0


def policy_refund_percent(
    policy: CancellationPolicy,
    timing: BookingTiming,
    nights: int,
) -> int:
    """Percent of the subtotal a guest gets back under ``policy``."""
    days = timing.days_until_check_in

    if policy == CancellationPolicy.FLEXIBLE:
        return 100 if timing.hours_until_check_in >= 24 else 0

    if policy == CancellationPolicy.STRICT:
        return _tiered_percent(days, 14, 7)

    if policy == CancellationPolicy.STRICT_LONG_TERM:
        if nights < LONG_STAY_MIN_NIGHTS:
            return _tiered_percent(days, 14, 7)
        if is_in_grace_period(timing, LONG_STAY_GRACE_MIN_DAYS_BEFORE_CHECK_IN):
            return 100
        return 50 if days >= 30 else 0

    if policy == CancellationPolicy.SUPER_STRICT:
        return _tiered_percent(days, 30, 14)

    if policy == CancellationPolicy.NON_REFUNDABLE:
        return 0

    # moderate
    return 100 if days >= 5 else 50


def compute_refund(
    pricing: BookingPricingSnapshot,
    policy: Union[CancellationPolicy, str, None],
    party: CancellingParty,
    timing: BookingTiming,
    *,
    refund_percent_override: Optional[int] = None,
) -> RefundBreakdown:
    """Compute the refund owed when ``party`` cancels at ``timing.now``.

    Args:
        pricing: Amounts charged for the booking
        policy: Listing cancellation policy; unknown strings use moderate
        party: Guest or host side of the cancellation
        timing: Booking creation, check-in and evaluation timestamps
        refund_percent_override: Settlement percent (0-100) replacing the
            policy tier, used for admin and dispute resolutions

    Returns:
        RefundBreakdown with per-component refunds and the forfeited amount
    """
    resolved = resolve_policy(policy)
    days = timing.days_until_check_in
    in_grace = is_in_grace_period(timing)

    if refund_percent_override is not None:
        if not 0 <= refund_percent_override <= 100:
            raise ValueError("refund_percent_override must be between 0 and 100")
        percent = refund_percent_override
    elif party == CancellingParty.HOST:
        percent = 100
    else:
        percent = policy_refund_percent(resolved, timing, pricing.nights)

    subtotal_refund = round_half_up(pricing.subtotal_cents * percent, 100)
    cleaning_fee_refund = pricing.cleaning_fee_cents if days > 0 else 0
    service_fee_refund = (
        pricing.guest_service_fee_cents
        if party == CancellingParty.HOST or in_grace
        else 0
    )

    refund_amount = subtotal_refund + cleaning_fee_refund + service_fee_refund
    total = pricing.total_amount_cents
    refund_percentage = refund_amount / total * 100 if total > 0 else 0.0

    return RefundBreakdown(
        policy=resolved,
        days_until_check_in=days,
        subtotal_refund_percent=percent,
        subtotal_refund_cents=subtotal_refund,
        cleaning_fee_refund_cents=cleaning_fee_refund,
        service_fee_refund_cents=service_fee_refund,
        refund_amount_cents=refund_amount,
        cancellation_fee_cents=total - refund_amount,
        refund_percentage=refund_percentage,
        is_in_grace_period=in_grace,
    )
