"""Cancellation refund rules shared by the preview and the cancellation itself."""

from marketplace.refunds.calculator import (
    BookingPricingSnapshot,
    BookingTiming,
    CancellationPolicy,
    CancellingParty,
    RefundBreakdown,
    compute_refund,
    is_in_grace_period,
    is_policy_known,
    resolve_policy,
)
from marketplace.refunds.pricing import (
    PricingIntegrityError,
    RefundDistribution,
    compute_payout_split,
    quote_pricing,
    validate_pricing_snapshot,
)
from marketplace.refunds.summary import summarize_refund

__all__ = [
    "BookingPricingSnapshot",
    "BookingTiming",
    "CancellationPolicy",
    "CancellingParty",
    "RefundBreakdown",
    "RefundDistribution",
    "PricingIntegrityError",
    "compute_refund",
    "compute_payout_split",
    "is_in_grace_period",
    "is_policy_known",
    "quote_pricing",
    "resolve_policy",
    "summarize_refund",
    "validate_pricing_snapshot",
]
