"""One-line explanations of a refund for notifications and API callers."""

from marketplace.refunds.calculator import CancellingParty, RefundBreakdown


def summarize_refund(breakdown: RefundBreakdown, party: CancellingParty) -> str:
    # "Full refund" only when nothing at all is kept
    if breakdown.refund_amount_cents > 0 and breakdown.cancellation_fee_cents == 0:
        if breakdown.is_in_grace_period and party == CancellingParty.GUEST:
            return "48h grace period: full refund."
        if party == CancellingParty.HOST:
            return "Cancelled by the host: full refund."
        return "Full refund."

    parts = []
    if party == CancellingParty.HOST:
        parts.append("Cancelled by the host: stay refunded in full")
    elif breakdown.subtotal_refund_percent == 100:
        parts.append("Full refund of the stay")
    elif breakdown.subtotal_refund_percent == 0:
        parts.append(f"No refund of the stay under the {breakdown.policy.value} policy")
    else:
        parts.append(
            f"{breakdown.subtotal_refund_percent}% of the stay refunded "
            f"under the {breakdown.policy.value} policy"
        )

    if breakdown.cleaning_fee_refund_cents > 0:
        parts.append("cleaning fee refunded")
    elif breakdown.days_until_check_in <= 0:
        parts.append("cleaning fee not refunded (on or after check-in)")

    if breakdown.service_fee_refund_cents == 0:
        parts.append("service fee not refunded")
    elif breakdown.is_in_grace_period and party == CancellingParty.GUEST:
        parts.append("service fee refunded (48h grace period)")
    else:
        parts.append("service fee refunded")

    return ". ".join(parts) + "."
