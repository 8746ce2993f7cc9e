"""
Payment gateway adapter for refund instructions.

Every instruction carries the booking ID as its idempotency key, so replaying
the same cancellation never refunds twice on the provider side.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

import httpx

from marketplace.core.config import get_settings
from marketplace.services.errors import PaymentProviderError

logger = logging.getLogger(__name__)

REFUND_SUCCEEDED = "succeeded"
REFUND_PENDING = "pending"


@dataclass(frozen=True)
class RefundResult:
    """Provider answer to a refund instruction."""

    reference: str
    status: str  # succeeded | pending

    @property
    def is_pending(self) -> bool:
        return self.status == REFUND_PENDING


class PaymentGateway:
    """HTTP client for the payment gateway's refund endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self, idempotency_key: str) -> dict[str, str]:
        headers = {"Idempotency-Key": idempotency_key}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def refund(
        self,
        booking_id: UUID,
        amount_cents: int,
        currency: str,
        reason: str,
        payment_reference: Optional[str] = None,
    ) -> RefundResult:
        """Instruct a refund; raises PaymentProviderError unless accepted."""
        payload = {
            "booking_id": str(booking_id),
            "payment_reference": payment_reference,
            "amount_cents": amount_cents,
            "currency": currency,
            "reason": reason,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/v1/refunds",
                    json=payload,
                    headers=self._headers(str(booking_id)),
                )
        except httpx.HTTPError as e:
            logger.error(f"[PAYMENTS] Refund request error for booking {booking_id}: {e}")
            raise PaymentProviderError(f"Refund request failed: {e}", booking_id) from e

        if response.status_code not in (200, 201, 202):
            logger.error(
                f"[PAYMENTS] Refund rejected for booking {booking_id}: "
                f"{response.status_code} {response.text}"
            )
            raise PaymentProviderError(
                f"Refund rejected with status {response.status_code}", booking_id
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.error(
                f"[PAYMENTS] Malformed refund response for booking {booking_id}: {response.text!r}"
            )
            raise PaymentProviderError("Refund response is not a JSON object", booking_id)

        status = data.get("status", REFUND_SUCCEEDED)
        reference = data.get("refund_id") or data.get("id")
        if status not in (REFUND_SUCCEEDED, REFUND_PENDING) or not reference:
            logger.error(f"[PAYMENTS] Unusable refund response for booking {booking_id}: {data}")
            raise PaymentProviderError(f"Refund not accepted (status={status})", booking_id)

        logger.info(
            f"[PAYMENTS] Refund {reference} {status} for booking {booking_id}: "
            f"{amount_cents} {currency}"
        )
        return RefundResult(reference=reference, status=status)


_gateway_instance: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Get the payment gateway instance."""
    global _gateway_instance
    if _gateway_instance is None:
        settings = get_settings()
        _gateway_instance = PaymentGateway(
            base_url=settings.payment_gateway_url,
            api_key=settings.payment_gateway_api_key,
            timeout=settings.payment_gateway_timeout_seconds,
        )
    return _gateway_instance
