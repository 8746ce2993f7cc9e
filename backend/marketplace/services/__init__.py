"""Services for the rental marketplace."""

from marketplace.services.audit import AuditService
from marketplace.services.cancellation import CancellationService
from marketplace.services.payments import PaymentGateway, get_payment_gateway

__all__ = [
    "AuditService",
    "CancellationService",
    "PaymentGateway",
    "get_payment_gateway",
]
