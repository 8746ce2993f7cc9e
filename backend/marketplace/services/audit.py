"""Audit logging service."""

from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.audit import AuditLog
from marketplace.models.enums import AuditAction


class AuditService:
    """Service for creating audit log entries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: UUID,
        user_id: Optional[UUID] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Create an audit log entry."""
        entry = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user_id,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def log_booking_cancelled(
        self,
        booking_id: UUID,
        user_id: UUID,
        cancelled_by: str,
        breakdown: dict[str, Any],
        reason: str,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        """Log booking cancelled with the refund breakdown applied."""
        return await self.log(
            action=AuditAction.BOOKING_CANCELLED,
            resource_type="booking",
            resource_id=booking_id,
            user_id=user_id,
            details={
                "cancelled_by": cancelled_by,
                "reason": reason,
                "breakdown": breakdown,
            },
            ip_address=ip_address,
        )

    async def log_refund_instructed(
        self,
        booking_id: UUID,
        user_id: UUID,
        amount_cents: int,
        currency: str,
        refund_reference: str,
        refund_status: str,
    ) -> AuditLog:
        """Log refund instruction accepted by the payment gateway."""
        return await self.log(
            action=AuditAction.REFUND_INSTRUCTED,
            resource_type="booking",
            resource_id=booking_id,
            user_id=user_id,
            details={
                "amount_cents": amount_cents,
                "currency": currency,
                "refund_reference": refund_reference,
                "refund_status": refund_status,
            },
        )
