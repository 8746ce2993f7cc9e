"""Booking model."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.core.clock import utcnow
from marketplace.core.database import Base, enum_values
from marketplace.models.enums import BookingStatus, CancelledByRole, Currency, PaymentStatus

if TYPE_CHECKING:
    from marketplace.models.listing import Listing
    from marketplace.models.user import User


class Booking(Base):
    """A reservation of a listing by a guest.

    Pricing columns are the snapshot taken when the booking was made and are
    never rewritten. Cancellation columns are written once, by the
    cancellation that moves the booking into a cancelled_by_* status.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("nights >= 1", name="ck_bookings_nights_positive"),
        CheckConstraint(
            "subtotal_cents >= 0 AND cleaning_fee_cents >= 0 AND service_fee_cents >= 0 "
            "AND taxes_cents >= 0 AND total_amount_cents >= 0",
            name="ck_bookings_amounts_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("listings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    guest_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    host_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Dates
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Pricing snapshot (minor currency units)
    nightly_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    nights: Mapped[int] = mapped_column(Integer, nullable=False)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    cleaning_fee_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    service_fee_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # guest service fee
    taxes_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[Currency] = mapped_column(SQLEnum(Currency, values_callable=enum_values), nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, values_callable=enum_values),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Payment
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, values_callable=enum_values),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Cancellation record
    cancelled_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    cancelled_by_role: Mapped[Optional[CancelledByRole]] = mapped_column(
        SQLEnum(CancelledByRole, values_callable=enum_values), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refund_amount_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cancellation_fee_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    refund_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Legacy rows predate created_at tracking
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    listing: Mapped["Listing"] = relationship("Listing")
    guest: Mapped["User"] = relationship("User", foreign_keys=[guest_id])
    host: Mapped["User"] = relationship("User", foreign_keys=[host_id])
