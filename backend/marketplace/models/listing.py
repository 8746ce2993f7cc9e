"""Listing model (read-only here; listing CRUD lives in another service)."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, DateTime, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.core.clock import utcnow
from marketplace.core.database import Base, enum_values
from marketplace.models.enums import CancellationPolicy, ListingCategory

if TYPE_CHECKING:
    from marketplace.models.user import User


class Listing(Base):
    """A stay or vehicle offered by a host."""

    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    host_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[ListingCategory] = mapped_column(
        SQLEnum(ListingCategory, values_callable=enum_values),
        default=ListingCategory.STAY,
        nullable=False,
    )

    # Stored as free text: older listings carry values outside CancellationPolicy
    cancellation_policy: Mapped[str] = mapped_column(
        String(50),
        default=CancellationPolicy.MODERATE.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    host: Mapped["User"] = relationship("User")
