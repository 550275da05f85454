"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    DDL,
    ForeignKey,
    Integer,
    Numeric,
    String,
    event,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.database import Base

if TYPE_CHECKING:
    from app.models.resource import Resource

NO_OVERLAP_CONSTRAINT = "bookings_no_overlap"


class Booking(Base):
    """Booking model."""

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_utc > start_utc", name="ck_booking_interval_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    resource_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("resources.id"), nullable=False, index=True
    )
    renter_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )

    # Interval (half-open)
    start_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False, index=True
    )  # pending, pending_payment, confirmed, cancelled, expired
    payment_status: Mapped[str] = mapped_column(
        String(20), default="unpaid", nullable=False
    )  # unpaid, paid, refunded
    refund_status: Mapped[str] = mapped_column(
        String(20), default="none", nullable=False
    )  # none, requested, refunding, refunded, failed, missing_reference

    # Pricing
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="CHF", nullable=False)
    platform_fee_minor: Mapped[int | None] = mapped_column(Integer)
    owner_payout_minor: Mapped[int | None] = mapped_column(Integer)

    # Processor references
    payment_session_ref: Mapped[str | None] = mapped_column(String(255), index=True)
    payment_charge_ref: Mapped[str | None] = mapped_column(String(255))
    refund_ref: Mapped[str | None] = mapped_column(String(255))

    # Cancellation
    cancelled_by: Mapped[str | None] = mapped_column(String(10))  # renter, owner
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    resource: Mapped["Resource"] = relationship("Resource")


# Store-level guarantee that active bookings of one resource never intersect.
event.listen(
    Base.metadata,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (resource_id WITH =, "
        "tstzrange(start_utc, end_utc, '[)') WITH &&) "
        "WHERE (status NOT IN ('cancelled', 'expired'))"
    ).execute_if(dialect="postgresql"),
)
