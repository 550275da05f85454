"""Resource (parking space) and availability models."""

from __future__ import annotations

import uuid
from datetime import datetime, time
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    SmallInteger,
    String,
    Time,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.database import Base


class Resource(Base):
    """A rentable parking space. Managed by the listing service."""

    __tablename__ = "resources"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # IANA name; falls back to settings.availability_timezone
    timezone: Mapped[str | None] = mapped_column(String(64))

    # Explicit platform fee in major units, replaces the commission percentage
    platform_fee_override: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    weekly_slots: Mapped[list["WeeklyAvailabilitySlot"]] = relationship(
        "WeeklyAvailabilitySlot", back_populates="resource", cascade="all, delete-orphan"
    )
    blackouts: Mapped[list["BlackoutInterval"]] = relationship(
        "BlackoutInterval", back_populates="resource", cascade="all, delete-orphan"
    )


class WeeklyAvailabilitySlot(Base):
    """Recurring weekly opening window, in the resource's local wall-clock time."""

    __tablename__ = "weekly_availability_slots"
    __table_args__ = (
        CheckConstraint("weekday BETWEEN 1 AND 7", name="ck_weekly_slot_weekday"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    resource_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    weekday: Mapped[int] = mapped_column(SmallInteger, nullable=False)  # ISO, Monday=1
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    resource: Mapped["Resource"] = relationship("Resource", back_populates="weekly_slots")


class BlackoutInterval(Base):
    """Ad hoc closure that overrides the weekly schedule."""

    __tablename__ = "blackout_intervals"
    __table_args__ = (
        CheckConstraint("end_utc > start_utc", name="ck_blackout_interval_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    resource_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(140))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    resource: Mapped["Resource"] = relationship("Resource", back_populates="blackouts")
