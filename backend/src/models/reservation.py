"""
Reservation model representing one owner's claim on a resource kind for a date.

Two internal columns let the store itself enforce the admission invariants:

- ``capacity_unit`` numbers the reservations of a non-slotted kind on a date
  from 0 to capacity - 1. The unique constraint on
  (resource_kind, reservation_date, capacity_unit) makes it impossible for
  two concurrent admissions to occupy the same unit, so the per-day capacity
  holds even when both passed the availability pre-check.
- ``owner_key`` mirrors ``owner_id`` for non-slotted kinds and is NULL for the
  auditorium, so the unique constraint on
  (resource_kind, reservation_date, owner_key) only limits owners of
  non-slotted kinds to one reservation per day.

NULL values never collide in a unique constraint, which is what lets slotted
reservations opt out of both.
"""

import uuid
from datetime import date as date_type, datetime
from typing import List, Optional
from sqlalchemy import String, Date, Integer, TIMESTAMP, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_NOTE_LENGTH, TIME_SLOTS


def _new_reservation_id() -> str:
    return str(uuid.uuid4())


class Reservation(Base):
    """
    Reservation entity.

    Rows are append-mostly: created by admission, deleted by cancellation,
    administrative override or cascading resource kind deletion.
    """

    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_reservation_id)
    """Opaque unique identifier."""

    resource_kind: Mapped[str] = mapped_column(String(100), index=True)
    """Key of the reserved resource kind. Kept as a plain string so past rows survive kind deletion."""

    reservation_date: Mapped[date_type] = mapped_column(Date)
    """Institution-local calendar date of the reservation."""

    owner_id: Mapped[str] = mapped_column(String(255), index=True)
    """Identifier of the requesting user."""

    note: Mapped[Optional[str]] = mapped_column(String(MAX_NOTE_LENGTH), nullable=True)
    """Free-text observation. Mandatory for auditorium reservations."""

    capacity_unit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Capacity unit occupied on this date (non-slotted kinds only)."""

    owner_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Copy of owner_id for non-slotted kinds, NULL for slotted kinds."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Server timestamp when the reservation was admitted."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the reservation was last updated."""

    # Relationships
    slots = relationship(
        "ReservationSlot",
        back_populates="reservation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    """Auditorium slot assignments held by this reservation."""

    __table_args__ = (
        UniqueConstraint('resource_kind', 'reservation_date', 'capacity_unit', name='uq_reservation_capacity_unit'),
        UniqueConstraint('resource_kind', 'reservation_date', 'owner_key', name='uq_reservation_owner_per_day'),
        Index('idx_reservations_kind_date', 'resource_kind', 'reservation_date'),
        Index('idx_reservations_owner_date', 'owner_id', 'reservation_date'),
    )

    @property
    def time_slots(self) -> List[str]:
        """Held slot ids in display order (morning, afternoon, evening)."""
        held = {s.slot for s in self.slots}
        return [slot for slot in TIME_SLOTS if slot in held]

    def snapshot(self) -> dict:
        """Plain-data copy used by notifications after the row is gone."""
        return {
            "id": self.id,
            "resource_kind": self.resource_kind,
            "reservation_date": self.reservation_date.isoformat(),
            "owner_id": self.owner_id,
            "note": self.note,
            "time_slots": self.time_slots,
        }

    def __repr__(self) -> str:
        return (
            f"Reservation(id='{self.id}', resource_kind='{self.resource_kind}', "
            f"reservation_date={self.reservation_date}, owner_id='{self.owner_id}')"
        )
