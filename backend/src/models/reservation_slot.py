"""
Reservation slot model representing one auditorium time window held by a reservation.

The unique constraint on (resource_kind, reservation_date, slot) is the storage
guarantee that a slot has at most one holder system-wide.
"""

from datetime import date as date_type
from sqlalchemy import String, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class ReservationSlot(Base):
    """Slot assignment row for a slotted reservation."""

    __tablename__ = "reservation_slots"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    """Unique identifier for the slot assignment."""

    reservation_id: Mapped[str] = mapped_column(
        ForeignKey("reservations.id", ondelete="CASCADE"),
        index=True
    )
    """Reservation holding the slot."""

    resource_kind: Mapped[str] = mapped_column(String(100))
    """Denormalized from the reservation so the uniqueness constraint can be declared here."""

    reservation_date: Mapped[date_type] = mapped_column(Date)
    """Denormalized reservation date."""

    slot: Mapped[str] = mapped_column(String(50))
    """Slot identifier ('morning', 'afternoon', 'evening')."""

    # Relationships
    reservation = relationship("Reservation", back_populates="slots")

    __table_args__ = (
        UniqueConstraint('resource_kind', 'reservation_date', 'slot', name='uq_reservation_slot'),
    )
