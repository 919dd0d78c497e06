"""
Resource kind model representing a category of reservable equipment or space.

A resource kind carries its own admission policy: how many reservations a
single calendar date can hold, whether the day is split into auditorium time
slots, and whether new reservations are currently accepted.
"""

from datetime import datetime
from sqlalchemy import String, Integer, Boolean, TIMESTAMP, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from core.constants import CATEGORY_LABORATORY


class ResourceKind(Base):
    """
    Resource kind entity.

    Examples: "projector", "speaker", "auditorium", "laboratory:chem".
    Laboratories are registered dynamically by administrators.
    """

    __tablename__ = "resource_kinds"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    """Stable key of the kind, also stored on every reservation."""

    display_name: Mapped[str] = mapped_column(String(255))
    """Human readable name (e.g., "Projector", "Chemistry Lab")."""

    category: Mapped[str] = mapped_column(String(50))
    """One of 'equipment', 'auditorium', 'laboratory'."""

    capacity_per_day: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    """Maximum number of reservations of this kind on one calendar date."""

    is_slotted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """True when the day is partitioned into named time slots (auditorium only)."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Inactive kinds reject new reservations; existing ones remain valid."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the kind was created."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the kind was last updated."""

    __table_args__ = (
        CheckConstraint('capacity_per_day >= 0', name='ck_resource_kind_capacity_non_negative'),
    )

    @property
    def is_laboratory(self) -> bool:
        return self.category == CATEGORY_LABORATORY

    def __repr__(self) -> str:
        return f"ResourceKind(id='{self.id}', capacity_per_day={self.capacity_per_day}, is_active={self.is_active})"
