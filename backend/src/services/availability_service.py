"""
Availability service for reservation utilization queries.

Availability is a stale read by nature: a positive ``remaining`` is not a
lock. Clients re-run the query after every change event and the admission
controller re-validates against the store at commit time.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session

from core.constants import TIME_SLOTS
from models import Reservation, ReservationSlot
from services.catalog_service import CatalogService, ResourcePolicy

logger = logging.getLogger(__name__)


@dataclass
class Availability:
    """Utilization of one resource kind on one calendar date."""

    resource_kind: str
    date: date
    capacity: int
    used: int
    remaining: int
    occupied_slots: Dict[str, str] = field(default_factory=dict)
    """For slotted kinds: slot id -> owner id holding it."""
    holders: List[str] = field(default_factory=list)
    """Owner ids holding a reservation, in admission order."""
    is_slotted: bool = False

    @property
    def is_available(self) -> bool:
        return self.remaining > 0

    @property
    def free_slots(self) -> List[str]:
        if not self.is_slotted:
            return []
        return [slot for slot in TIME_SLOTS if slot not in self.occupied_slots]

    def to_dict(self) -> dict:
        return {
            "resource_kind": self.resource_kind,
            "date": self.date.isoformat(),
            "capacity": self.capacity,
            "used": self.used,
            "remaining": self.remaining,
            "occupied_slots": {slot: self.occupied_slots[slot] for slot in TIME_SLOTS if slot in self.occupied_slots},
            "free_slots": self.free_slots,
        }


class AvailabilityService:
    """Service for computing current utilization from existing reservations."""

    @staticmethod
    def availability(
        db: Session,
        kind: str,
        on_date: date,
        policy: Optional[ResourcePolicy] = None,
    ) -> Availability:
        """
        Compute capacity, usage and remaining capacity for (kind, date).

        Past dates are allowed and simply report historical usage.

        Args:
            db: Database session
            kind: Resource kind key
            on_date: Calendar date
            policy: Policy to evaluate against; looked up when omitted

        Raises:
            NotFound: If the kind does not exist
        """
        policy = policy or CatalogService.get_policy(db, kind)

        holders = AvailabilityService.holders_of(db, kind, on_date)

        if policy.is_slotted:
            occupied = AvailabilityService.slot_holders(db, kind, on_date)
            capacity = len(TIME_SLOTS)
            return Availability(
                resource_kind=kind,
                date=on_date,
                capacity=capacity,
                used=len(occupied),
                remaining=max(capacity - len(occupied), 0),
                occupied_slots=occupied,
                holders=holders,
                is_slotted=True,
            )

        used = len(holders)
        return Availability(
            resource_kind=kind,
            date=on_date,
            capacity=policy.capacity_per_day,
            used=used,
            remaining=max(policy.capacity_per_day - used, 0),
            holders=holders,
        )

    @staticmethod
    def holders_of(db: Session, kind: str, on_date: date) -> List[str]:
        """Owner ids holding (kind, date), earliest admission first."""
        rows = db.query(Reservation.owner_id).filter(
            Reservation.resource_kind == kind,
            Reservation.reservation_date == on_date,
        ).order_by(Reservation.created_at).all()
        return [r[0] for r in rows]

    @staticmethod
    def slot_holders(db: Session, kind: str, on_date: date) -> Dict[str, str]:
        """Map of occupied slot -> owner id for a slotted kind on a date."""
        rows = db.query(ReservationSlot.slot, Reservation.owner_id).join(
            Reservation, ReservationSlot.reservation_id == Reservation.id
        ).filter(
            ReservationSlot.resource_kind == kind,
            ReservationSlot.reservation_date == on_date,
        ).all()
        return {slot: owner_id for slot, owner_id in rows}

    @staticmethod
    def taken_units(db: Session, kind: str, on_date: date) -> Set[int]:
        rows = db.query(Reservation.capacity_unit).filter(
            Reservation.resource_kind == kind,
            Reservation.reservation_date == on_date,
            Reservation.capacity_unit.isnot(None),
        ).all()
        return {r[0] for r in rows}

    @staticmethod
    def free_units(db: Session, kind: str, on_date: date, capacity: int) -> List[int]:
        """Capacity units not yet occupied on a date, lowest first."""
        taken = AvailabilityService.taken_units(db, kind, on_date)
        return [unit for unit in range(capacity) if unit not in taken]

    @staticmethod
    def owner_reservation(db: Session, kind: str, on_date: date, owner_id: str) -> Optional[Reservation]:
        """The owner's reservation of a non-slotted kind on a date, if any."""
        return db.query(Reservation).filter(
            Reservation.resource_kind == kind,
            Reservation.reservation_date == on_date,
            Reservation.owner_id == owner_id,
        ).first()
