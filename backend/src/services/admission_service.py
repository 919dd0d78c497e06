"""
Admission service: validates reservation requests and commits them.

The pre-checks below read the store and can be stale by the time the insert
runs. What actually prevents double-booking is the set of uniqueness
constraints on the reservations and reservation_slots tables: two
concurrent admissions that both passed the pre-checks cannot both commit.
The loser's transaction is rolled back, so a rejected request never leaves
a row behind.
"""

import logging
from datetime import date
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import MAX_NOTE_LENGTH, NO_SUPPLIES_NOTE, RESERVATIONS_TABLE, TIME_SLOTS
from core.exceptions import (
    CapacityExceeded,
    DuplicateOwnerReservation,
    InvalidReservationRequest,
    MissingObservation,
    RaceLost,
    ResourceInactive,
    SlotConflict,
)
from models import Reservation, ReservationSlot
from services.availability_service import AvailabilityService
from services.catalog_service import CatalogService, ResourcePolicy
from services.change_notifier import EVENT_INSERT, change_notifier
from services.notification_service import ACTION_CREATED, NotificationService
from utils.datetime_utils import institution_today

logger = logging.getLogger(__name__)


class AdmissionService:
    """Service for admitting new reservations."""

    @staticmethod
    def admit(
        db: Session,
        kind: str,
        on_date: date,
        owner_id: str,
        slots: Optional[Iterable[str]] = None,
        note: Optional[str] = None,
        needs_supplies: Optional[bool] = None,
        owner_display_name: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Reservation:
        """
        Validate and commit a reservation.

        Validation order (first violation wins):
        1. Kind is active (ResourceInactive); date is not before today (InvalidReservationRequest)
        2. Owner does not already hold (kind, date) (DuplicateOwnerReservation);
           per slot for the auditorium
        3. Auditorium: requested slots are free of other owners (SlotConflict)
        4. Auditorium: observation present; laboratories: observation present
           when supplies are needed (MissingObservation)
        5. Capacity-limited kinds: used < capacity (CapacityExceeded)
        6. Insert under the storage uniqueness constraints
        7. Constraint rejection -> RaceLost

        Args:
            db: Database session
            kind: Resource kind key
            on_date: Institution-local calendar date
            owner_id: Requesting user
            slots: Auditorium slot ids (auditorium only)
            note: Observation
            needs_supplies: Laboratory requests only, whether supplies must be bought
            owner_display_name: Name used in the e-mail notification
            today: Institution-local today, defaults to the current date

        Returns:
            The committed reservation

        Raises:
            ReservationError subclasses for every rejection
        """
        policy = CatalogService.get_policy(db, kind, use_cache=False)
        if not policy.is_active:
            raise ResourceInactive(kind)

        today = today or institution_today()
        if on_date < today:
            raise InvalidReservationRequest(
                f"Reservations can only be made for today or a later date, not {on_date.isoformat()}"
            )

        note = AdmissionService._normalize_note(note)

        if policy.is_slotted:
            reservation = AdmissionService._admit_slotted(db, policy, on_date, owner_id, slots, note)
        else:
            if slots:
                raise InvalidReservationRequest(f"Resource '{kind}' is not reserved by time slot")
            reservation = AdmissionService._admit_by_capacity(db, policy, on_date, owner_id, note, needs_supplies)

        logger.info(
            f"Admitted reservation {reservation.id} for {kind} on {on_date.isoformat()} "
            f"(owner {owner_id}, unit {reservation.capacity_unit}, slots {reservation.time_slots})"
        )
        change_notifier.publish(RESERVATIONS_TABLE, EVENT_INSERT)
        NotificationService.notify(db, reservation.snapshot(), ACTION_CREATED, owner_display_name or owner_id)
        return reservation

    @staticmethod
    def _normalize_note(note: Optional[str]) -> Optional[str]:
        if note is None:
            return None
        note = note.strip()
        if len(note) > MAX_NOTE_LENGTH:
            raise InvalidReservationRequest(f"Observation must be at most {MAX_NOTE_LENGTH} characters")
        return note or None

    @staticmethod
    def _normalize_slots(slots: Optional[Iterable[str]]) -> List[str]:
        requested = set(slots or [])
        if not requested:
            raise InvalidReservationRequest("Select at least one time slot")
        unknown = sorted(requested - set(TIME_SLOTS))
        if unknown:
            raise InvalidReservationRequest(f"Unknown time slots: {', '.join(unknown)}")
        return [slot for slot in TIME_SLOTS if slot in requested]

    @staticmethod
    def _admit_slotted(
        db: Session,
        policy: ResourcePolicy,
        on_date: date,
        owner_id: str,
        slots: Optional[Iterable[str]],
        note: Optional[str],
    ) -> Reservation:
        requested = AdmissionService._normalize_slots(slots)
        holders = AvailabilityService.slot_holders(db, policy.kind, on_date)

        # Slots the owner already holds are a no-op; asking only for those is a duplicate
        new_slots = [slot for slot in requested if holders.get(slot) != owner_id]
        if not new_slots:
            raise DuplicateOwnerReservation(
                f"You already hold the requested time slots on {on_date.isoformat()}"
            )

        conflicts = [slot for slot in new_slots if slot in holders]
        if conflicts:
            # All-or-nothing: nothing is reserved when any slot is taken
            raise SlotConflict(conflicts)

        if not note:
            raise MissingObservation("Please add an observation describing the use of the auditorium")

        reservation = Reservation(
            resource_kind=policy.kind,
            reservation_date=on_date,
            owner_id=owner_id,
            note=note,
        )
        reservation.slots = [
            ReservationSlot(resource_kind=policy.kind, reservation_date=on_date, slot=slot)
            for slot in new_slots
        ]
        db.add(reservation)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Slot race lost for {policy.kind} on {on_date.isoformat()} {new_slots}: {e.orig}")
            holders = AvailabilityService.slot_holders(db, policy.kind, on_date)
            if all(holders.get(slot) == owner_id for slot in new_slots):
                raise DuplicateOwnerReservation(
                    f"You already hold the requested time slots on {on_date.isoformat()}"
                )
            raise RaceLost()
        return reservation

    @staticmethod
    def _admit_by_capacity(
        db: Session,
        policy: ResourcePolicy,
        on_date: date,
        owner_id: str,
        note: Optional[str],
        needs_supplies: Optional[bool],
    ) -> Reservation:
        if AvailabilityService.owner_reservation(db, policy.kind, on_date, owner_id):
            raise DuplicateOwnerReservation(
                f"You already hold a reservation of {policy.display_name} on {on_date.isoformat()}"
            )

        if policy.is_laboratory:
            if needs_supplies is None:
                raise InvalidReservationRequest("Please answer whether supplies need to be purchased")
            if needs_supplies and not note:
                raise MissingObservation("Please describe the supplies that need to be purchased")
            if not needs_supplies and not note:
                note = NO_SUPPLIES_NOTE

        availability = AvailabilityService.availability(db, policy.kind, on_date, policy=policy)
        if availability.used >= availability.capacity:
            conflicting_owner = availability.holders[0] if policy.capacity_per_day == 1 and availability.holders else None
            raise CapacityExceeded(
                f"{policy.display_name} is fully booked on {on_date.isoformat()}. Please choose another day.",
                conflicting_owner=conflicting_owner,
            )

        return AdmissionService._claim_capacity_unit(db, policy, on_date, owner_id, note)

    @staticmethod
    def _claim_capacity_unit(
        db: Session,
        policy: ResourcePolicy,
        on_date: date,
        owner_id: str,
        note: Optional[str],
    ) -> Reservation:
        """
        Insert the reservation into the lowest free capacity unit.

        A unit taken by a concurrent commit moves the claim to the next free
        unit; the loop ends when a unit is won or none is left.
        """
        free = AvailabilityService.free_units(db, policy.kind, on_date, policy.capacity_per_day)
        for _ in range(policy.capacity_per_day + 1):
            if not free:
                break
            reservation = Reservation(
                resource_kind=policy.kind,
                reservation_date=on_date,
                owner_id=owner_id,
                owner_key=owner_id,
                capacity_unit=free[0],
                note=note,
            )
            db.add(reservation)
            try:
                db.commit()
                return reservation
            except IntegrityError as e:
                db.rollback()
                logger.info(
                    f"Capacity unit {free[0]} of {policy.kind} on {on_date.isoformat()} "
                    f"claimed concurrently: {e.orig}"
                )
                if AvailabilityService.owner_reservation(db, policy.kind, on_date, owner_id):
                    raise DuplicateOwnerReservation(
                        f"You already hold a reservation of {policy.display_name} on {on_date.isoformat()}"
                    )
                free = AvailabilityService.free_units(db, policy.kind, on_date, policy.capacity_per_day)

        logger.warning(f"Race lost for {policy.kind} on {on_date.isoformat()} (owner {owner_id})")
        raise RaceLost()


@dataclass(frozen=True)
class AdmissionRequest:
    """Everything needed to run one admission, detached from the HTTP layer."""

    kind: str
    on_date: date
    owner_id: str
    slots: Tuple[str, ...] = ()
    note: Optional[str] = None
    needs_supplies: Optional[bool] = None
    owner_display_name: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str, date]:
        """Per-owner submission key used to debounce duplicate submissions."""
        return (self.owner_id, self.kind, self.on_date)

    def admit(self, db: Session) -> Reservation:
        return AdmissionService.admit(
            db,
            self.kind,
            self.on_date,
            self.owner_id,
            slots=list(self.slots) or None,
            note=self.note,
            needs_supplies=self.needs_supplies,
            owner_display_name=self.owner_display_name,
        )
