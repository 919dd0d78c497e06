"""
Resource catalog service.

This service handles:
- The admin-managed list of reservable resource kinds and their policies
- Dynamic laboratory registration
- Deactivation (blocks new admissions, keeps existing reservations)
- Cascading deletion (purges future reservations, keeps past ones for audit)

Reads go through an in-process cache that is dropped whenever the change
notifier reports a change on the resource_kinds table.
"""

import logging
import re
import threading
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from core.config import DEFAULT_PROJECTOR_LIMIT, DEFAULT_SPEAKER_LIMIT
from core.constants import (
    AUDITORIUM_KIND,
    CATEGORY_AUDITORIUM,
    CATEGORY_EQUIPMENT,
    CATEGORY_LABORATORY,
    LABORATORY_KIND_PREFIX,
    PROJECTOR_KIND,
    RESERVATIONS_TABLE,
    RESOURCE_KINDS_TABLE,
    SPEAKER_KIND,
)
from core.exceptions import NotFound
from models import Reservation, ResourceKind
from services.change_notifier import EVENT_DELETE, EVENT_INSERT, EVENT_UPDATE, ChangeEvent, change_notifier
from utils.datetime_utils import institution_today

logger = logging.getLogger(__name__)

_LAB_CODE_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,60}$")
_VALID_CATEGORIES = (CATEGORY_EQUIPMENT, CATEGORY_AUDITORIUM, CATEGORY_LABORATORY)


@dataclass(frozen=True)
class ResourcePolicy:
    """Detached, immutable view of a resource kind's admission policy."""

    kind: str
    display_name: str
    category: str
    capacity_per_day: int
    is_slotted: bool
    is_active: bool

    @property
    def is_laboratory(self) -> bool:
        return self.category == CATEGORY_LABORATORY

    @classmethod
    def from_model(cls, model: ResourceKind) -> "ResourcePolicy":
        return cls(
            kind=model.id,
            display_name=model.display_name,
            category=model.category,
            capacity_per_day=model.capacity_per_day,
            is_slotted=model.is_slotted,
            is_active=model.is_active,
        )


def _lab_sort_key(policy: ResourcePolicy):
    # Labs are listed by the number in their name ("Lab 2" before "Lab 10"), unnumbered last
    match = re.search(r"\d+", policy.display_name)
    return (int(match.group()) if match else 999, policy.display_name)


class CatalogCache:
    """Fetch-through snapshot of every resource kind, invalidated by change events."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._policies: Optional[Dict[str, ResourcePolicy]] = None
        self._generation = 0  # Bumped by every invalidation

    def get_all(self, db: Session) -> Dict[str, ResourcePolicy]:
        with self._lock:
            if self._policies is not None:
                return self._policies
            generation = self._generation
        policies = {model.id: ResourcePolicy.from_model(model) for model in db.query(ResourceKind).all()}
        with self._lock:
            # An invalidation during the read means this snapshot may already be stale
            if self._generation == generation:
                self._policies = policies
        return policies

    def invalidate(self, event: Optional[ChangeEvent] = None) -> None:
        with self._lock:
            self._policies = None
            self._generation += 1


catalog_cache = CatalogCache()
change_notifier.add_listener(RESOURCE_KINDS_TABLE, catalog_cache.invalidate)


class CatalogService:
    """Service for resource kind management."""

    @staticmethod
    def get_policy(db: Session, kind: str, use_cache: bool = True) -> ResourcePolicy:
        """
        Get the admission policy of a resource kind.

        Args:
            db: Database session
            kind: Resource kind key
            use_cache: Read from the in-process cache. The admission path
                passes False so it always validates against the store.

        Raises:
            NotFound: If the kind does not exist
        """
        if use_cache:
            policy = catalog_cache.get_all(db).get(kind)
            if policy is not None:
                return policy

        model = db.query(ResourceKind).filter(ResourceKind.id == kind).first()
        if not model:
            raise NotFound(f"Resource '{kind}' does not exist")
        return ResourcePolicy.from_model(model)

    @staticmethod
    def list_kinds(db: Session) -> List[ResourcePolicy]:
        """All kinds: equipment and auditorium first, then laboratories by number."""
        policies = list(catalog_cache.get_all(db).values())
        fixed = sorted((p for p in policies if not p.is_laboratory), key=lambda p: p.kind)
        labs = sorted((p for p in policies if p.is_laboratory), key=_lab_sort_key)
        return fixed + labs

    @staticmethod
    def list_active_kinds(db: Session) -> List[ResourcePolicy]:
        return [p for p in CatalogService.list_kinds(db) if p.is_active]

    @staticmethod
    def create_kind(
        db: Session,
        kind: str,
        display_name: str,
        category: str,
        capacity_per_day: int,
        is_slotted: bool = False,
        is_active: bool = True,
    ) -> ResourcePolicy:
        """
        Create a resource kind.

        Raises:
            ValueError: If the definition is invalid or the kind already exists
        """
        if category not in _VALID_CATEGORIES:
            raise ValueError(f"Unknown resource category: {category}")
        if capacity_per_day < 0:
            raise ValueError("capacity_per_day must be zero or greater")
        if is_slotted and category != CATEGORY_AUDITORIUM:
            raise ValueError("Only the auditorium can be divided into time slots")
        if not display_name or not display_name.strip():
            raise ValueError("display_name is required")
        if db.query(ResourceKind).filter(ResourceKind.id == kind).first():
            raise ValueError(f"Resource '{kind}' already exists")

        model = ResourceKind(
            id=kind,
            display_name=display_name.strip(),
            category=category,
            capacity_per_day=capacity_per_day,
            is_slotted=is_slotted,
            is_active=is_active,
        )
        db.add(model)
        db.commit()

        logger.info(f"Created resource kind {kind} (capacity {capacity_per_day})")
        change_notifier.publish(RESOURCE_KINDS_TABLE, EVENT_INSERT)
        return ResourcePolicy.from_model(model)

    @staticmethod
    def register_laboratory(db: Session, code: str, display_name: str, is_active: bool = True) -> ResourcePolicy:
        """
        Register a laboratory as an exclusive, one-per-day resource kind.

        The kind key is ``laboratory:<code>``.
        """
        normalized = (code or "").strip().lower()
        if not _LAB_CODE_PATTERN.match(normalized):
            raise ValueError(f"Invalid laboratory code: {code!r}")
        return CatalogService.create_kind(
            db,
            kind=f"{LABORATORY_KIND_PREFIX}{normalized}",
            display_name=display_name,
            category=CATEGORY_LABORATORY,
            capacity_per_day=1,
            is_active=is_active,
        )

    @staticmethod
    def update_kind(
        db: Session,
        kind: str,
        display_name: Optional[str] = None,
        capacity_per_day: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> ResourcePolicy:
        """
        Edit a resource kind.

        Changing the capacity never cancels existing holders. The capacity
        units of upcoming reservations are compacted to 0..n-1 so the unit
        constraint keeps bounding admissions under the new limit.

        Raises:
            NotFound: If the kind does not exist
            ValueError: If the new values are invalid
        """
        model = db.query(ResourceKind).filter(ResourceKind.id == kind).first()
        if not model:
            raise NotFound(f"Resource '{kind}' does not exist")

        if display_name is not None:
            if not display_name.strip():
                raise ValueError("display_name cannot be empty")
            model.display_name = display_name.strip()

        if capacity_per_day is not None and capacity_per_day != model.capacity_per_day:
            if capacity_per_day < 0:
                raise ValueError("capacity_per_day must be zero or greater")
            if model.category != CATEGORY_EQUIPMENT and capacity_per_day > 1:
                raise ValueError("Laboratories and the auditorium are exclusive resources")
            old_capacity = model.capacity_per_day
            model.capacity_per_day = capacity_per_day
            if not model.is_slotted:
                CatalogService._compact_capacity_units(db, kind, institution_today())
            logger.info(f"Capacity of {kind} changed from {old_capacity} to {capacity_per_day}")

        if is_active is not None:
            model.is_active = is_active

        db.commit()
        change_notifier.publish(RESOURCE_KINDS_TABLE, EVENT_UPDATE)
        return ResourcePolicy.from_model(model)

    @staticmethod
    def set_active(db: Session, kind: str, is_active: bool) -> ResourcePolicy:
        """Activate or deactivate a kind without touching its reservations."""
        return CatalogService.update_kind(db, kind, is_active=is_active)

    @staticmethod
    def _compact_capacity_units(db: Session, kind: str, today: date) -> None:
        rows = db.query(Reservation).filter(
            Reservation.resource_kind == kind,
            Reservation.reservation_date >= today,
            Reservation.capacity_unit.isnot(None),
        ).order_by(
            Reservation.reservation_date, Reservation.capacity_unit
        ).all()

        current_date = None
        next_unit = 0
        for row in rows:
            if row.reservation_date != current_date:
                current_date = row.reservation_date
                next_unit = 0
            if row.capacity_unit != next_unit:
                row.capacity_unit = next_unit
                # Flush row by row: units only move down, so no transient duplicate
                db.flush()
            next_unit += 1

    @staticmethod
    def delete_kind_cascade(db: Session, kind: str, today: Optional[date] = None) -> int:
        """
        Delete a resource kind together with its future reservations.

        Reservations dated before today are retained for audit. Both steps
        are committed in one transaction.

        Returns:
            Number of reservations purged

        Raises:
            NotFound: If the kind does not exist
        """
        today = today or institution_today()
        model = db.query(ResourceKind).filter(ResourceKind.id == kind).first()
        if not model:
            raise NotFound(f"Resource '{kind}' does not exist")

        future = db.query(Reservation).filter(
            Reservation.resource_kind == kind,
            Reservation.reservation_date >= today,
        ).all()
        for reservation in future:
            db.delete(reservation)
        db.delete(model)
        db.commit()

        logger.info(f"Deleted resource kind {kind} and {len(future)} future reservations")
        change_notifier.publish(RESOURCE_KINDS_TABLE, EVENT_DELETE)
        if future:
            change_notifier.publish(RESERVATIONS_TABLE, EVENT_DELETE)
        return len(future)

    @staticmethod
    def seed_default_kinds(db: Session) -> List[ResourcePolicy]:
        """Install projector, speaker and auditorium if missing."""
        defaults = [
            (PROJECTOR_KIND, "Projector", CATEGORY_EQUIPMENT, DEFAULT_PROJECTOR_LIMIT, False),
            (SPEAKER_KIND, "Speaker", CATEGORY_EQUIPMENT, DEFAULT_SPEAKER_LIMIT, False),
            (AUDITORIUM_KIND, "Auditorium", CATEGORY_AUDITORIUM, 1, True),
        ]
        created: List[ResourcePolicy] = []
        for kind, name, category, capacity, slotted in defaults:
            if db.query(ResourceKind).filter(ResourceKind.id == kind).first():
                continue
            created.append(CatalogService.create_kind(
                db, kind, name, category, capacity, is_slotted=slotted
            ))
        return created
