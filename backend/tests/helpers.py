"""
Test helpers for reservation tests.
"""

from datetime import date, datetime
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from models import Reservation, ReservationSlot
from services.jwt_service import JWTService, TokenPayload


def create_jwt_token(owner_id: str, name: Optional[str] = None, is_admin: bool = False) -> str:
    """Create a JWT access token for an institutional user."""
    return JWTService.create_access_token(
        TokenPayload(sub=owner_id, name=name or owner_id.title(), is_admin=is_admin)
    )


def auth_headers(owner_id: str, is_admin: bool = False) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_jwt_token(owner_id, is_admin=is_admin)}"}


def add_reservation(
    db: Session,
    kind: str,
    on_date: date,
    owner_id: str,
    capacity_unit: Optional[int] = 0,
    slots: Iterable[str] = (),
    note: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Reservation:
    """
    Insert a reservation directly, bypassing admission.

    Pass ``slots`` for auditorium rows; ``capacity_unit`` and ``owner_key``
    are then left empty as admission would.
    """
    slots = list(slots)
    reservation = Reservation(
        resource_kind=kind,
        reservation_date=on_date,
        owner_id=owner_id,
        note=note,
        capacity_unit=None if slots else capacity_unit,
        owner_key=None if slots else owner_id,
        created_at=created_at,
    )
    reservation.slots = [
        ReservationSlot(resource_kind=kind, reservation_date=on_date, slot=slot) for slot in slots
    ]
    db.add(reservation)
    db.commit()
    return reservation
