"""
Utility functions for consistent reservation listings.

These back the "my reservations", daily board, laboratory and administration
views. They are
plain reads; none of them is used for admission decisions.
"""

from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from core.constants import LABORATORY_KIND_PREFIX, OWNER_HISTORY_DAYS
from models import Reservation
from utils.datetime_utils import institution_today


def list_owner_reservations(
    db: Session,
    owner_id: str,
    since: Optional[date] = None,
) -> List[Reservation]:
    """
    List an owner's reservations from ``since`` onward, oldest date first.

    Args:
        db: Database session
        owner_id: Owner whose reservations to list
        since: First date to include; defaults to two days before today so
            recently used bookings stay visible

    Returns:
        Reservations ordered by date, then admission time
    """
    if since is None:
        since = institution_today() - timedelta(days=OWNER_HISTORY_DAYS)

    return db.query(Reservation).filter(
        Reservation.owner_id == owner_id,
        Reservation.reservation_date >= since,
    ).order_by(
        Reservation.reservation_date, Reservation.created_at
    ).all()


def list_for_date(db: Session, on_date: date) -> List[Reservation]:
    """All reservations of a date in admission order."""
    return db.query(Reservation).filter(
        Reservation.reservation_date == on_date,
    ).order_by(Reservation.created_at).all()


def list_upcoming_laboratory_reservations(db: Session, today: Optional[date] = None) -> List[Reservation]:
    """Laboratory reservations dated today or later, ordered by date and laboratory."""
    today = today or institution_today()
    return db.query(Reservation).filter(
        Reservation.resource_kind.startswith(LABORATORY_KIND_PREFIX),
        Reservation.reservation_date >= today,
    ).order_by(
        Reservation.reservation_date, Reservation.resource_kind, Reservation.created_at
    ).all()


def list_all_reservations(db: Session, since: Optional[date] = None) -> List[Reservation]:
    """
    Every owner's reservations for the administration view.

    Args:
        db: Database session
        since: First date to include; all dates when omitted

    Returns:
        Reservations ordered by date, then admission time
    """
    query = db.query(Reservation)
    if since is not None:
        query = query.filter(Reservation.reservation_date >= since)
    return query.order_by(Reservation.reservation_date, Reservation.created_at).all()
