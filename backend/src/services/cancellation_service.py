"""
Cancellation service.

Owners cancel their own reservations while the date has not passed;
administrators may cancel anyone's. Deleting the row frees its capacity unit
and auditorium slots (slot rows cascade at the database level).
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from core.config import CANCELLATION_GRACE_DAYS_AFTER_MONDAY
from core.constants import RESERVATIONS_TABLE
from core.exceptions import NotFound, TooLateToCancel, Unauthorized
from models import Reservation
from services.change_notifier import EVENT_DELETE, change_notifier
from services.notification_service import ACTION_CANCELLED, NotificationService
from utils.datetime_utils import MONDAY, institution_today, is_weekend, local_date_of

logger = logging.getLogger(__name__)


class CancellationService:
    """Service for cancelling reservations."""

    @staticmethod
    def is_cancellable(
        reservation_date: date,
        created_on: date,
        today: date,
        grace_days: int = CANCELLATION_GRACE_DAYS_AFTER_MONDAY,
    ) -> bool:
        """
        Temporal cancellation rule.

        A reservation is cancellable unless its date is before today. A Monday
        reservation placed on the weekend right before it stays cancellable
        for ``grace_days`` days after that Monday (through Wednesday by default).

        Args:
            reservation_date: Date of the reservation
            created_on: Institution-local date the reservation was admitted
            today: Institution-local today
            grace_days: Days after Monday the weekend grace window lasts
        """
        if reservation_date >= today:
            return True

        placed_on_preceding_weekend = (
            reservation_date.weekday() == MONDAY
            and is_weekend(created_on)
            and timedelta(days=1) <= reservation_date - created_on <= timedelta(days=2)
        )
        if placed_on_preceding_weekend:
            return today <= reservation_date + timedelta(days=grace_days)
        return False

    @staticmethod
    def cancel(
        db: Session,
        reservation_id: str,
        requester_id: str,
        is_admin: bool = False,
        requester_display_name: Optional[str] = None,
        today: Optional[date] = None,
    ) -> None:
        """
        Cancel a reservation on behalf of its owner (or an administrator).

        Raises:
            NotFound: If the reservation does not exist (including a second cancel)
            Unauthorized: If the requester is neither the owner nor an admin
            TooLateToCancel: If the reservation date has passed
        """
        reservation = db.query(Reservation).filter(Reservation.id == reservation_id).first()
        if not reservation:
            raise NotFound(f"Reservation {reservation_id} not found")

        if reservation.owner_id != requester_id and not is_admin:
            logger.warning(f"User {requester_id} attempted to cancel reservation {reservation_id} of {reservation.owner_id}")
            raise Unauthorized()

        today = today or institution_today()
        created_on = local_date_of(reservation.created_at)
        if not CancellationService.is_cancellable(reservation.reservation_date, created_on, today):
            raise TooLateToCancel()

        if reservation.owner_id == requester_id:
            CancellationService._delete(db, reservation, requester_display_name or requester_id)
        else:
            CancellationService._delete(
                db, reservation, reservation.owner_id, cancelled_by=requester_display_name or requester_id
            )

    @staticmethod
    def admin_cancel(db: Session, reservation_id: str, admin_display_name: Optional[str] = None) -> None:
        """
        Administrative override: delete any reservation regardless of its date.

        Raises:
            NotFound: If the reservation does not exist
        """
        reservation = db.query(Reservation).filter(Reservation.id == reservation_id).first()
        if not reservation:
            raise NotFound(f"Reservation {reservation_id} not found")
        CancellationService._delete(
            db, reservation, reservation.owner_id, cancelled_by=admin_display_name or "administrator"
        )

    @staticmethod
    def _delete(
        db: Session,
        reservation: Reservation,
        owner_display_name: str,
        cancelled_by: Optional[str] = None,
    ) -> None:
        snapshot = reservation.snapshot()
        if cancelled_by:
            # Someone other than the owner cancelled
            snapshot["cancelled_by"] = cancelled_by

        # Row-count checked delete: a concurrent cancel that got here first leaves nothing to delete
        deleted = db.query(Reservation).filter(
            Reservation.id == reservation.id
        ).delete(synchronize_session=False)
        if not deleted:
            db.rollback()
            raise NotFound(f"Reservation {reservation.id} not found")
        db.commit()
        db.expunge(reservation)

        logger.info(
            f"Cancelled reservation {snapshot['id']} for {snapshot['resource_kind']} "
            f"on {snapshot['reservation_date']} (owner {snapshot['owner_id']})"
        )
        change_notifier.publish(RESERVATIONS_TABLE, EVENT_DELETE)
        NotificationService.notify(db, snapshot, ACTION_CANCELLED, owner_display_name)
