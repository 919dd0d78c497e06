# pyright: reportUnknownMemberType=false
"""
Reservation notification service.

Created and cancelled reservations are reported to the administration by
POSTing a JSON payload to the e-mail webhook, which renders and delivers the
message. Delivery is fire-and-forget: it runs on a background executor,
failures are logged and swallowed, and a failed notification never affects
the reservation itself.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core import config
from models import NotificationRecipient
from utils.datetime_utils import institution_now

logger = logging.getLogger(__name__)

ACTION_CREATED = "created"
ACTION_CANCELLED = "cancelled"

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="reservation-notify")


class NotificationService:
    """Service for reservation e-mail notifications and their recipients."""

    @staticmethod
    def build_payload(
        snapshot: Dict[str, Any],
        action: str,
        owner_display_name: str,
        recipients: List[str],
    ) -> Dict[str, Any]:
        return {
            "reservation": snapshot,
            "action": action,
            "owner_display_name": owner_display_name,
            "recipients": recipients,
            "sent_at": institution_now().isoformat(),
        }

    @staticmethod
    def send_reservation_notification(
        snapshot: Dict[str, Any],
        action: str,
        owner_display_name: str,
        recipients: List[str],
    ) -> bool:
        """
        Deliver one notification synchronously.

        Returns:
            True if the webhook accepted the notification, False otherwise
        """
        if not config.NOTIFICATION_WEBHOOK_URL:
            logger.debug(f"Notification webhook not configured, skipping {action} notification")
            return False

        headers = {"Content-Type": "application/json"}
        if config.NOTIFICATION_WEBHOOK_TOKEN:
            headers["Authorization"] = f"Bearer {config.NOTIFICATION_WEBHOOK_TOKEN}"

        try:
            response = httpx.post(
                config.NOTIFICATION_WEBHOOK_URL,
                json=NotificationService.build_payload(snapshot, action, owner_display_name, recipients),
                headers=headers,
                timeout=config.NOTIFICATION_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            logger.info(f"Sent {action} notification for reservation {snapshot.get('id')}")
            return True
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Notification webhook rejected {action} notification for reservation "
                f"{snapshot.get('id')}: {e.response.status_code}"
            )
            return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to send {action} notification for reservation {snapshot.get('id')}: {e}")
            return False

    @staticmethod
    def notify(
        db: Session,
        snapshot: Dict[str, Any],
        action: str,
        owner_display_name: str,
    ) -> Optional[Future]:
        """
        Queue a notification to every active recipient without waiting for it.

        Returns:
            The pending delivery, or None when nothing was queued
        """
        if not config.NOTIFICATION_WEBHOOK_URL:
            return None

        try:
            recipients = [r.email for r in NotificationService.list_recipients(db, active_only=True)]
        except SQLAlchemyError as e:
            logger.exception(f"Could not load notification recipients: {e}")
            return None

        if not recipients:
            logger.info(f"No active notification recipients, skipping {action} notification")
            return None

        try:
            return _executor.submit(
                NotificationService.send_reservation_notification,
                snapshot, action, owner_display_name, recipients,
            )
        except RuntimeError as e:
            # Executor shut down during application exit
            logger.warning(f"Could not queue {action} notification: {e}")
            return None

    @staticmethod
    def list_recipients(db: Session, active_only: bool = False) -> List[NotificationRecipient]:
        query = db.query(NotificationRecipient)
        if active_only:
            query = query.filter(NotificationRecipient.is_active == True)  # noqa: E712
        return query.order_by(NotificationRecipient.email).all()

    @staticmethod
    def add_recipient(db: Session, email: str) -> NotificationRecipient:
        """Add (or reactivate) a notification e-mail address."""
        normalized = email.strip().lower()
        if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
            raise ValueError(f"Invalid e-mail address: {email!r}")

        recipient = db.query(NotificationRecipient).filter(NotificationRecipient.email == normalized).first()
        if recipient:
            recipient.is_active = True
        else:
            recipient = NotificationRecipient(email=normalized, is_active=True)
            db.add(recipient)
        db.commit()
        return recipient

    @staticmethod
    def deactivate_recipient(db: Session, recipient_id: int) -> bool:
        recipient = db.query(NotificationRecipient).filter(NotificationRecipient.id == recipient_id).first()
        if not recipient:
            return False
        recipient.is_active = False
        db.commit()
        return True


def shutdown_notification_executor() -> None:
    _executor.shutdown(wait=False)
