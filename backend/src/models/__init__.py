# Package initialization
# Import all models to ensure relationships are properly established
from .resource_kind import ResourceKind
from .reservation import Reservation
from .reservation_slot import ReservationSlot
from .notification_recipient import NotificationRecipient

__all__ = [
    "ResourceKind",
    "Reservation",
    "ReservationSlot",
    "NotificationRecipient",
]
