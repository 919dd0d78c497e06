"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints to ensure consistency and reduce duplication.
"""

from datetime import date as date_type, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from models import Reservation
from services.availability_service import Availability
from services.catalog_service import ResourcePolicy


class AvailabilityResponse(BaseModel):
    """Response model for availability query."""
    resource_kind: str
    date: date_type  # Serialized as YYYY-MM-DD
    capacity: int
    used: int
    remaining: int
    occupied_slots: Dict[str, str] = {}  # slot id -> owner id, auditorium only
    free_slots: List[str] = []

    @classmethod
    def from_availability(cls, availability: Availability) -> "AvailabilityResponse":
        return cls(
            resource_kind=availability.resource_kind,
            date=availability.date,
            capacity=availability.capacity,
            used=availability.used,
            remaining=availability.remaining,
            occupied_slots=availability.occupied_slots,
            free_slots=availability.free_slots,
        )


class ReservationResponse(BaseModel):
    """Response model for a single reservation."""
    id: str
    resource_kind: str
    reservation_date: date_type
    owner_id: str
    note: Optional[str] = None
    time_slots: List[str] = []
    created_at: datetime

    @classmethod
    def from_model(cls, reservation: Reservation) -> "ReservationResponse":
        return cls(
            id=reservation.id,
            resource_kind=reservation.resource_kind,
            reservation_date=reservation.reservation_date,
            owner_id=reservation.owner_id,
            note=reservation.note,
            time_slots=reservation.time_slots,
            created_at=reservation.created_at,
        )


class ReservationListResponse(BaseModel):
    """Response model for listing reservations."""
    reservations: List[ReservationResponse]
    date: Optional[date_type] = None  # Set for the daily board


class ResourceKindResponse(BaseModel):
    """Response model for a resource kind."""
    kind: str
    display_name: str
    category: str
    capacity_per_day: int
    is_slotted: bool
    is_active: bool

    @classmethod
    def from_policy(cls, policy: ResourcePolicy) -> "ResourceKindResponse":
        return cls(
            kind=policy.kind,
            display_name=policy.display_name,
            category=policy.category,
            capacity_per_day=policy.capacity_per_day,
            is_slotted=policy.is_slotted,
            is_active=policy.is_active,
        )


class ResourceKindListResponse(BaseModel):
    """Response model for listing resource kinds."""
    kinds: List[ResourceKindResponse]


class DeleteKindResponse(BaseModel):
    kind: str
    purged_reservations: int


class NotificationRecipientResponse(BaseModel):
    id: int
    email: str
    is_active: bool


class NotificationRecipientListResponse(BaseModel):
    recipients: List[NotificationRecipientResponse]
