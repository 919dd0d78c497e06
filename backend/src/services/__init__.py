"""
Services package for reservation business logic.

This package contains service classes that encapsulate the admission,
cancellation and catalog rules shared across the API endpoints.
"""

from .catalog_service import CatalogService
from .availability_service import AvailabilityService
from .notification_service import NotificationService
from .admission_service import AdmissionService
from .cancellation_service import CancellationService

__all__ = [
    "CatalogService",
    "AvailabilityService",
    "NotificationService",
    "AdmissionService",
    "CancellationService",
]
