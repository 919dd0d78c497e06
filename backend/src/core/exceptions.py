"""
Reservation outcome taxonomy.

Every rejection the engine can produce is an expected, recoverable outcome.
Services raise these; the API layer renders each one with its own code and
message so the client can show exactly which policy was violated. Storage and
transport failures are not part of this hierarchy.
"""

from typing import Any, Dict, List, Optional


class ReservationError(Exception):
    """Base class for all expected reservation outcomes."""

    code = "reservation_error"
    status_code = 400
    default_message = "Reservation request rejected"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def extra(self) -> Dict[str, Any]:
        """Additional fields rendered alongside code and detail."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        body.update(self.extra())
        return body


class NotFound(ReservationError):
    code = "not_found"
    status_code = 404
    default_message = "Reservation or resource not found"


class ResourceInactive(ReservationError):
    code = "resource_inactive"
    status_code = 409
    default_message = "This resource has been deactivated by the administration and cannot be reserved"

    def __init__(self, resource_kind: str, message: Optional[str] = None):
        self.resource_kind = resource_kind
        super().__init__(message)

    def extra(self) -> Dict[str, Any]:
        return {"resource_kind": self.resource_kind}


class DuplicateOwnerReservation(ReservationError):
    code = "duplicate_owner_reservation"
    status_code = 409
    default_message = "You already hold a reservation of this resource for this date"


class SlotConflict(ReservationError):
    """Raised when requested auditorium slots are held by another owner."""

    code = "slot_conflict"
    status_code = 409

    def __init__(self, slots: List[str]):
        self.slots = list(slots)
        super().__init__(
            f"The following time slots are already reserved: {', '.join(self.slots)}. "
            "Please select other time slots."
        )

    def extra(self) -> Dict[str, Any]:
        return {"slots": self.slots}


class MissingObservation(ReservationError):
    code = "missing_observation"
    status_code = 422
    default_message = "An observation is required for this reservation"


class CapacityExceeded(ReservationError):
    code = "capacity_exceeded"
    status_code = 409
    default_message = "No more units are available for this date. Please choose another day."

    def __init__(self, message: Optional[str] = None, conflicting_owner: Optional[str] = None):
        self.conflicting_owner = conflicting_owner
        super().__init__(message)

    def extra(self) -> Dict[str, Any]:
        if self.conflicting_owner is None:
            return {}
        return {"conflicting_owner": self.conflicting_owner}


class RaceLost(ReservationError):
    """A concurrent request committed first for the same exclusive key."""

    code = "race_lost"
    status_code = 409
    default_message = (
        "This resource was just claimed by a concurrent request. "
        "Please choose a different date."
    )


class Unauthorized(ReservationError):
    code = "unauthorized"
    status_code = 403
    default_message = "Only the owner of a reservation or an administrator can cancel it"


class TooLateToCancel(ReservationError):
    code = "too_late_to_cancel"
    status_code = 409
    default_message = "This reservation is in the past and can no longer be cancelled"


class InvalidReservationRequest(ReservationError):
    code = "invalid_request"
    status_code = 422
    default_message = "Invalid reservation request"


class SubmissionInProgress(ReservationError):
    code = "submission_in_progress"
    status_code = 409
    default_message = "A reservation request for this resource and date is already being processed"
