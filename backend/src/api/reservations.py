# pyright: reportMissingTypeStubs=false
"""
Reservation API endpoints.

Availability lookups, admission, listings and cancellation. Store work is
blocking, so every endpoint hands it to a worker thread and one in-flight
admission never holds up the others.
"""

import asyncio
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.responses import AvailabilityResponse, ReservationListResponse, ReservationResponse
from auth.dependencies import UserContext, get_current_user, require_admin
from core.constants import MAX_NOTE_LENGTH
from core.database import get_db
from services.admission_service import AdmissionRequest
from services.availability_service import AvailabilityService
from services.cancellation_service import CancellationService
from services.catalog_service import CatalogService
from services.retry_policy import admit_with_retry
from services.submission_guard import submission_guard
from utils.datetime_utils import institution_today, next_action_date, parse_date_string
from utils.reservation_queries import (
    list_all_reservations,
    list_for_date,
    list_owner_reservations,
    list_upcoming_laboratory_reservations,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class ReservationCreateRequest(BaseModel):
    """Request model for creating a reservation."""
    resource_kind: str
    date: str = Field(..., description="YYYY-MM-DD")
    slots: List[str] = []  # Auditorium only
    note: Optional[str] = Field(None, max_length=MAX_NOTE_LENGTH)
    needs_supplies: Optional[bool] = None  # Laboratories only


def _parse_date_param(value: str) -> date:
    try:
        return parse_date_string(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid date format (use YYYY-MM-DD)"
        )


# ===== Endpoints =====

@router.get("/availability/{kind}", summary="Get availability of a resource kind on a date")
async def get_availability(
    kind: str,
    date: str = Query(..., description="YYYY-MM-DD"),
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> AvailabilityResponse:
    on_date = _parse_date_param(date)
    availability = await asyncio.to_thread(AvailabilityService.availability, db, kind, on_date)
    return AvailabilityResponse.from_availability(availability)


@router.post(
    "/reservations",
    summary="Create a reservation",
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    request: ReservationCreateRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReservationResponse:
    """
    Admit a reservation for the authenticated user.

    Laboratory requests that lose a race are retried while the laboratory
    still reads as free. Every rejection is rendered with its own code.
    """
    admission = AdmissionRequest(
        kind=request.resource_kind,
        on_date=_parse_date_param(request.date),
        owner_id=current_user.owner_id,
        slots=tuple(request.slots),
        note=request.note,
        needs_supplies=request.needs_supplies,
        owner_display_name=current_user.display_name,
    )

    with submission_guard.hold(admission.key):
        policy = await asyncio.to_thread(CatalogService.get_policy, db, admission.kind)
        if policy.is_laboratory:
            reservation = await admit_with_retry(db, admission)
        else:
            reservation = await asyncio.to_thread(admission.admit, db)

    return ReservationResponse.from_model(reservation)


@router.get("/reservations/mine", summary="List the current user's reservations")
async def list_my_reservations(
    since: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to two days ago"),
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReservationListResponse:
    since_date = _parse_date_param(since) if since else None
    reservations = await asyncio.to_thread(list_owner_reservations, db, current_user.owner_id, since_date)
    return ReservationListResponse(
        reservations=[ReservationResponse.from_model(r) for r in reservations]
    )


@router.get("/reservations/board", summary="List every reservation of a date")
async def get_reservation_board(
    date: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to the next working day"),
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReservationListResponse:
    """Daily board; on weekends it shows the following Monday."""
    on_date = _parse_date_param(date) if date else next_action_date(institution_today())
    reservations = await asyncio.to_thread(list_for_date, db, on_date)
    return ReservationListResponse(
        reservations=[ReservationResponse.from_model(r) for r in reservations],
        date=on_date,
    )


@router.get("/reservations/laboratories", summary="List upcoming laboratory reservations")
async def get_laboratory_reservations(
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReservationListResponse:
    reservations = await asyncio.to_thread(list_upcoming_laboratory_reservations, db)
    return ReservationListResponse(
        reservations=[ReservationResponse.from_model(r) for r in reservations]
    )


@router.delete(
    "/reservations/{reservation_id}",
    summary="Cancel a reservation",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def cancel_reservation(
    reservation_id: str,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Response:
    await asyncio.to_thread(
        CancellationService.cancel,
        db,
        reservation_id,
        current_user.owner_id,
        current_user.is_admin,
        current_user.display_name,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/admin/reservations", summary="List every reservation (administrators)")
async def list_all_reservations_admin(
    since: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to every date"),
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ReservationListResponse:
    since_date = _parse_date_param(since) if since else None
    reservations = await asyncio.to_thread(list_all_reservations, db, since_date)
    return ReservationListResponse(
        reservations=[ReservationResponse.from_model(r) for r in reservations]
    )


@router.delete(
    "/admin/reservations/{reservation_id}",
    summary="Cancel any reservation (administrator override)",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def admin_cancel_reservation(
    reservation_id: str,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Response:
    logger.info(f"Admin {current_user.owner_id} cancelling reservation {reservation_id}")
    await asyncio.to_thread(CancellationService.admin_cancel, db, reservation_id, current_user.display_name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
