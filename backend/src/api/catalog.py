# pyright: reportMissingTypeStubs=false
"""
Resource catalog and notification recipient API endpoints.

Listing kinds is open to every authenticated user; everything that changes
the catalog or the recipient list requires an administrator.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.responses import (
    DeleteKindResponse,
    NotificationRecipientListResponse,
    NotificationRecipientResponse,
    ResourceKindListResponse,
    ResourceKindResponse,
)
from auth.dependencies import UserContext, get_current_user, require_admin
from core.database import get_db
from services.catalog_service import CatalogService
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class LaboratoryCreateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=61)
    display_name: str = Field(..., min_length=1, max_length=255)
    is_active: bool = True


class ResourceKindUpdateRequest(BaseModel):
    """Fields left out are not changed."""
    display_name: Optional[str] = Field(None, max_length=255)
    capacity_per_day: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class NotificationRecipientCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


# ===== Catalog =====

@router.get("/catalog/kinds", summary="List resource kinds")
async def list_resource_kinds(
    active_only: bool = Query(False),
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ResourceKindListResponse:
    if active_only:
        policies = await asyncio.to_thread(CatalogService.list_active_kinds, db)
    else:
        policies = await asyncio.to_thread(CatalogService.list_kinds, db)
    return ResourceKindListResponse(kinds=[ResourceKindResponse.from_policy(p) for p in policies])


@router.post(
    "/admin/catalog/laboratories",
    summary="Register a laboratory",
    status_code=status.HTTP_201_CREATED,
)
async def register_laboratory(
    request: LaboratoryCreateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ResourceKindResponse:
    policy = await asyncio.to_thread(
        CatalogService.register_laboratory, db, request.code, request.display_name, request.is_active
    )
    logger.info(f"Admin {current_user.owner_id} registered laboratory {policy.kind}")
    return ResourceKindResponse.from_policy(policy)


@router.patch("/admin/catalog/kinds/{kind}", summary="Edit a resource kind")
async def update_resource_kind(
    kind: str,
    request: ResourceKindUpdateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ResourceKindResponse:
    policy = await asyncio.to_thread(
        CatalogService.update_kind,
        db,
        kind,
        request.display_name,
        request.capacity_per_day,
        request.is_active,
    )
    return ResourceKindResponse.from_policy(policy)


@router.delete("/admin/catalog/kinds/{kind}", summary="Delete a resource kind and its future reservations")
async def delete_resource_kind(
    kind: str,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> DeleteKindResponse:
    purged = await asyncio.to_thread(CatalogService.delete_kind_cascade, db, kind)
    logger.info(f"Admin {current_user.owner_id} deleted resource kind {kind}")
    return DeleteKindResponse(kind=kind, purged_reservations=purged)


# ===== Notification recipients =====

@router.get("/admin/notification-recipients", summary="List notification recipients")
async def list_notification_recipients(
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> NotificationRecipientListResponse:
    recipients = await asyncio.to_thread(NotificationService.list_recipients, db)
    return NotificationRecipientListResponse(recipients=[
        NotificationRecipientResponse(id=r.id, email=r.email, is_active=r.is_active)
        for r in recipients
    ])


@router.post(
    "/admin/notification-recipients",
    summary="Add a notification recipient",
    status_code=status.HTTP_201_CREATED,
)
async def add_notification_recipient(
    request: NotificationRecipientCreateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> NotificationRecipientResponse:
    recipient = await asyncio.to_thread(NotificationService.add_recipient, db, request.email)
    return NotificationRecipientResponse(id=recipient.id, email=recipient.email, is_active=recipient.is_active)


@router.delete(
    "/admin/notification-recipients/{recipient_id}",
    summary="Deactivate a notification recipient",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_notification_recipient(
    recipient_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Response:
    removed = await asyncio.to_thread(NotificationService.deactivate_recipient, db, recipient_id)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipient not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
