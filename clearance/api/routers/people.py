"""Per-person clearance case and notification endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clearance.api.deps import get_app_settings, get_db, get_projector
from clearance.api.schemas.common import PageRequest, PaginatedResponse, page_request
from clearance.api.schemas.notifications import (
    MarkAllReadResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from clearance.api.schemas.workflow import CaseResponse
from clearance.core.config import Settings
from clearance.core.workflow import ProgressProjector
from clearance.services.notifications import NotificationService

router = APIRouter(prefix="/people", tags=["people"])


@router.get("/{person_id}/case", response_model=CaseResponse)
def get_case(person_id: str, projector: ProgressProjector = Depends(get_projector)):
    """Clearance progress of a person across every stage."""
    return CaseResponse.model_validate(projector.status(person_id))


@router.get("/{person_id}/notifications", response_model=PaginatedResponse[NotificationResponse])
def list_notifications(
    person_id: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    unread_only: bool = False,
    paging: PageRequest = Depends(page_request),
):
    """List a person's notifications, newest first."""
    items, total = NotificationService(db, settings).list_for_recipient(
        person_id,
        unread_only=unread_only,
        offset=paging.offset,
        limit=paging.per_page,
    )
    return PaginatedResponse.of([NotificationResponse.model_validate(n) for n in items], total, paging)


@router.get("/{person_id}/notifications/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    person_id: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    return UnreadCountResponse(
        recipient_id=person_id,
        count=NotificationService(db, settings).unread_count(person_id),
    )


@router.post("/{person_id}/notifications/read-all", response_model=MarkAllReadResponse)
def mark_all_read(
    person_id: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Mark every unread notification of a person as read."""
    return MarkAllReadResponse(
        recipient_id=person_id,
        updated=NotificationService(db, settings).mark_all_as_read(person_id),
    )
