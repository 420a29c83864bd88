"""Notification endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clearance.api.deps import get_app_settings, get_db
from clearance.api.schemas.notifications import NotificationResponse
from clearance.core.config import Settings
from clearance.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Mark a single notification as read."""
    return NotificationResponse.model_validate(NotificationService(db, settings).mark_as_read(notification_id))
