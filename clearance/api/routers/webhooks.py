"""Webhook configuration endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from clearance.api.deps import get_app_settings, get_db
from clearance.api.schemas.notifications import WebhookCreate, WebhookResponse
from clearance.core.config import Settings
from clearance.services.notifications import NotificationService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("", response_model=List[WebhookResponse])
def list_webhooks(
    active_only: bool = False,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """List configured webhooks."""
    webhooks = NotificationService(db, settings).list_webhooks(active_only=active_only)
    return [WebhookResponse.model_validate(w) for w in webhooks]


@router.post("", response_model=WebhookResponse, status_code=status.HTTP_201_CREATED)
def create_webhook(
    body: WebhookCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Create a webhook subscribed to workflow events."""
    webhook = NotificationService(db, settings).create_webhook(**body.model_dump())
    return WebhookResponse.model_validate(webhook)


@router.delete("/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_webhook(
    webhook_id: UUID,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    NotificationService(db, settings).delete_webhook(webhook_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
