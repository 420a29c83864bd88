"""Inbox and webhook schemas."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import Field

from clearance.api.schemas.common import CamelModel


class NotificationResponse(CamelModel):
    id: UUID
    recipient_id: str
    title: str
    message: str
    severity: str
    event_type: Optional[str] = None
    extra_data: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool
    created_at: datetime


class UnreadCountResponse(CamelModel):
    recipient_id: str
    count: int


class MarkAllReadResponse(CamelModel):
    recipient_id: str
    updated: int


class WebhookCreate(CamelModel):
    """A new subscription. ``authSecret`` is write-only."""

    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1)
    events: List[str] = Field(..., min_length=1)
    description: Optional[str] = None
    method: Literal["POST", "PUT"] = "POST"
    auth_scheme: Optional[Literal["bearer", "basic", "header"]] = None
    auth_secret: Optional[str] = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    payload_template: Optional[str] = None
    is_active: bool = True


class WebhookResponse(CamelModel):
    id: UUID
    name: str
    url: str
    events: List[str]
    description: Optional[str] = None
    method: str
    auth_scheme: Optional[str] = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    payload_template: Optional[str] = None
    is_active: bool
    last_delivered_at: Optional[datetime] = None
    last_error: Optional[str] = None
    consecutive_failures: int = 0
    created_at: datetime
