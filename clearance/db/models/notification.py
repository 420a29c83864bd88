"""Notification inbox rows, webhook subscriptions and webhook delivery attempts."""

import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from clearance.core.workflow.events import NotificationEventType, NotificationSeverity
from clearance.db.base import Base, utcnow


class Notification(Base):
    """
    One inbox entry for a person or a reviewer queue.

    Reviewer queues are addressed as ``reviewers:<stage>`` or
    ``reviewers:<stage>:<scope>``.
    """
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id = Column(String(255), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    severity = Column(String(20), nullable=False, default=NotificationSeverity.INFO.value)

    # Workflow event that produced it and its metadata (stage, round, submission)
    event_type = Column(String(50), nullable=True, index=True)
    extra_data = Column(JSON, nullable=False, default=dict)

    is_read = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<Notification {self.title!r} to {self.recipient_id}>"


class Webhook(Base):
    """
    An external endpoint subscribed to workflow events, such as a registrar
    system waiting for completed cases or a chat room for reviewers.
    """
    __tablename__ = "webhooks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    url = Column(Text, nullable=False)
    method = Column(String(10), nullable=False, default="POST")
    auth_scheme = Column(String(20), nullable=True)  # bearer | basic | header
    auth_secret = Column(Text, nullable=True)
    extra_headers = Column(JSON, nullable=False, default=dict)

    events = Column(JSON, nullable=False, default=list)  # NotificationEventType values
    payload_template = Column(Text, nullable=True)  # Jinja2, must render to JSON

    is_active = Column(Boolean, nullable=False, default=True)
    last_delivered_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    consecutive_failures = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    deliveries = relationship("WebhookDelivery", back_populates="webhook", passive_deletes=True)

    def subscribes_to(self, event_type: str) -> bool:
        return event_type in (self.events or [])

    def __repr__(self) -> str:
        return f"<Webhook {self.name}>"


class WebhookDelivery(Base):
    """One event sent to one webhook, with every retry counted in ``attempts``."""
    __tablename__ = "webhook_deliveries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    webhook_id = Column(Uuid, ForeignKey("webhooks.id", ondelete="SET NULL"), nullable=True, index=True)
    notification_id = Column(Uuid, ForeignKey("notifications.id", ondelete="SET NULL"), nullable=True, index=True)
    event_type = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=True)

    status = Column(String(20), nullable=False, default="pending")  # pending | delivered | failed
    attempts = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    delivered_at = Column(DateTime, nullable=True)

    webhook = relationship("Webhook", back_populates="deliveries")

    def __repr__(self) -> str:
        return f"<WebhookDelivery {self.event_type} {self.status}>"
