"""In-app notifications and outbound webhooks for workflow events.

``NotificationService`` stores inbox entries for people and reviewer queues,
tracks read state, and records a pending delivery for every webhook subscribed
to an event. Posting a delivery is a separate step so it can run away from the
request that raised the event, on a worker thread or a Celery worker.
"""

import base64
import json
import logging
import time
import uuid
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import httpx
from jinja2 import Template, TemplateError
from sqlalchemy import and_, func, select, update, delete
from sqlalchemy.orm import Session, sessionmaker

from clearance.core.config import Settings, get_settings
from clearance.core.workflow.errors import NotFoundError, ValidationError
from clearance.core.workflow.events import NotificationEventType, NotificationSeverity
from clearance.db.base import utcnow
from clearance.db.models.notification import Notification, Webhook, WebhookDelivery

logger = logging.getLogger(__name__)

WEBHOOK_METHODS = ("POST", "PUT")
WEBHOOK_AUTH_SCHEMES = ("bearer", "basic", "header")


@dataclass(frozen=True)
class WebhookRequest:
    """A delivery resolved to plain values, postable without a database session."""

    delivery_id: UUID
    webhook_name: str
    method: str
    url: str
    headers: Dict[str, str]
    payload: Dict[str, Any]


def post_webhook(request: WebhookRequest, timeout: float) -> None:
    with httpx.Client(timeout=timeout) as client:
        response = client.request(request.method, request.url, json=request.payload, headers=request.headers)
        response.raise_for_status()


def attempt_delivery(request: WebhookRequest, settings: Settings) -> Tuple[int, Optional[str]]:
    """
    Post a webhook request, pausing longer after each failed attempt.

    Returns:
        Attempts made, and the last error or None when an attempt succeeded
    """
    max_attempts = settings.webhook_max_retries
    error = None
    for attempt in range(1, max_attempts + 1):
        try:
            post_webhook(request, settings.webhook_timeout)
            return attempt, None
        except httpx.HTTPError as e:
            error = str(e)
            logger.warning(f"Webhook {request.webhook_name} attempt {attempt}/{max_attempts} failed: {e}")
        if attempt < max_attempts and settings.webhook_retry_backoff:
            time.sleep(settings.webhook_retry_backoff * attempt)
    return max_attempts, error


class NotificationService:
    """Inbox and webhook operations over one database session."""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def deliver(
        self,
        recipient_id: str,
        title: str,
        message: str,
        severity: str = NotificationSeverity.INFO.value,
        metadata: Optional[Dict[str, Any]] = None,
        notification_id: Optional[UUID] = None,
    ) -> Notification:
        """
        Store a workflow notification and post it to subscribed webhooks.

        Repeating a call with the same ``notification_id`` stores nothing new
        and posts only the deliveries still pending.

        Returns:
            The stored notification
        """
        notification, deliveries = self.record(
            recipient_id, title, message, severity, metadata, notification_id=notification_id,
        )
        for delivery in deliveries:
            self.send_delivery(delivery)
        return notification

    def record(
        self,
        recipient_id: str,
        title: str,
        message: str,
        severity: str = NotificationSeverity.INFO.value,
        metadata: Optional[Dict[str, Any]] = None,
        notification_id: Optional[UUID] = None,
    ) -> Tuple[Notification, List[WebhookDelivery]]:
        """
        Store a workflow notification with a pending delivery per subscribed webhook.

        Both are committed together. When ``notification_id`` is already
        stored, the existing notification is returned instead.

        Returns:
            The notification and its deliveries still waiting to be posted
        """
        if notification_id is not None:
            existing = self.db.get(Notification, notification_id)
            if existing is not None:
                logger.info(f"Notification {notification_id} already stored, resuming its deliveries")
                return existing, self.pending_deliveries(existing.id)

        metadata = dict(metadata or {})
        event_type = metadata.get("type")
        notification = self._add_notification(
            recipient_id, title, message, severity, event_type, metadata, notification_id,
        )

        deliveries: List[WebhookDelivery] = []
        if event_type:
            context = {
                "recipient_id": recipient_id,
                "title": title,
                "message": message,
                "severity": severity,
                **metadata,
            }
            deliveries = self._queue_deliveries(event_type, context, notification.id)

        self.db.commit()
        return notification, deliveries

    # In-app notifications

    def create_notification(
        self,
        recipient_id: str,
        title: str,
        message: str,
        severity: str = NotificationSeverity.INFO.value,
        event_type: Optional[str] = None,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = self._add_notification(recipient_id, title, message, severity, event_type, extra_data)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def _add_notification(
        self,
        recipient_id: str,
        title: str,
        message: str,
        severity: str,
        event_type: Optional[str],
        extra_data: Optional[Dict[str, Any]],
        notification_id: Optional[UUID] = None,
    ) -> Notification:
        if severity not in {s.value for s in NotificationSeverity}:
            raise ValidationError(f"Unknown notification severity: {severity}", field="severity")

        notification = Notification(
            id=notification_id or uuid.uuid4(),
            recipient_id=recipient_id,
            title=title,
            message=message,
            severity=severity,
            event_type=event_type,
            extra_data=extra_data or {},
            is_read=False,
            created_at=utcnow(),
        )
        self.db.add(notification)
        return notification

    def list_for_recipient(
        self,
        recipient_id: str,
        unread_only: bool = False,
        offset: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Notification], int]:
        """Notifications for a recipient, newest first, with the unpaginated total."""
        filters = [Notification.recipient_id == recipient_id]
        if unread_only:
            filters.append(Notification.is_read == False)  # noqa: E712

        total = self.db.execute(
            select(func.count()).select_from(Notification).where(and_(*filters))
        ).scalar_one()
        items = self.db.execute(
            select(Notification)
            .where(and_(*filters))
            .order_by(Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return list(items), total

    def unread_count(self, recipient_id: str) -> int:
        return self.db.execute(
            select(func.count()).select_from(Notification).where(
                and_(Notification.recipient_id == recipient_id, Notification.is_read == False)  # noqa: E712
            )
        ).scalar_one()

    def mark_as_read(self, notification_id: UUID) -> Notification:
        notification = self.db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError(
                f"Notification {notification_id} not found",
                notification_id=str(notification_id),
            )
        if not notification.is_read:
            notification.is_read = True
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, recipient_id: str) -> int:
        """Mark every unread notification of a recipient as read.

        Returns:
            Number of notifications updated
        """
        result = self.db.execute(
            update(Notification)
            .where(and_(Notification.recipient_id == recipient_id, Notification.is_read == False))  # noqa: E712
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount

    def cleanup_old_notifications(self, days: Optional[int] = None) -> int:
        """Delete read notifications older than the retention period.

        Returns:
            Number of notifications deleted
        """
        days = self.settings.notification_retention_days if days is None else days
        cutoff = utcnow() - timedelta(days=days)
        result = self.db.execute(
            delete(Notification)
            .where(and_(Notification.is_read == True, Notification.created_at < cutoff))  # noqa: E712
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"Deleted {result.rowcount} read notifications older than {days} days")
        return result.rowcount

    # Webhook subscriptions

    def list_webhooks(self, active_only: bool = False) -> List[Webhook]:
        query = select(Webhook).order_by(Webhook.created_at.asc())
        if active_only:
            query = query.where(Webhook.is_active == True)  # noqa: E712
        return list(self.db.execute(query).scalars().all())

    def create_webhook(
        self,
        name: str,
        url: str,
        events: List[str],
        method: str = "POST",
        description: Optional[str] = None,
        auth_scheme: Optional[str] = None,
        auth_secret: Optional[str] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        payload_template: Optional[str] = None,
        is_active: bool = True,
    ) -> Webhook:
        """Subscribe an endpoint to workflow events.

        Raises:
            ValidationError: Unsupported method or auth scheme, or an unknown event type
        """
        method = (method or "POST").upper()
        if method not in WEBHOOK_METHODS:
            raise ValidationError(f"Unsupported webhook method: {method}", field="method")
        if auth_scheme and auth_scheme not in WEBHOOK_AUTH_SCHEMES:
            raise ValidationError(f"Unsupported webhook auth scheme: {auth_scheme}", field="auth_scheme")

        known = {e.value for e in NotificationEventType}
        unknown = sorted(set(events) - known)
        if not events or unknown:
            raise ValidationError(
                f"Unknown event types: {', '.join(unknown)}" if unknown else "Subscribe to at least one event",
                field="events",
                unknown=unknown,
            )

        webhook = Webhook(
            name=name,
            description=description,
            url=url,
            method=method,
            auth_scheme=auth_scheme,
            auth_secret=auth_secret,
            extra_headers=extra_headers or {},
            events=list(dict.fromkeys(events)),
            payload_template=payload_template,
            is_active=is_active,
            consecutive_failures=0,
        )
        self.db.add(webhook)
        self.db.commit()
        self.db.refresh(webhook)
        logger.info(f"Webhook {webhook.name} subscribed to {', '.join(webhook.events)}")
        return webhook

    def delete_webhook(self, webhook_id: UUID) -> None:
        webhook = self.db.get(Webhook, webhook_id)
        if webhook is None:
            raise NotFoundError(f"Webhook {webhook_id} not found", webhook_id=str(webhook_id))
        self.db.delete(webhook)
        self.db.commit()
        logger.info(f"Webhook {webhook.name} removed")

    # Webhook delivery

    def dispatch_webhooks(self, event_type: str, context: Dict[str, Any]) -> List[WebhookDelivery]:
        """Deliver an event to every active webhook subscribed to it, waiting for each post."""
        deliveries = self._queue_deliveries(event_type, context)
        self.db.commit()
        return [self.send_delivery(delivery) for delivery in deliveries]

    def pending_deliveries(self, notification_id: UUID) -> List[WebhookDelivery]:
        return list(self.db.execute(
            select(WebhookDelivery)
            .where(and_(
                WebhookDelivery.notification_id == notification_id,
                WebhookDelivery.status == "pending",
            ))
            .order_by(WebhookDelivery.created_at.asc())
        ).scalars().all())

    def build_request(self, delivery: WebhookDelivery) -> WebhookRequest:
        webhook = delivery.webhook
        headers = {**(webhook.extra_headers or {}), **self._auth_headers(webhook)}
        headers["Content-Type"] = "application/json"
        return WebhookRequest(
            delivery_id=delivery.id,
            webhook_name=webhook.name,
            method=webhook.method or "POST",
            url=webhook.url,
            headers=headers,
            payload=dict(delivery.payload or {}),
        )

    def send_delivery(self, delivery: WebhookDelivery) -> WebhookDelivery:
        """Post one pending delivery with retries and record the outcome."""
        if delivery.webhook is None:
            return self.record_outcome(delivery.id, 0, "Webhook was removed before delivery")
        attempts, error = attempt_delivery(self.build_request(delivery), self.settings)
        return self.record_outcome(delivery.id, attempts, error)

    def record_outcome(self, delivery_id: UUID, attempts: int, error: Optional[str]) -> WebhookDelivery:
        """Mark a delivery delivered or failed and update its webhook's health."""
        delivery = self.db.get(WebhookDelivery, delivery_id)
        if delivery is None:
            raise NotFoundError(f"Webhook delivery {delivery_id} not found", delivery_id=str(delivery_id))

        webhook = delivery.webhook
        delivery.attempts = (delivery.attempts or 0) + attempts
        if error is None:
            delivery.status = "delivered"
            delivery.delivered_at = utcnow()
            if webhook is not None:
                webhook.last_delivered_at = delivery.delivered_at
                webhook.consecutive_failures = 0
                webhook.last_error = None
        else:
            logger.error(f"Giving up on {delivery.event_type} delivery {delivery_id} after {attempts} attempts: {error}")
            delivery.status = "failed"
            delivery.error = error
            if webhook is not None:
                webhook.consecutive_failures = (webhook.consecutive_failures or 0) + 1
                webhook.last_error = error

        self.db.commit()
        return delivery

    def _queue_deliveries(
        self,
        event_type: str,
        context: Dict[str, Any],
        notification_id: Optional[UUID] = None,
    ) -> List[WebhookDelivery]:
        deliveries = []
        for webhook in self.list_webhooks(active_only=True):
            if not webhook.subscribes_to(event_type):
                continue
            delivery = WebhookDelivery(
                id=uuid.uuid4(),
                webhook_id=webhook.id,
                notification_id=notification_id,
                event_type=event_type,
                payload=self._render_payload(webhook, event_type, context),
                status="pending",
                attempts=0,
                created_at=utcnow(),
            )
            self.db.add(delivery)
            deliveries.append(delivery)
        return deliveries

    def _render_payload(self, webhook: Webhook, event_type: str, context: Dict[str, Any]) -> Dict[str, Any]:
        """Webhook body: the rendered template, or the standard event envelope."""
        if webhook.payload_template:
            try:
                rendered = Template(webhook.payload_template).render(event_type=event_type, **context)
                return json.loads(rendered)
            except (TemplateError, ValueError) as e:
                logger.warning(f"Payload template of webhook {webhook.name} is unusable, sending the envelope: {e}")
        return {
            "event": event_type,
            "timestamp": utcnow().isoformat(),
            "source": self.settings.app_name,
            "data": context,
        }

    def _auth_headers(self, webhook: Webhook) -> Dict[str, str]:
        secret = webhook.auth_secret or ""
        if webhook.auth_scheme == "bearer":
            return {"Authorization": f"Bearer {secret}"}
        if webhook.auth_scheme == "basic":
            return {"Authorization": "Basic " + base64.b64encode(secret.encode()).decode()}
        if webhook.auth_scheme == "header":
            # secret is {"name": ..., "value": ...}
            try:
                header = json.loads(secret)
                return {header["name"]: header["value"]}
            except (ValueError, KeyError, TypeError):
                logger.warning(f"Webhook {webhook.name} has a malformed header secret")
        return {}


class DatabaseNotificationSink:
    """
    Notification sink that stores notifications inline and posts webhooks on a thread pool.

    The inbox entry and its pending deliveries are committed before ``notify``
    returns. Only the HTTP calls run on the pool, each with its own session
    for recording the outcome.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Optional[Settings] = None,
        executor: Optional[Executor] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.webhook_workers,
            thread_name_prefix="clearance-webhook",
        )

    def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        severity: str,
        metadata: Dict[str, Any],
    ) -> None:
        db = self.session_factory()
        try:
            service = NotificationService(db, self.settings)
            _, deliveries = service.record(recipient_id, title, message, severity, metadata)
            requests = [service.build_request(delivery) for delivery in deliveries]
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        for request in requests:
            self.executor.submit(self._post_and_record, request)

    def _post_and_record(self, request: WebhookRequest) -> None:
        attempts, error = attempt_delivery(request, self.settings)
        db = self.session_factory()
        try:
            NotificationService(db, self.settings).record_outcome(request.delivery_id, attempts, error)
        except Exception:
            db.rollback()
            logger.exception(f"Could not record delivery {request.delivery_id} to webhook {request.webhook_name}")
        finally:
            db.close()
