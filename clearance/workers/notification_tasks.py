"""Celery tasks for notification delivery.

Provides async task processing for:
- Workflow notifications (in-app store plus webhooks)
- Periodic cleanup of old read notifications
"""

from typing import Any, Dict, Optional
import logging
import uuid
from uuid import UUID

from celery import Celery, shared_task
from celery.schedules import crontab
from sqlalchemy.exc import OperationalError

from clearance.core.config import Settings, get_settings
from clearance.db.session import get_session_factory
from clearance.services.notifications import NotificationService

logger = logging.getLogger(__name__)
settings = get_settings()

# Initialize Celery
celery_app = Celery(
    'clearance',
    broker=settings.celery_broker,
    backend=settings.celery_backend,
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_routes={
        'clearance.workers.notification_tasks.deliver_notification': {'queue': 'notifications'},
    },
    task_default_queue='default',
    beat_schedule={
        'cleanup-notifications-daily': {
            'task': 'clearance.workers.notification_tasks.cleanup_notifications',
            'schedule': crontab(hour=3, minute=0),
        },
    },
)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def deliver_notification(
    self,
    recipient_id: str,
    title: str,
    message: str,
    severity: str,
    metadata: Optional[Dict[str, Any]] = None,
    notification_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Async task to store a notification and fan it out to webhooks.

    Args:
        recipient_id: Person id or reviewer scope
        title: Notification title
        message: Notification body
        severity: info, success, warning or error
        metadata: Event payload, including its ``type``
        notification_id: Id to store the notification under; a retried
            task finds it and posts only the deliveries still pending

    Returns:
        Stored notification summary
    """
    db = get_session_factory()()
    try:
        notification = NotificationService(db).deliver(
            recipient_id,
            title,
            message,
            severity,
            metadata,
            notification_id=UUID(notification_id) if notification_id else None,
        )
        logger.info(f"Delivered {notification.event_type} notification to {recipient_id}")
        return {"id": str(notification.id), "recipient_id": recipient_id}

    except OperationalError as e:
        db.rollback()
        logger.warning(f"Transient failure delivering notification to {recipient_id}: {e}")
        raise self.retry(exc=e)

    except Exception:
        db.rollback()
        logger.exception(f"Notification delivery failed for {recipient_id}")
        raise

    finally:
        db.close()


@shared_task
def cleanup_notifications(days: Optional[int] = None) -> Dict[str, Any]:
    """
    Periodic task deleting read notifications past the retention period.

    Args:
        days: Retention override in days

    Returns:
        Cleanup summary
    """
    db = get_session_factory()()
    try:
        deleted = NotificationService(db).cleanup_old_notifications(days)
        return {"deleted": deleted}
    finally:
        db.close()


class CeleryNotificationSink:
    """Notification sink that queues delivery on the Celery worker."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        severity: str,
        metadata: Dict[str, Any],
    ) -> None:
        deliver_notification.delay(
            recipient_id,
            title,
            message,
            severity,
            dict(metadata or {}),
            notification_id=str(uuid.uuid4()),
        )
