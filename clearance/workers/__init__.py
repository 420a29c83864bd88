"""Celery workers for the clearance service."""

from clearance.workers.notification_tasks import (
    celery_app,
    deliver_notification,
    cleanup_notifications,
    CeleryNotificationSink,
)

__all__ = [
    "celery_app",
    "deliver_notification",
    "cleanup_notifications",
    "CeleryNotificationSink",
]
