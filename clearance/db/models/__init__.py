"""Database models for the clearance service."""

from clearance.db.models.submission import Submission, SubmissionHistory, CaseCompletion
from clearance.db.models.notification import (
    Notification,
    NotificationSeverity,
    NotificationEventType,
    Webhook,
    WebhookDelivery,
)

__all__ = [
    "Submission",
    "SubmissionHistory",
    "CaseCompletion",
    "Notification",
    "NotificationSeverity",
    "NotificationEventType",
    "Webhook",
    "WebhookDelivery",
]
