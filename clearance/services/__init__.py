"""Services for the clearance workflow."""

from clearance.services.notifications import NotificationService, DatabaseNotificationSink

__all__ = [
    "NotificationService",
    "DatabaseNotificationSink",
]
