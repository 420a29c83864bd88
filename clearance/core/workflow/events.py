"""Notification seam between the workflow engine and delivery.

The engine only builds :class:`WorkflowNotification` values and hands them to
a :class:`NotificationSink` after the state transition has committed. The
severity and event-type vocabularies live here so the persistence layer
depends on the workflow, never the other way round.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class NotificationSeverity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationEventType(str, Enum):
    """Workflow events a notification or webhook can carry."""
    SUBMISSION_RECEIVED = "submission_received"
    SUBMISSION_RESUBMITTED = "submission_resubmitted"
    SUBMISSION_UPDATED = "submission_updated"
    DOCUMENTS_RECEIVED = "documents_received"
    STAGE_APPROVED = "stage_approved"
    STAGE_REJECTED = "stage_rejected"
    CASE_COMPLETED = "case_completed"


class NotificationSink(Protocol):
    """Receives workflow events for delivery. Fire-and-forget."""

    def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        severity: str,
        metadata: Dict[str, Any],
    ) -> None:
        ...


class NullNotificationSink:
    """Discards notifications; used when delivery is switched off."""

    def notify(self, recipient_id, title, message, severity, metadata) -> None:
        logger.debug("Dropping notification %r for %s", title, recipient_id)


@dataclass(frozen=True)
class WorkflowNotification:
    """A notification the engine wants delivered after a commit."""

    recipient_id: str
    title: str
    message: str
    severity: NotificationSeverity
    event_type: NotificationEventType
    metadata: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        return {"type": self.event_type.value, **self.metadata}


def reviewer_recipient(stage_id: str, scope: Optional[str] = None) -> str:
    """Recipient id addressing every reviewer of a stage (and scope)."""
    if scope:
        return f"reviewers:{stage_id}:{scope}"
    return f"reviewers:{stage_id}"
