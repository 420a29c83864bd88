"""Factory functions for creating test records.

Each database factory creates a model instance, adds it to the session and
commits, because the workflow store reads through its own sessions. All
fields have sensible defaults but can be overridden via keyword arguments.

Usage::

    from tests.factories import create_submission

    def test_something(db_session):
        submission = create_submission(db_session, person_id="p-1", stage_id="A")
        assert submission.status == "pending"
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from clearance.core.workflow import DocumentRef
from clearance.db.base import utcnow
from clearance.db.models import Notification, Submission, Webhook


_counter = 0


def _next_id() -> int:
    """Return a monotonically increasing integer for unique default values."""
    global _counter
    _counter += 1
    return _counter


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def make_document(name: Optional[str] = None) -> DocumentRef:
    name = name or f"document-{_next_id()}.pdf"
    return DocumentRef(
        file_name=name,
        url=f"https://files.example.edu/{name}",
        media_type="application/pdf",
    )


def document_payload(name: Optional[str] = None) -> Dict[str, str]:
    """Document as the HTTP API accepts it."""
    name = name or f"document-{_next_id()}.pdf"
    return {
        "fileName": name,
        "url": f"https://files.example.edu/{name}",
        "mediaType": "application/pdf",
    }


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


def create_submission(
    session: Session,
    *,
    person_id: Optional[str] = None,
    stage_id: str = "A",
    status: str = "pending",
    scope: Optional[str] = None,
    round: int = 1,
    documents: Optional[List[DocumentRef]] = None,
    reviewer_id: Optional[str] = None,
    reviewer_comment: Optional[str] = None,
    submitted_at: Optional[datetime] = None,
) -> Submission:
    now = utcnow()
    documents = documents or [make_document()]
    submission = Submission(
        id=uuid.uuid4(),
        person_id=person_id or f"person-{_next_id()}",
        stage_id=stage_id,
        status=status,
        scope=scope,
        round=round,
        version=1,
        documents=[d.to_dict() for d in documents],
        reviewer_id=reviewer_id,
        reviewer_comment=reviewer_comment,
        reviewed_at=now if status in ("approved", "rejected") else None,
        submitted_at=submitted_at or now,
        created_at=now,
        updated_at=now,
    )
    session.add(submission)
    session.commit()
    return submission


# ---------------------------------------------------------------------------
# Notification
# ---------------------------------------------------------------------------


def create_notification(
    session: Session,
    *,
    recipient_id: str = "person-1",
    title: Optional[str] = None,
    message: str = "Something happened",
    severity: str = "info",
    event_type: Optional[str] = "documents_received",
    is_read: bool = False,
    created_at: Optional[datetime] = None,
) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        title=title or f"Notification {_next_id()}",
        message=message,
        severity=severity,
        event_type=event_type,
        extra_data={},
        is_read=is_read,
        created_at=created_at or utcnow(),
    )
    session.add(notification)
    session.commit()
    return notification


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


def create_webhook(
    session: Session,
    *,
    name: Optional[str] = None,
    url: str = "https://hooks.example.edu/clearance",
    events: Optional[List[str]] = None,
    method: str = "POST",
    auth_scheme: Optional[str] = None,
    auth_secret: Optional[str] = None,
    extra_headers: Optional[Dict[str, str]] = None,
    payload_template: Optional[str] = None,
    is_active: bool = True,
) -> Webhook:
    webhook = Webhook(
        name=name or f"webhook-{_next_id()}",
        url=url,
        method=method,
        auth_scheme=auth_scheme,
        auth_secret=auth_secret,
        extra_headers=extra_headers or {},
        events=events if events is not None else ["stage_approved"],
        payload_template=payload_template,
        is_active=is_active,
        consecutive_failures=0,
    )
    session.add(webhook)
    session.commit()
    return webhook
