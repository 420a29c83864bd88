"""Immutable value records passed between the store, engine and API."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from .states import SubmissionStatus


@dataclass(frozen=True)
class DocumentRef:
    """Reference to an uploaded document; storage is handled upstream."""

    file_name: str
    url: str
    media_type: str
    uploaded_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "url": self.url,
            "media_type": self.media_type,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentRef":
        uploaded_at = data.get("uploaded_at")
        if isinstance(uploaded_at, str):
            uploaded_at = datetime.fromisoformat(uploaded_at)
        return cls(
            file_name=data.get("file_name", ""),
            url=data.get("url", ""),
            media_type=data.get("media_type", ""),
            uploaded_at=uploaded_at,
        )


@dataclass(frozen=True)
class SubmissionRecord:
    """Snapshot of one stored submission."""

    id: UUID
    person_id: str
    stage_id: str
    status: SubmissionStatus
    documents: Tuple[DocumentRef, ...] = ()
    scope: Optional[str] = None
    round: int = 1
    version: int = 1
    reviewer_id: Optional[str] = None
    reviewer_comment: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class HistoryRecord:
    """One recorded transition of a submission."""

    id: UUID
    submission_id: UUID
    from_status: str
    to_status: str
    action: str
    round: int
    actor_id: Optional[str] = None
    comment: Optional[str] = None
    extra_data: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ApprovalResult:
    """Outcome of an approval.

    ``case_complete`` is true only for the approval that completed the case,
    so callers can trigger certificate generation once.
    """

    submission: SubmissionRecord
    case_complete: bool
    overall_percentage: int


@dataclass(frozen=True)
class ReviewRecord:
    """One approve or reject decision, as seen from the reviewer's side."""

    history_id: UUID
    submission_id: UUID
    person_id: str
    stage_id: str
    action: str
    status: str
    round: int
    scope: Optional[str] = None
    comment: Optional[str] = None
    reviewed_at: Optional[datetime] = None


@dataclass(frozen=True)
class ReviewerStatistics:
    reviewer_id: str
    approved: int
    rejected: int
    approved_today: int
    rejected_today: int

    @property
    def total(self) -> int:
        return self.approved + self.rejected
