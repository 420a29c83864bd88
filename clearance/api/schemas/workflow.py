"""Request and response schemas for stages, submissions and cases."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field

from clearance.api.schemas.common import CamelModel
from clearance.core.workflow.catalog import Stage
from clearance.core.workflow.states import SubmissionStatus


class StageResponse(CamelModel):
    id: str
    display_name: str
    order: int
    prerequisites: List[str]
    scope_required: bool
    aliases: List[str]
    description: Optional[str] = None

    @classmethod
    def from_stage(cls, stage: Stage) -> "StageResponse":
        return cls(
            id=stage.id,
            display_name=stage.display_name,
            order=stage.order,
            prerequisites=sorted(stage.prerequisites),
            scope_required=stage.scope_required,
            aliases=list(stage.aliases),
            description=stage.description,
        )


class DocumentIn(CamelModel):
    file_name: str = ""
    url: str = Field(..., min_length=1)
    media_type: str = ""


class DocumentOut(CamelModel):
    file_name: str
    url: str
    media_type: str
    uploaded_at: Optional[datetime] = None


class SubmitRequest(CamelModel):
    person_id: str
    documents: List[DocumentIn] = Field(default_factory=list)
    submitter_scope: Optional[str] = None


class SubmitResponse(CamelModel):
    submission_id: UUID
    status: SubmissionStatus
    round: int


class SubmissionResponse(CamelModel):
    id: UUID
    person_id: str
    stage_id: str
    status: SubmissionStatus
    documents: List[DocumentOut]
    scope: Optional[str] = None
    round: int
    reviewer_id: Optional[str] = None
    reviewer_comment: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HistoryResponse(CamelModel):
    id: UUID
    submission_id: UUID
    from_status: str
    to_status: str
    action: str
    round: int
    actor_id: Optional[str] = None
    comment: Optional[str] = None
    extra_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class ApproveRequest(CamelModel):
    reviewer_id: str
    comment: Optional[str] = None


class RejectRequest(CamelModel):
    reviewer_id: str
    reason: str = ""


class ApprovalResponse(CamelModel):
    case_complete: bool
    overall_percentage: int
    submission: SubmissionResponse


class StageProgressResponse(CamelModel):
    stage_id: str
    display_name: str
    order: int
    status: SubmissionStatus
    can_submit: bool
    scope_required: bool
    submission_id: Optional[UUID] = None
    round: Optional[int] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewer_id: Optional[str] = None
    comment: Optional[str] = None


class CaseResponse(CamelModel):
    person_id: str
    stages: List[StageProgressResponse]
    approved_count: int
    total_stages: int
    overall_percentage: int
    is_complete: bool
    can_access_final_forms: bool


class StageStatisticsResponse(CamelModel):
    stage_id: str
    scope: Optional[str] = None
    total: int
    pending: int
    approved: int
    rejected: int


class ReviewResponse(CamelModel):
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


class ReviewerStatisticsResponse(CamelModel):
    reviewer_id: str
    total: int
    approved: int
    rejected: int
    approved_today: int
    rejected_today: int
