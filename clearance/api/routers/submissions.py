"""Submission review endpoints."""

from typing import List

from fastapi import APIRouter, Depends

from clearance.api.deps import get_engine
from clearance.api.schemas.workflow import (
    ApprovalResponse,
    ApproveRequest,
    HistoryResponse,
    RejectRequest,
    SubmissionResponse,
)
from clearance.core.workflow import WorkflowEngine

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.get("/{submission_id}", response_model=SubmissionResponse)
def get_submission(submission_id: str, engine: WorkflowEngine = Depends(get_engine)):
    """Get a submission with its documents."""
    return SubmissionResponse.model_validate(engine.get_submission(submission_id))


@router.get("/{submission_id}/history", response_model=List[HistoryResponse])
def get_submission_history(submission_id: str, engine: WorkflowEngine = Depends(get_engine)):
    """Get the recorded transitions of a submission, oldest first."""
    return [HistoryResponse.model_validate(entry) for entry in engine.submission_history(submission_id)]


@router.post("/{submission_id}/approve", response_model=ApprovalResponse)
def approve_submission(
    submission_id: str,
    body: ApproveRequest,
    engine: WorkflowEngine = Depends(get_engine),
):
    """Approve a pending submission."""
    result = engine.approve(submission_id, body.reviewer_id, body.comment)
    return ApprovalResponse(
        case_complete=result.case_complete,
        overall_percentage=result.overall_percentage,
        submission=SubmissionResponse.model_validate(result.submission),
    )


@router.post("/{submission_id}/reject", response_model=SubmissionResponse)
def reject_submission(
    submission_id: str,
    body: RejectRequest,
    engine: WorkflowEngine = Depends(get_engine),
):
    """Reject a pending submission with a reason."""
    return SubmissionResponse.model_validate(engine.reject(submission_id, body.reviewer_id, body.reason))
