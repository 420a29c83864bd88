"""Reviewer activity endpoints."""

from fastapi import APIRouter, Depends

from clearance.api.deps import get_engine
from clearance.api.schemas.common import PageRequest, PaginatedResponse, page_request
from clearance.api.schemas.workflow import ReviewerStatisticsResponse, ReviewResponse
from clearance.core.workflow import WorkflowEngine

router = APIRouter(prefix="/reviewers", tags=["reviewers"])


@router.get("/{reviewer_id}/history", response_model=PaginatedResponse[ReviewResponse])
def get_reviewer_history(
    reviewer_id: str,
    engine: WorkflowEngine = Depends(get_engine),
    paging: PageRequest = Depends(page_request),
):
    """Approvals and rejections made by a reviewer, newest first."""
    items, total = engine.reviewer_history(reviewer_id, offset=paging.offset, limit=paging.per_page)
    return PaginatedResponse.of([ReviewResponse.model_validate(r) for r in items], total, paging)


@router.get("/{reviewer_id}/statistics", response_model=ReviewerStatisticsResponse)
def get_reviewer_statistics(reviewer_id: str, engine: WorkflowEngine = Depends(get_engine)):
    return ReviewerStatisticsResponse.model_validate(engine.reviewer_statistics(reviewer_id))
