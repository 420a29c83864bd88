"""Stage catalog, submission and reviewer queue endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, status

from clearance.api.deps import get_catalog, get_engine, get_projector
from clearance.api.schemas.common import PageRequest, PaginatedResponse, page_request
from clearance.api.schemas.workflow import (
    StageResponse,
    StageStatisticsResponse,
    SubmissionResponse,
    SubmitRequest,
    SubmitResponse,
)
from clearance.core.workflow import DocumentRef, ProgressProjector, StageCatalog, SubmissionStatus, WorkflowEngine

router = APIRouter(prefix="/stages", tags=["stages"])


@router.get("", response_model=List[StageResponse])
def list_stages(catalog: StageCatalog = Depends(get_catalog)):
    """List clearance stages in display order."""
    return [StageResponse.from_stage(stage) for stage in catalog.stages()]


@router.get("/{stage_id}", response_model=StageResponse)
def get_stage(stage_id: str, catalog: StageCatalog = Depends(get_catalog)):
    """Get a stage by id or alias."""
    return StageResponse.from_stage(catalog.by_id(stage_id))


@router.post("/{stage_id}/submissions", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
def submit_documents(
    stage_id: str,
    body: SubmitRequest,
    engine: WorkflowEngine = Depends(get_engine),
):
    """
    Submit documents to a stage.

    Creates the submission, resubmits after a rejection or replaces the
    documents of a pending submission.
    """
    documents = [
        DocumentRef(file_name=doc.file_name, url=doc.url, media_type=doc.media_type)
        for doc in body.documents
    ]
    submission_id = engine.submit(body.person_id, stage_id, documents, body.submitter_scope)
    submission = engine.get_submission(submission_id)
    return SubmitResponse(submission_id=submission.id, status=submission.status, round=submission.round)


@router.get("/{stage_id}/submissions", response_model=PaginatedResponse[SubmissionResponse])
def list_stage_submissions(
    stage_id: str,
    engine: WorkflowEngine = Depends(get_engine),
    status: Optional[SubmissionStatus] = None,
    scope: Optional[str] = None,
    paging: PageRequest = Depends(page_request),
):
    """Reviewer queue for a stage, oldest first."""
    records, total = engine.list_stage_submissions(
        stage_id,
        status=status,
        scope=scope,
        offset=paging.offset,
        limit=paging.per_page,
    )
    return PaginatedResponse.of([SubmissionResponse.model_validate(r) for r in records], total, paging)


@router.get("/{stage_id}/statistics", response_model=StageStatisticsResponse)
def get_stage_statistics(
    stage_id: str,
    scope: Optional[str] = None,
    projector: ProgressProjector = Depends(get_projector),
):
    """Submission counts per status for a stage."""
    return StageStatisticsResponse.model_validate(projector.statistics(stage_id, scope=scope))
