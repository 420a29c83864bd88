"""Person-facing progress view derived from stored submissions."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID

from .catalog import StageCatalog
from .gate import can_submit
from .states import SubmissionStatus
from .store import SubmissionStore


@dataclass(frozen=True)
class StageProgress:
    stage_id: str
    display_name: str
    order: int
    status: SubmissionStatus
    can_submit: bool
    scope_required: bool = False
    submission_id: Optional[UUID] = None
    round: Optional[int] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewer_id: Optional[str] = None
    comment: Optional[str] = None


@dataclass(frozen=True)
class CaseView:
    """Aggregate clearance state of one person."""

    person_id: str
    stages: Tuple[StageProgress, ...]
    approved_count: int
    total_stages: int
    overall_percentage: int
    is_complete: bool

    @property
    def can_access_final_forms(self) -> bool:
        return self.is_complete


@dataclass(frozen=True)
class StageStatistics:
    stage_id: str
    scope: Optional[str]
    total: int
    pending: int
    approved: int
    rejected: int


def completion_percentage(approved: int, total: int) -> int:
    """Percentage of approved stages, rounded half up (1/8 -> 13)."""
    if total <= 0:
        return 0
    return (200 * approved + total) // (2 * total)


class ProgressProjector:
    """
    Computes case views and stage statistics on demand.

    Reads are snapshots: a view taken during a concurrent transition may be
    one step behind. A person with no submissions gets an all not-started view.
    """

    def __init__(self, catalog: StageCatalog, store: SubmissionStore):
        self.catalog = catalog
        self.store = store

    def status(self, person_id: str) -> CaseView:
        records = {
            record.stage_id: record
            for record in self.store.list_for_person(person_id)
            if record.stage_id in self.catalog
        }
        statuses = {stage_id: record.status for stage_id, record in records.items()}

        stages = []
        for stage in self.catalog:
            record = records.get(stage.id)
            status = record.status if record else SubmissionStatus.NOT_STARTED
            stages.append(StageProgress(
                stage_id=stage.id,
                display_name=stage.display_name,
                order=stage.order,
                status=status,
                can_submit=status != SubmissionStatus.APPROVED and can_submit(statuses, stage),
                scope_required=stage.scope_required,
                submission_id=record.id if record else None,
                round=record.round if record else None,
                submitted_at=record.submitted_at if record else None,
                reviewed_at=record.reviewed_at if record else None,
                reviewer_id=record.reviewer_id if record else None,
                comment=record.reviewer_comment if record else None,
            ))

        approved = sum(1 for s in stages if s.status == SubmissionStatus.APPROVED)
        total = len(self.catalog)
        return CaseView(
            person_id=person_id,
            stages=tuple(stages),
            approved_count=approved,
            total_stages=total,
            overall_percentage=completion_percentage(approved, total),
            is_complete=approved == total,
        )

    def is_complete(self, person_id: str) -> bool:
        return self.status(person_id).is_complete

    def statistics(self, stage_id: str, scope: Optional[str] = None) -> StageStatistics:
        stage = self.catalog.by_id(stage_id)
        counts = self.store.count_by_status(stage.id, scope=scope)
        pending = counts.get(SubmissionStatus.PENDING, 0)
        approved = counts.get(SubmissionStatus.APPROVED, 0)
        rejected = counts.get(SubmissionStatus.REJECTED, 0)
        return StageStatistics(
            stage_id=stage.id,
            scope=scope,
            total=pending + approved + rejected,
            pending=pending,
            approved=approved,
            rejected=rejected,
        )
