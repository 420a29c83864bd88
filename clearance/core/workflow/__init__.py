"""Clearance approval workflow.

Stage catalog, prerequisite gating, status transitions, persistence and the
engine that ties them together.
"""

from clearance.core.workflow.catalog import CatalogError, Stage, StageCatalog
from clearance.core.workflow.engine import WorkflowEngine
from clearance.core.workflow.errors import (
    AlreadyFinalizedError,
    GatingViolation,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    WorkflowError,
)
from clearance.core.workflow.events import (
    NotificationEventType,
    NotificationSeverity,
    NotificationSink,
    NullNotificationSink,
)
from clearance.core.workflow.gate import can_submit, unmet_prerequisites
from clearance.core.workflow.projector import (
    CaseView,
    ProgressProjector,
    StageProgress,
    StageStatistics,
    completion_percentage,
)
from clearance.core.workflow.records import (
    ApprovalResult,
    DocumentRef,
    HistoryRecord,
    ReviewerStatistics,
    ReviewRecord,
    SubmissionRecord,
)
from clearance.core.workflow.states import SubmissionStatus, WorkflowAction
from clearance.core.workflow.store import SubmissionStore

__all__ = [
    "AlreadyFinalizedError",
    "ApprovalResult",
    "CaseView",
    "CatalogError",
    "DocumentRef",
    "GatingViolation",
    "HistoryRecord",
    "InternalError",
    "InvalidTransitionError",
    "NotFoundError",
    "NotificationEventType",
    "NotificationSeverity",
    "NotificationSink",
    "NullNotificationSink",
    "ProgressProjector",
    "ReviewRecord",
    "ReviewerStatistics",
    "Stage",
    "StageCatalog",
    "StageProgress",
    "StageStatistics",
    "SubmissionRecord",
    "SubmissionStatus",
    "SubmissionStore",
    "ValidationError",
    "WorkflowAction",
    "WorkflowEngine",
    "WorkflowError",
    "can_submit",
    "completion_percentage",
    "unmet_prerequisites",
]
