"""Workflow error taxonomy.

Every error carries a stable ``code`` and structured ``details`` so callers
can tell which prerequisite is unmet or which field is missing.
"""

from typing import Any, Dict, List, Optional


class WorkflowError(Exception):
    """Base class for errors raised by the clearance workflow."""

    code = "internal"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details


class NotFoundError(WorkflowError):
    """Unknown stage, submission or person."""

    code = "not_found"


class ValidationError(WorkflowError):
    """A required input is missing or malformed."""

    code = "validation_error"

    def __init__(self, message: str, field: str, **details: Any):
        super().__init__(message, field=field, **details)
        self.field = field


class GatingViolation(WorkflowError):
    """Prerequisite stages are not all approved."""

    code = "gating_violation"

    def __init__(self, stage_id: str, unmet: List[str]):
        super().__init__(
            f"Stage {stage_id} is locked until these stages are approved: {', '.join(unmet)}",
            stage_id=stage_id,
            unmet=list(unmet),
        )
        self.stage_id = stage_id
        self.unmet = list(unmet)


class AlreadyFinalizedError(WorkflowError):
    """The stage is already approved for this person."""

    code = "already_finalized"

    def __init__(self, stage_id: str, submission_id: Optional[str] = None):
        super().__init__(
            f"Stage {stage_id} has already been approved",
            stage_id=stage_id,
            submission_id=submission_id,
        )
        self.stage_id = stage_id


class InvalidTransitionError(WorkflowError):
    """The action is not allowed from the submission's current status."""

    code = "invalid_transition"

    def __init__(self, message: str, from_status: str, action: str):
        super().__init__(message, from_status=from_status, action=action)
        self.from_status = from_status
        self.action = action


class InternalError(WorkflowError):
    """Storage unavailable or conditional writes kept losing races."""

    code = "internal"


class WriteConflict(Exception):
    """A conditional write matched no row; the caller re-reads and retries."""
