"""Clearance workflow engine.

Orchestrates submit, approve and reject against the stage catalog and the
submission store, then hands notifications to the sink once the transition
has committed. Notification failures are logged and never undo or fail a
committed transition.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import UUID

from clearance.db.base import utcnow

from .catalog import Stage, StageCatalog
from .errors import (
    AlreadyFinalizedError,
    GatingViolation,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    WriteConflict,
)
from .events import (
    NotificationEventType,
    NotificationSeverity,
    NotificationSink,
    NullNotificationSink,
    WorkflowNotification,
    reviewer_recipient,
)
from .gate import unmet_prerequisites
from .projector import ProgressProjector
from .records import ApprovalResult, DocumentRef, HistoryRecord, ReviewRecord, ReviewerStatistics, SubmissionRecord
from .states import (
    REVIEWABLE_STATES,
    TERMINAL_STATES,
    SubmissionStatus,
    WorkflowAction,
    can_transition,
    get_transition_rule,
    submit_action_for,
)
from .store import SubmissionStore

logger = logging.getLogger(__name__)

DocumentInput = Union[DocumentRef, Mapping[str, Any]]


class WorkflowEngine:
    """
    Approval workflow over a stage catalog.

    Stateless between calls: all durable state lives in the store. Construct
    once at startup and share.
    """

    def __init__(
        self,
        catalog: StageCatalog,
        store: SubmissionStore,
        sink: Optional[NotificationSink] = None,
        *,
        projector: Optional[ProgressProjector] = None,
        max_write_attempts: int = 3,
    ):
        """
        Initialize the engine.

        Args:
            catalog: Stage definitions and prerequisites
            store: Submission persistence
            sink: Notification delivery; notifications are dropped when omitted
            projector: Case projector (built from catalog and store by default)
            max_write_attempts: Conditional write attempts before InternalError
        """
        if max_write_attempts < 1:
            raise ValueError("max_write_attempts must be at least 1")
        self.catalog = catalog
        self.store = store
        self.sink = sink or NullNotificationSink()
        self.projector = projector or ProgressProjector(catalog, store)
        self.max_write_attempts = max_write_attempts

    def submit(
        self,
        person_id: str,
        stage_id: str,
        documents: Sequence[DocumentInput],
        submitter_scope: Optional[str] = None,
    ) -> UUID:
        """
        Submit documents to a stage for review.

        A first submission creates a pending record, a submission after a
        rejection starts a new round, and a submission while pending replaces
        the documents of the open round.

        Returns:
            The submission id

        Raises:
            NotFoundError: Unknown stage
            ValidationError: Missing person id, documents or required scope
            GatingViolation: A prerequisite stage is not approved
            AlreadyFinalizedError: The stage is already approved
            InternalError: Storage unavailable or write conflicts persisted
        """
        stage = self.catalog.by_id(stage_id)

        person_id = (person_id or "").strip()
        if not person_id:
            raise ValidationError("A person id is required", field="person_id")

        docs = self._normalize_documents(documents)
        if not docs:
            raise ValidationError("At least one document is required", field="documents")

        scope = (submitter_scope or "").strip() or None
        if stage.scope_required and not scope:
            raise ValidationError(
                f"{stage.display_name} is reviewed per scope; the submitter's scope is required",
                field="submitter_scope",
                stage_id=stage.id,
            )

        statuses = self.store.statuses_for(person_id)
        unmet = unmet_prerequisites(statuses, stage, self.catalog)
        if unmet:
            logger.info(f"Submission by {person_id} to {stage.id} blocked by {unmet}")
            raise GatingViolation(stage.id, unmet)

        for attempt in range(1, self.max_write_attempts + 1):
            existing = self.store.find(person_id, stage.id)
            current = existing.status if existing else SubmissionStatus.NOT_STARTED
            if current in TERMINAL_STATES:
                raise AlreadyFinalizedError(stage.id, str(existing.id))

            action = submit_action_for(current)
            try:
                record = self._write_submission(person_id, stage, existing, action, docs, scope)
            except WriteConflict as e:
                logger.warning(f"Submit conflict for {person_id}/{stage.id} (attempt {attempt}): {e}")
                continue

            logger.info(f"{action.value} {stage.id} for {person_id}: submission {record.id} round {record.round}")
            self._dispatch(self._submission_notifications(stage, record, action))
            return record.id

        raise InternalError(
            f"Could not record submission to {stage.id} after {self.max_write_attempts} attempts",
            stage_id=stage.id,
            person_id=person_id,
        )

    def approve(
        self,
        submission_id: Union[UUID, str],
        reviewer_id: str,
        comment: Optional[str] = None,
    ) -> ApprovalResult:
        """
        Approve a pending submission.

        Returns:
            The updated submission and whether this approval completed the case

        Raises:
            NotFoundError: Unknown submission
            ValidationError: Missing reviewer id
            InvalidTransitionError: Submission is not pending
        """
        reviewer_id = self._require_reviewer(reviewer_id)
        comment = (comment or "").strip() or None

        record = self._review(
            submission_id,
            WorkflowAction.APPROVE,
            reviewer_id,
            values={
                "status": SubmissionStatus.APPROVED.value,
                "reviewer_id": reviewer_id,
                "reviewer_comment": comment,
                "reviewed_at": utcnow(),
            },
            comment=comment,
        )

        case = self.projector.status(record.person_id)
        case_complete = False
        if case.is_complete:
            case_complete = self.store.record_completion(record.person_id, record.id)
            if case_complete:
                logger.info(f"Clearance complete for {record.person_id} (submission {record.id})")

        stage = self._stage_for(record)
        notifications = [self._approved_notification(stage, record)]
        if case_complete:
            notifications.append(self._completed_notification(record))
        self._dispatch(notifications)

        return ApprovalResult(
            submission=record,
            case_complete=case_complete,
            overall_percentage=case.overall_percentage,
        )

    def reject(
        self,
        submission_id: Union[UUID, str],
        reviewer_id: str,
        reason: str,
    ) -> SubmissionRecord:
        """
        Reject a pending submission with a reason the person can act on.

        Raises:
            ValidationError: Missing reason or reviewer id
            NotFoundError: Unknown submission
            InvalidTransitionError: Submission is not pending
        """
        reason = (reason or "").strip()
        if not reason and get_transition_rule(SubmissionStatus.PENDING, WorkflowAction.REJECT).requires_comment:
            raise ValidationError("A reason is required to reject a submission", field="reason")
        reviewer_id = self._require_reviewer(reviewer_id)

        record = self._review(
            submission_id,
            WorkflowAction.REJECT,
            reviewer_id,
            values={
                "status": SubmissionStatus.REJECTED.value,
                "reviewer_id": reviewer_id,
                "reviewer_comment": reason,
                "reviewed_at": utcnow(),
            },
            comment=reason,
        )

        self._dispatch([self._rejected_notification(self._stage_for(record), record)])
        return record

    # Read helpers

    def get_submission(self, submission_id: Union[UUID, str]) -> SubmissionRecord:
        record = self.store.get(self._coerce_id(submission_id))
        if record is None:
            raise NotFoundError(f"Submission {submission_id} not found", submission_id=str(submission_id))
        return record

    def submission_history(self, submission_id: Union[UUID, str]) -> List[HistoryRecord]:
        record = self.get_submission(submission_id)
        return self.store.history(record.id)

    def list_stage_submissions(
        self,
        stage_id: str,
        *,
        status: Optional[SubmissionStatus] = None,
        scope: Optional[str] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> Tuple[List[SubmissionRecord], int]:
        """Reviewer queue for a stage, oldest first."""
        stage = self.catalog.by_id(stage_id)
        return self.store.list_for_stage(stage.id, status=status, scope=scope, offset=offset, limit=limit)

    def reviewer_history(
        self,
        reviewer_id: str,
        *,
        offset: int = 0,
        limit: int = 100,
    ) -> Tuple[List[ReviewRecord], int]:
        """Approve and reject decisions made by a reviewer, newest first."""
        reviewer_id = self._require_reviewer(reviewer_id)
        return self.store.list_reviewed_by(reviewer_id, offset=offset, limit=limit)

    def reviewer_statistics(self, reviewer_id: str) -> ReviewerStatistics:
        """Decision counts of a reviewer, overall and since midnight UTC."""
        reviewer_id = self._require_reviewer(reviewer_id)
        start_of_day = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        overall = self.store.review_counts(reviewer_id)
        today = self.store.review_counts(reviewer_id, since=start_of_day)
        return ReviewerStatistics(
            reviewer_id=reviewer_id,
            approved=overall[WorkflowAction.APPROVE],
            rejected=overall[WorkflowAction.REJECT],
            approved_today=today[WorkflowAction.APPROVE],
            rejected_today=today[WorkflowAction.REJECT],
        )

    # Internals

    def _write_submission(
        self,
        person_id: str,
        stage: Stage,
        existing: Optional[SubmissionRecord],
        action: WorkflowAction,
        documents: List[DocumentRef],
        scope: Optional[str],
    ) -> SubmissionRecord:
        if action == WorkflowAction.SUBMIT:
            return self.store.insert_pending(person_id, stage.id, documents, scope=scope)

        rule = get_transition_rule(existing.status, action)
        values = {
            "documents": [doc.to_dict() for doc in documents],
            "scope": scope or existing.scope,
        }
        if rule.starts_round:
            values.update(
                status=rule.to_state.value,
                round=existing.round + 1,
                submitted_at=utcnow(),
                reviewer_id=None,
                reviewer_comment=None,
                reviewed_at=None,
            )

        return self.store.compare_and_set(
            existing.id,
            existing.status,
            existing.version,
            values,
            action=action,
            actor_id=person_id,
            extra_data={"documents": len(documents)},
        )

    def _review(
        self,
        submission_id: Union[UUID, str],
        action: WorkflowAction,
        reviewer_id: str,
        *,
        values: dict,
        comment: Optional[str],
    ) -> SubmissionRecord:
        submission_id = self._coerce_id(submission_id)

        for attempt in range(1, self.max_write_attempts + 1):
            current = self.store.get(submission_id)
            if current is None:
                raise NotFoundError(f"Submission {submission_id} not found", submission_id=str(submission_id))
            if current.status not in REVIEWABLE_STATES or not can_transition(current.status, action):
                raise InvalidTransitionError(
                    f"Cannot {action.value} a submission that is {current.status.value}",
                    current.status.value,
                    action.value,
                )

            try:
                record = self.store.compare_and_set(
                    submission_id,
                    current.status,
                    current.version,
                    values,
                    action=action,
                    actor_id=reviewer_id,
                    comment=comment,
                )
            except WriteConflict as e:
                logger.warning(f"{action.value} conflict on {submission_id} (attempt {attempt}): {e}")
                continue

            logger.info(f"{action.value} {record.stage_id} for {record.person_id} by {reviewer_id}")
            return record

        raise InternalError(
            f"Could not {action.value} submission {submission_id} after {self.max_write_attempts} attempts",
            submission_id=str(submission_id),
        )

    def _dispatch(self, notifications: Iterable[WorkflowNotification]) -> None:
        """Deliver notifications; runs only after the transition committed."""
        for notification in notifications:
            try:
                self.sink.notify(
                    notification.recipient_id,
                    notification.title,
                    notification.message,
                    notification.severity.value,
                    notification.payload(),
                )
            except Exception:
                logger.exception(
                    f"Failed to deliver {notification.event_type.value} notification "
                    f"to {notification.recipient_id}"
                )

    def _stage_for(self, record: SubmissionRecord) -> Stage:
        stage = self.catalog.get(record.stage_id)
        if stage is None:
            # Stage removed from the catalog after the submission was made
            return Stage(id=record.stage_id, display_name=record.stage_id, order=0)
        return stage

    @staticmethod
    def _require_reviewer(reviewer_id: str) -> str:
        reviewer_id = (reviewer_id or "").strip()
        if not reviewer_id:
            raise ValidationError("A reviewer id is required", field="reviewer_id")
        return reviewer_id

    @staticmethod
    def _coerce_id(submission_id: Union[UUID, str]) -> UUID:
        if isinstance(submission_id, UUID):
            return submission_id
        try:
            return UUID(str(submission_id))
        except ValueError:
            raise NotFoundError(f"Submission {submission_id} not found", submission_id=str(submission_id))

    @staticmethod
    def _normalize_documents(documents: Optional[Sequence[DocumentInput]]) -> List[DocumentRef]:
        now = utcnow()
        normalized = []
        for doc in documents or []:
            if isinstance(doc, Mapping):
                doc = DocumentRef(
                    file_name=doc.get("file_name") or doc.get("fileName") or "",
                    url=doc.get("url") or doc.get("fileUrl") or "",
                    media_type=doc.get("media_type") or doc.get("mediaType") or doc.get("fileType") or "",
                )
            if not doc.url:
                raise ValidationError("Every document needs a URL", field="documents")
            if doc.uploaded_at is None:
                doc = DocumentRef(doc.file_name, doc.url, doc.media_type, now)
            normalized.append(doc)
        return normalized

    # Notification builders

    def _submission_notifications(
        self,
        stage: Stage,
        record: SubmissionRecord,
        action: WorkflowAction,
    ) -> List[WorkflowNotification]:
        metadata = self._metadata(stage, record)
        if action == WorkflowAction.RESUBMIT:
            title, verb, event_type = (
                "Clearance Resubmission", "has resubmitted for",
                NotificationEventType.SUBMISSION_RESUBMITTED,
            )
        elif action == WorkflowAction.EDIT:
            title, verb, event_type = (
                "Clearance Submission Updated", "has updated the documents submitted for",
                NotificationEventType.SUBMISSION_UPDATED,
            )
        else:
            title, verb, event_type = (
                "New Clearance Submission", "has submitted documents for",
                NotificationEventType.SUBMISSION_RECEIVED,
            )

        return [
            WorkflowNotification(
                recipient_id=reviewer_recipient(stage.id, record.scope if stage.scope_required else None),
                title=title,
                message=f"{record.person_id} {verb} {stage.display_name}",
                severity=NotificationSeverity.INFO,
                event_type=event_type,
                metadata=metadata,
            ),
            WorkflowNotification(
                recipient_id=record.person_id,
                title="Documents Received",
                message=(
                    f"Your documents for step {stage.order}: {stage.display_name} "
                    f"have been received and are pending review."
                ),
                severity=NotificationSeverity.INFO,
                event_type=NotificationEventType.DOCUMENTS_RECEIVED,
                metadata=metadata,
            ),
        ]

    def _approved_notification(self, stage: Stage, record: SubmissionRecord) -> WorkflowNotification:
        return WorkflowNotification(
            recipient_id=record.person_id,
            title="Stage Approved",
            message=(
                f"Your submission for step {stage.order}: {stage.display_name} has been approved."
            ),
            severity=NotificationSeverity.SUCCESS,
            event_type=NotificationEventType.STAGE_APPROVED,
            metadata={**self._metadata(stage, record), "comment": record.reviewer_comment},
        )

    def _rejected_notification(self, stage: Stage, record: SubmissionRecord) -> WorkflowNotification:
        return WorkflowNotification(
            recipient_id=record.person_id,
            title="Stage Rejected",
            message=(
                f"Your submission for step {stage.order}: {stage.display_name} has been rejected. "
                f"Reason: {record.reviewer_comment}"
            ),
            severity=NotificationSeverity.ERROR,
            event_type=NotificationEventType.STAGE_REJECTED,
            metadata={**self._metadata(stage, record), "reason": record.reviewer_comment},
        )

    def _completed_notification(self, record: SubmissionRecord) -> WorkflowNotification:
        return WorkflowNotification(
            recipient_id=record.person_id,
            title="Clearance Completed!",
            message=(
                "Congratulations! Your clearance process is now complete. "
                "You can download your clearance certificate and final forms."
            ),
            severity=NotificationSeverity.SUCCESS,
            event_type=NotificationEventType.CASE_COMPLETED,
            metadata={"person_id": record.person_id, "submission_id": str(record.id)},
        )

    @staticmethod
    def _metadata(stage: Stage, record: SubmissionRecord) -> dict:
        return {
            "person_id": record.person_id,
            "stage_id": stage.id,
            "stage_name": stage.display_name,
            "step_number": stage.order,
            "submission_id": str(record.id),
            "round": record.round,
            "scope": record.scope,
        }
