"""Submission persistence with atomic conditional writes.

Every write runs in its own session. Status changes are compare-and-swap
updates keyed on ``(id, status, version)`` so two reviewers acting on the
same submission cannot both succeed; first submissions rely on the unique
``(person_id, stage_id)`` constraint.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from clearance.db.base import utcnow
from clearance.db.models.submission import CaseCompletion, Submission, SubmissionHistory

from .errors import InternalError, WriteConflict
from .records import DocumentRef, HistoryRecord, ReviewRecord, SubmissionRecord
from .states import SubmissionStatus, WorkflowAction

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = (WorkflowAction.APPROVE, WorkflowAction.REJECT)


class SubmissionStore:
    """SQLAlchemy-backed store of clearance submissions."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except OperationalError as e:
            db.rollback()
            logger.error(f"Submission store unavailable: {e}")
            raise InternalError("Submission store is unavailable", reason=str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # Reads

    def get(self, submission_id: UUID) -> Optional[SubmissionRecord]:
        with self._session() as db:
            row = db.get(Submission, submission_id)
            return self._to_record(row) if row else None

    def find(self, person_id: str, stage_id: str) -> Optional[SubmissionRecord]:
        with self._session() as db:
            row = db.execute(
                select(Submission).where(
                    and_(Submission.person_id == person_id, Submission.stage_id == stage_id)
                )
            ).scalar_one_or_none()
            return self._to_record(row) if row else None

    def list_for_person(self, person_id: str) -> List[SubmissionRecord]:
        with self._session() as db:
            rows = db.execute(
                select(Submission).where(Submission.person_id == person_id)
            ).scalars().all()
            return [self._to_record(row) for row in rows]

    def statuses_for(self, person_id: str) -> Dict[str, SubmissionStatus]:
        """Current stored status per stage for one person."""
        with self._session() as db:
            rows = db.execute(
                select(Submission.stage_id, Submission.status).where(Submission.person_id == person_id)
            ).all()
            return {stage_id: SubmissionStatus(status) for stage_id, status in rows}

    def list_for_stage(
        self,
        stage_id: str,
        *,
        status: Optional[SubmissionStatus] = None,
        scope: Optional[str] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> Tuple[List[SubmissionRecord], int]:
        """Submissions to a stage, oldest first, with the unpaginated total."""
        filters = [Submission.stage_id == stage_id]
        if status is not None:
            filters.append(Submission.status == status.value)
        if scope:
            filters.append(Submission.scope == scope)

        with self._session() as db:
            total = db.execute(
                select(func.count()).select_from(Submission).where(and_(*filters))
            ).scalar_one()
            rows = db.execute(
                select(Submission)
                .where(and_(*filters))
                .order_by(Submission.submitted_at.asc(), Submission.id.asc())
                .offset(offset)
                .limit(limit)
            ).scalars().all()
            return [self._to_record(row) for row in rows], total

    def count_by_status(self, stage_id: str, scope: Optional[str] = None) -> Dict[SubmissionStatus, int]:
        filters = [Submission.stage_id == stage_id]
        if scope:
            filters.append(Submission.scope == scope)

        with self._session() as db:
            rows = db.execute(
                select(Submission.status, func.count())
                .where(and_(*filters))
                .group_by(Submission.status)
            ).all()
            counts = {status: 0 for status in (
                SubmissionStatus.PENDING, SubmissionStatus.APPROVED, SubmissionStatus.REJECTED,
            )}
            for status, count in rows:
                counts[SubmissionStatus(status)] = count
            return counts

    def history(self, submission_id: UUID) -> List[HistoryRecord]:
        with self._session() as db:
            rows = db.execute(
                select(SubmissionHistory)
                .where(SubmissionHistory.submission_id == submission_id)
                .order_by(SubmissionHistory.created_at.asc())
            ).scalars().all()
            return [
                HistoryRecord(
                    id=row.id,
                    submission_id=row.submission_id,
                    from_status=row.from_status,
                    to_status=row.to_status,
                    action=row.action,
                    round=row.round,
                    actor_id=row.actor_id,
                    comment=row.comment,
                    extra_data=dict(row.extra_data or {}),
                    created_at=row.created_at,
                )
                for row in rows
            ]

    def list_reviewed_by(
        self,
        reviewer_id: str,
        *,
        offset: int = 0,
        limit: int = 100,
    ) -> Tuple[List[ReviewRecord], int]:
        """Approve and reject decisions of a reviewer, newest first, with the unpaginated total."""
        filters = [
            SubmissionHistory.actor_id == reviewer_id,
            SubmissionHistory.action.in_([action.value for action in REVIEW_ACTIONS]),
        ]

        with self._session() as db:
            total = db.execute(
                select(func.count()).select_from(SubmissionHistory).where(and_(*filters))
            ).scalar_one()
            rows = db.execute(
                select(SubmissionHistory, Submission)
                .join(Submission, SubmissionHistory.submission_id == Submission.id)
                .where(and_(*filters))
                .order_by(SubmissionHistory.created_at.desc(), SubmissionHistory.id.desc())
                .offset(offset)
                .limit(limit)
            ).all()
            return [
                ReviewRecord(
                    history_id=entry.id,
                    submission_id=submission.id,
                    person_id=submission.person_id,
                    stage_id=submission.stage_id,
                    action=entry.action,
                    status=entry.to_status,
                    round=entry.round,
                    scope=submission.scope,
                    comment=entry.comment,
                    reviewed_at=entry.created_at,
                )
                for entry, submission in rows
            ], total

    def review_counts(self, reviewer_id: str, since: Optional[datetime] = None) -> Dict[WorkflowAction, int]:
        filters = [
            SubmissionHistory.actor_id == reviewer_id,
            SubmissionHistory.action.in_([action.value for action in REVIEW_ACTIONS]),
        ]
        if since is not None:
            filters.append(SubmissionHistory.created_at >= since)

        with self._session() as db:
            rows = db.execute(
                select(SubmissionHistory.action, func.count())
                .where(and_(*filters))
                .group_by(SubmissionHistory.action)
            ).all()
            counts = {action: 0 for action in REVIEW_ACTIONS}
            for action, count in rows:
                counts[WorkflowAction(action)] = count
            return counts

    # Writes

    def insert_pending(
        self,
        person_id: str,
        stage_id: str,
        documents: Sequence[DocumentRef],
        *,
        scope: Optional[str] = None,
    ) -> SubmissionRecord:
        """Create the first submission for (person, stage).

        Raises:
            WriteConflict: A concurrent call created the row first
        """
        now = utcnow()
        row = Submission(
            id=uuid.uuid4(),
            person_id=person_id,
            stage_id=stage_id,
            scope=scope,
            status=SubmissionStatus.PENDING.value,
            round=1,
            version=1,
            documents=[doc.to_dict() for doc in documents],
            submitted_at=now,
            created_at=now,
            updated_at=now,
        )
        row.history.append(SubmissionHistory(
            id=uuid.uuid4(),
            from_status=SubmissionStatus.NOT_STARTED.value,
            to_status=SubmissionStatus.PENDING.value,
            action=WorkflowAction.SUBMIT.value,
            round=1,
            actor_id=person_id,
            extra_data={"documents": len(documents)},
            created_at=now,
        ))

        with self._session() as db:
            db.add(row)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise WriteConflict(f"Submission for {person_id}/{stage_id} already exists") from e
            return self._to_record(row)

    def compare_and_set(
        self,
        submission_id: UUID,
        expected_status: SubmissionStatus,
        expected_version: int,
        values: Dict[str, Any],
        *,
        action: WorkflowAction,
        actor_id: Optional[str] = None,
        comment: Optional[str] = None,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> SubmissionRecord:
        """Apply ``values`` only if the row still has the expected status and version.

        Records the transition in the submission history in the same transaction.

        Raises:
            WriteConflict: The row changed since it was read
        """
        now = utcnow()
        with self._session() as db:
            result = db.execute(
                update(Submission)
                .where(
                    and_(
                        Submission.id == submission_id,
                        Submission.status == expected_status.value,
                        Submission.version == expected_version,
                    )
                )
                .values(**values, version=Submission.version + 1, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                raise WriteConflict(
                    f"Submission {submission_id} is no longer {expected_status.value} v{expected_version}"
                )

            row = db.get(Submission, submission_id)
            db.add(SubmissionHistory(
                id=uuid.uuid4(),
                submission_id=submission_id,
                from_status=expected_status.value,
                to_status=row.status,
                action=action.value,
                round=row.round,
                actor_id=actor_id,
                comment=comment,
                extra_data=extra_data or {},
                created_at=now,
            ))
            db.commit()
            return self._to_record(row)

    def record_completion(self, person_id: str, submission_id: UUID) -> bool:
        """Claim the completion of a person's case.

        Returns:
            True for the single caller that recorded it, False afterwards
        """
        with self._session() as db:
            db.add(CaseCompletion(person_id=person_id, submission_id=submission_id, completed_at=utcnow()))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                return False
            return True

    @staticmethod
    def _to_record(row: Submission) -> SubmissionRecord:
        return SubmissionRecord(
            id=row.id,
            person_id=row.person_id,
            stage_id=row.stage_id,
            status=SubmissionStatus(row.status),
            documents=tuple(DocumentRef.from_dict(doc) for doc in (row.documents or [])),
            scope=row.scope,
            round=row.round,
            version=row.version,
            reviewer_id=row.reviewer_id,
            reviewer_comment=row.reviewer_comment,
            submitted_at=row.submitted_at,
            reviewed_at=row.reviewed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
