"""Clearance submission database models.

Stores each person's current attempt at a stage, the transition history of
that attempt, and the record of when a person's whole case completed.
"""

import uuid
from sqlalchemy import (
    Column, String, DateTime, JSON, ForeignKey, Text, Integer, Uuid, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from clearance.db.base import Base, utcnow


class Submission(Base):
    """
    A person's current submission to one clearance stage.

    Each (person, stage) pair has at most one row; resubmissions reuse it.
    """
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("person_id", "stage_id", name="uq_submissions_person_stage"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    person_id = Column(String(255), nullable=False, index=True)
    stage_id = Column(String(100), nullable=False, index=True)

    # Organizational scope of the submitter (e.g. department), for scoped reviewers
    scope = Column(String(255), nullable=True, index=True)

    # Workflow state
    status = Column(String(50), nullable=False, default="pending", index=True)
    round = Column(Integer, nullable=False, default=1)
    version = Column(Integer, nullable=False, default=1)

    # [{file_name, url, media_type, uploaded_at}]
    documents = Column(JSON, nullable=False, default=list)

    # Review tracking
    reviewer_id = Column(String(255), nullable=True)
    reviewer_comment = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    # Timestamps
    submitted_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    history = relationship(
        "SubmissionHistory",
        back_populates="submission",
        order_by="SubmissionHistory.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Submission {self.person_id}/{self.stage_id} [{self.status}]>"


class SubmissionHistory(Base):
    """
    Records every state transition of a submission.

    Provides the audit trail shown to reviewers.
    """
    __tablename__ = "submission_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    submission_id = Column(Uuid, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)

    # Transition details ("not_started" for the first submission)
    from_status = Column(String(50), nullable=False)
    to_status = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)
    round = Column(Integer, nullable=False, default=1)

    # Actor: the person for submissions, the reviewer for decisions
    actor_id = Column(String(255), nullable=True)
    comment = Column(Text, nullable=True)

    extra_data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, index=True)

    submission = relationship("Submission", back_populates="history")

    def __repr__(self) -> str:
        return f"<SubmissionHistory {self.from_status} -> {self.to_status}>"


class CaseCompletion(Base):
    """
    Marks the approval that completed a person's clearance.

    The primary key on person_id lets exactly one approval claim completion.
    """
    __tablename__ = "case_completions"

    person_id = Column(String(255), primary_key=True)
    submission_id = Column(Uuid, ForeignKey("submissions.id", ondelete="SET NULL"), nullable=True)
    completed_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<CaseCompletion {self.person_id}>"
