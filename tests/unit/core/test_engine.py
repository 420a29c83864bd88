"""Tests for the clearance workflow engine."""

import logging

import pytest

from clearance.core.workflow import (
    AlreadyFinalizedError,
    DocumentRef,
    GatingViolation,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    SubmissionStatus,
    SubmissionStore,
    ValidationError,
    WorkflowEngine,
)
from clearance.core.workflow.errors import WriteConflict

from tests.factories import make_document


def _approve(engine, person_id, stage_id, reviewer="rev-1"):
    submission_id = engine.submit(person_id, stage_id, [make_document()])
    return engine.approve(submission_id, reviewer)


class TestSubmitValidation:
    """Test rejection of malformed submissions."""

    def test_unknown_stage(self, engine):
        with pytest.raises(NotFoundError):
            engine.submit("p-1", "Z", [make_document()])

    def test_empty_documents(self, engine):
        with pytest.raises(ValidationError) as exc_info:
            engine.submit("p-1", "A", [])
        assert exc_info.value.field == "documents"

    def test_blank_person(self, engine):
        with pytest.raises(ValidationError) as exc_info:
            engine.submit("  ", "A", [make_document()])
        assert exc_info.value.field == "person_id"

    def test_document_without_url(self, engine):
        with pytest.raises(ValidationError):
            engine.submit("p-1", "A", [DocumentRef("a.pdf", "", "application/pdf")])

    def test_scope_required(self, scoped_catalog, store, sink):
        engine = WorkflowEngine(scoped_catalog, store, sink)
        with pytest.raises(ValidationError) as exc_info:
            engine.submit("p-1", "hod", [make_document()])
        assert exc_info.value.field == "submitter_scope"

    def test_unknown_stage_checked_before_documents(self, engine):
        with pytest.raises(NotFoundError):
            engine.submit("p-1", "Z", [])

    def test_mapping_documents_accepted(self, engine):
        submission_id = engine.submit(
            "p-1", "A", [{"fileName": "id.png", "fileUrl": "https://f/id.png", "fileType": "image/png"}],
        )
        record = engine.get_submission(submission_id)
        assert record.documents[0].file_name == "id.png"
        assert record.documents[0].media_type == "image/png"
        assert record.documents[0].uploaded_at is not None


class TestGating:
    """Test prerequisite enforcement."""

    def test_locked_stage_reports_unmet(self, engine):
        with pytest.raises(GatingViolation) as exc_info:
            engine.submit("p-1", "B", [make_document()])
        assert exc_info.value.unmet == ["A"]
        assert exc_info.value.code == "gating_violation"
        assert engine.store.find("p-1", "B") is None
        assert engine.projector.statistics("B").total == 0

    def test_pending_prerequisite_still_locks(self, engine):
        engine.submit("p-1", "A", [make_document()])
        with pytest.raises(GatingViolation):
            engine.submit("p-1", "C", [make_document()])
        assert engine.store.find("p-1", "C") is None

    def test_gating_is_per_person(self, engine):
        _approve(engine, "p-1", "A")
        with pytest.raises(GatingViolation):
            engine.submit("p-2", "B", [make_document()])

    def test_unlocked_after_approval(self, engine):
        _approve(engine, "p-1", "A")
        submission_id = engine.submit("p-1", "B", [make_document()])
        assert engine.get_submission(submission_id).status == SubmissionStatus.PENDING

    def test_alias_lookup(self, scoped_catalog, store, sink):
        engine = WorkflowEngine(scoped_catalog, store, sink)
        hod = engine.submit("p-1", "hod", [make_document()], submitter_scope="physics")
        engine.approve(hod, "head-1")
        submission_id = engine.submit("p-1", "LIBRARIAN", [make_document()])
        assert engine.get_submission(submission_id).stage_id == "library"


class TestSubmitTransitions:
    """Test create, edit and resubmit paths."""

    def test_first_submission_is_pending(self, engine):
        submission_id = engine.submit("p-1", "A", [make_document()])
        record = engine.get_submission(submission_id)
        assert record.status == SubmissionStatus.PENDING
        assert record.round == 1

    def test_edit_while_pending_replaces_documents(self, engine):
        first = engine.submit("p-1", "A", [make_document("old.pdf")])
        second = engine.submit("p-1", "A", [make_document("new.pdf")])
        assert first == second
        record = engine.get_submission(first)
        assert record.status == SubmissionStatus.PENDING
        assert record.round == 1
        assert [d.file_name for d in record.documents] == ["new.pdf"]

    def test_resubmission_clears_review(self, engine):
        submission_id = engine.submit("p-1", "A", [make_document()])
        engine.reject(submission_id, "rev-1", "Receipt unreadable")

        again = engine.submit("p-1", "A", [make_document("clear.pdf")])
        assert again == submission_id
        record = engine.get_submission(submission_id)
        assert record.status == SubmissionStatus.PENDING
        assert record.round == 2
        assert record.reviewer_comment is None
        assert record.reviewer_id is None
        assert record.reviewed_at is None

    def test_approved_is_final(self, engine):
        _approve(engine, "p-1", "A")
        with pytest.raises(AlreadyFinalizedError):
            engine.submit("p-1", "A", [make_document()])

    def test_history_records_every_transition(self, engine):
        submission_id = engine.submit("p-1", "A", [make_document()])
        engine.submit("p-1", "A", [make_document()])
        engine.reject(submission_id, "rev-1", "Missing stamp")
        engine.submit("p-1", "A", [make_document()])
        engine.approve(submission_id, "rev-2")

        history = engine.submission_history(submission_id)
        assert [h.action for h in history] == ["submit", "edit", "reject", "resubmit", "approve"]
        assert history[2].comment == "Missing stamp"
        assert history[-1].round == 2


class TestReview:
    """Test approve and reject."""

    def test_approve_sets_reviewer_fields(self, engine):
        submission_id = engine.submit("p-1", "A", [make_document()])
        result = engine.approve(submission_id, "rev-1", "All good")
        assert result.submission.status == SubmissionStatus.APPROVED
        assert result.submission.reviewer_id == "rev-1"
        assert result.submission.reviewer_comment == "All good"
        assert result.submission.reviewed_at is not None
        assert result.overall_percentage == 33
        assert result.case_complete is False

    def test_approve_twice_is_invalid(self, engine):
        submission_id = engine.submit("p-1", "A", [make_document()])
        engine.approve(submission_id, "rev-1")
        with pytest.raises(InvalidTransitionError) as exc_info:
            engine.approve(submission_id, "rev-2")
        assert exc_info.value.from_status == "approved"

    def test_reject_after_approve_is_invalid(self, engine):
        submission_id = engine.submit("p-1", "A", [make_document()])
        engine.approve(submission_id, "rev-1")
        with pytest.raises(InvalidTransitionError):
            engine.reject(submission_id, "rev-2", "Too late")

    def test_approve_rejected_is_invalid(self, engine):
        submission_id = engine.submit("p-1", "A", [make_document()])
        engine.reject(submission_id, "rev-1", "No")
        with pytest.raises(InvalidTransitionError):
            engine.approve(submission_id, "rev-1")

    def test_reject_requires_reason_before_lookup(self, engine):
        with pytest.raises(ValidationError) as exc_info:
            engine.reject("not-a-submission", "rev-1", "   ")
        assert exc_info.value.field == "reason"

    def test_reviewer_required(self, engine):
        submission_id = engine.submit("p-1", "A", [make_document()])
        with pytest.raises(ValidationError) as exc_info:
            engine.approve(submission_id, "")
        assert exc_info.value.field == "reviewer_id"

    def test_unknown_submission(self, engine):
        with pytest.raises(NotFoundError):
            engine.approve("1b4e28ba-2fa1-11d2-883f-0016d3cca427", "rev-1")
        with pytest.raises(NotFoundError):
            engine.approve("garbage", "rev-1")

    def test_completion_reported_once(self, engine):
        _approve(engine, "p-1", "A")
        _approve(engine, "p-1", "B")
        result = _approve(engine, "p-1", "C")
        assert result.case_complete is True
        assert result.overall_percentage == 100


class TestReviewerActivity:
    """Test the per-reviewer decision history and counts."""

    def test_history_newest_first(self, engine):
        a = engine.submit("p-1", "A", [make_document()])
        engine.reject(a, "rev-1", "Blurry scan")
        engine.submit("p-1", "A", [make_document()])
        engine.approve(a, "rev-1", "Readable now")
        other = engine.submit("p-2", "A", [make_document()])
        engine.approve(other, "rev-2")

        items, total = engine.reviewer_history("rev-1")

        assert total == 2
        assert [(r.action, r.round) for r in items] == [("approve", 2), ("reject", 1)]
        assert items[1].comment == "Blurry scan"
        assert {r.person_id for r in items} == {"p-1"}
        assert items[0].stage_id == "A"
        assert items[0].status == "approved"

    def test_history_excludes_submissions(self, engine):
        engine.submit("rev-1", "A", [make_document()])
        assert engine.reviewer_history("rev-1") == ([], 0)

    def test_history_paging(self, engine):
        for person in ("p-1", "p-2", "p-3"):
            _approve(engine, person, "A")

        page, total = engine.reviewer_history("rev-1", offset=2, limit=2)
        assert total == 3
        assert len(page) == 1

    def test_statistics(self, engine):
        first = engine.submit("p-1", "A", [make_document()])
        engine.reject(first, "rev-1", "Missing page")
        _approve(engine, "p-2", "A")

        stats = engine.reviewer_statistics("rev-1")
        assert (stats.approved, stats.rejected, stats.total) == (1, 1, 2)
        assert (stats.approved_today, stats.rejected_today) == (1, 1)

    def test_reviewer_id_required(self, engine):
        with pytest.raises(ValidationError) as exc_info:
            engine.reviewer_history("  ")
        assert exc_info.value.field == "reviewer_id"


class TestNotifications:
    """Test notifications emitted after commits."""

    def test_submit_notifies_reviewers_and_person(self, engine, sink):
        engine.submit("p-1", "A", [make_document()])
        assert sink.titles() == ["New Clearance Submission", "Documents Received"]
        assert sink.calls[0]["recipient_id"] == "reviewers:A"
        assert sink.calls[0]["metadata"]["type"] == "submission_received"
        assert sink.calls[1]["recipient_id"] == "p-1"

    def test_scoped_reviewers_addressed(self, scoped_catalog, store, sink):
        engine = WorkflowEngine(scoped_catalog, store, sink)
        engine.submit("p-1", "hod", [make_document()], submitter_scope="physics")
        assert sink.calls[0]["recipient_id"] == "reviewers:hod:physics"

    def test_resubmission_and_edit_titles(self, engine, sink):
        submission_id = engine.submit("p-1", "A", [make_document()])
        engine.submit("p-1", "A", [make_document()])
        engine.reject(submission_id, "rev-1", "Blurry")
        engine.submit("p-1", "A", [make_document()])
        reviewer_titles = [c["title"] for c in sink.for_recipient("reviewers:A")]
        assert reviewer_titles == [
            "New Clearance Submission",
            "Clearance Submission Updated",
            "Clearance Resubmission",
        ]

    def test_rejection_carries_reason(self, engine, sink):
        submission_id = engine.submit("p-1", "A", [make_document()])
        engine.reject(submission_id, "rev-1", "Blurry scan")
        rejection = sink.calls[-1]
        assert rejection["title"] == "Stage Rejected"
        assert rejection["severity"] == "error"
        assert "Reason: Blurry scan" in rejection["message"]
        assert rejection["metadata"]["reason"] == "Blurry scan"

    def test_completion_notified_exactly_once(self, engine, sink):
        for stage_id in ("A", "B", "C"):
            _approve(engine, "p-1", stage_id)
        completed = [c for c in sink.for_recipient("p-1") if c["title"] == "Clearance Completed!"]
        assert len(completed) == 1
        assert completed[0]["metadata"]["type"] == "case_completed"

    def test_sink_failure_does_not_fail_transition(self, abc_catalog, store, failing_sink, caplog):
        engine = WorkflowEngine(abc_catalog, store, failing_sink)
        with caplog.at_level(logging.ERROR, logger="clearance.core.workflow.engine"):
            submission_id = engine.submit("p-1", "A", [make_document()])
            result = engine.approve(submission_id, "rev-1")
        assert result.submission.status == SubmissionStatus.APPROVED
        assert "Failed to deliver" in caplog.text

    def test_no_notification_on_failed_operation(self, engine, sink):
        with pytest.raises(GatingViolation):
            engine.submit("p-1", "B", [make_document()])
        assert sink.calls == []


class ConflictingStore(SubmissionStore):
    """Store whose conditional writes always lose the race."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.attempts = 0

    def compare_and_set(self, *args, **kwargs):
        self.attempts += 1
        raise WriteConflict("lost race")


class RacingReviewerStore(SubmissionStore):
    """Store where another reviewer approves just before our first write."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.raced = False

    def compare_and_set(self, submission_id, expected_status, expected_version, values, **kwargs):
        if not self.raced:
            self.raced = True
            super().compare_and_set(
                submission_id, expected_status, expected_version,
                {"status": "approved", "reviewer_id": "other"}, **kwargs,
            )
        return super().compare_and_set(submission_id, expected_status, expected_version, values, **kwargs)


class RacingSubmitterStore(SubmissionStore):
    """Store where a concurrent first submission lands between read and insert."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.hide_next_find = True

    def find(self, person_id, stage_id):
        if self.hide_next_find:
            self.hide_next_find = False
            super().insert_pending(person_id, stage_id, [DocumentRef("other.pdf", "https://f/other.pdf", "")])
            return None
        return super().find(person_id, stage_id)


class TestWriteConflicts:
    """Test compare-and-swap retries."""

    def test_persistent_conflict_becomes_internal_error(self, abc_catalog, session_factory, sink):
        seed = WorkflowEngine(abc_catalog, SubmissionStore(session_factory), sink)
        submission_id = seed.submit("p-1", "A", [make_document()])

        store = ConflictingStore(session_factory)
        engine = WorkflowEngine(abc_catalog, store, sink, max_write_attempts=3)
        with pytest.raises(InternalError):
            engine.approve(submission_id, "rev-1")
        assert store.attempts == 3

    def test_concurrent_approval_wins_once(self, abc_catalog, session_factory, sink):
        seed = WorkflowEngine(abc_catalog, SubmissionStore(session_factory), sink)
        submission_id = seed.submit("p-1", "A", [make_document()])

        engine = WorkflowEngine(abc_catalog, RacingReviewerStore(session_factory), sink)
        with pytest.raises(InvalidTransitionError):
            engine.reject(submission_id, "rev-1", "Conflicting decision")
        assert seed.get_submission(submission_id).reviewer_id == "other"

    def test_concurrent_first_submission_retried_as_edit(self, abc_catalog, session_factory, sink):
        engine = WorkflowEngine(abc_catalog, RacingSubmitterStore(session_factory), sink)
        submission_id = engine.submit("p-1", "A", [make_document("mine.pdf")])

        record = engine.get_submission(submission_id)
        assert [d.file_name for d in record.documents] == ["mine.pdf"]
        assert [h.action for h in engine.submission_history(submission_id)] == ["submit", "edit"]

    def test_invalid_attempt_limit(self, abc_catalog, store):
        with pytest.raises(ValueError):
            WorkflowEngine(abc_catalog, store, max_write_attempts=0)
