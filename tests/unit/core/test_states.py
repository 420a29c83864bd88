"""Tests for clearance submission states and transitions."""

from clearance.core.workflow.states import (
    SubmissionStatus, WorkflowAction,
    TERMINAL_STATES, REVIEWABLE_STATES,
    can_transition, get_transition_rule, submit_action_for,
)


class TestSubmissionStates:
    """Test state definitions."""

    def test_all_states_defined(self):
        """Test that all expected states exist."""
        for state_name in ["not_started", "pending", "approved", "rejected"]:
            assert SubmissionStatus(state_name).value == state_name

    def test_approved_is_the_only_terminal_state(self):
        assert TERMINAL_STATES == {SubmissionStatus.APPROVED}

    def test_only_pending_is_reviewable(self):
        assert REVIEWABLE_STATES == {SubmissionStatus.PENDING}


class TestTransitions:
    """Test valid state transitions."""

    def test_submit_from_not_started(self):
        assert can_transition(SubmissionStatus.NOT_STARTED, WorkflowAction.SUBMIT)
        assert get_transition_rule(SubmissionStatus.NOT_STARTED, WorkflowAction.SUBMIT).to_state == SubmissionStatus.PENDING

    def test_review_from_pending(self):
        approve = get_transition_rule(SubmissionStatus.PENDING, WorkflowAction.APPROVE)
        reject = get_transition_rule(SubmissionStatus.PENDING, WorkflowAction.REJECT)
        assert approve.to_state == SubmissionStatus.APPROVED
        assert reject.to_state == SubmissionStatus.REJECTED

    def test_resubmit_starts_new_round(self):
        rule = get_transition_rule(SubmissionStatus.REJECTED, WorkflowAction.RESUBMIT)
        assert rule.to_state == SubmissionStatus.PENDING
        assert rule.starts_round

    def test_edit_keeps_round(self):
        rule = get_transition_rule(SubmissionStatus.PENDING, WorkflowAction.EDIT)
        assert rule.to_state == SubmissionStatus.PENDING
        assert not rule.starts_round

    def test_reject_requires_comment(self):
        assert get_transition_rule(SubmissionStatus.PENDING, WorkflowAction.REJECT).requires_comment
        assert not get_transition_rule(SubmissionStatus.PENDING, WorkflowAction.APPROVE).requires_comment

    def test_approved_has_no_transitions(self):
        for action in WorkflowAction:
            assert not can_transition(SubmissionStatus.APPROVED, action)

    def test_cannot_review_rejected(self):
        assert not can_transition(SubmissionStatus.REJECTED, WorkflowAction.APPROVE)
        assert not can_transition(SubmissionStatus.REJECTED, WorkflowAction.REJECT)
        assert get_transition_rule(SubmissionStatus.REJECTED, WorkflowAction.APPROVE) is None


class TestSubmitActionFor:
    """Test mapping of a submit call onto a transition."""

    def test_mapping(self):
        assert submit_action_for(SubmissionStatus.NOT_STARTED) == WorkflowAction.SUBMIT
        assert submit_action_for(SubmissionStatus.PENDING) == WorkflowAction.EDIT
        assert submit_action_for(SubmissionStatus.REJECTED) == WorkflowAction.RESUBMIT

    def test_no_action_once_approved(self):
        assert submit_action_for(SubmissionStatus.APPROVED) is None
