"""Clearance submission states and transitions.

State Machine Diagram (per stage, per person):

    ┌─────────────┐
    │ NOT_STARTED │ ← implicit, no record exists
    └──────┬──────┘
           │ submit
    ┌──────▼──────┐ ◄── edit (documents replaced, same round)
    │   PENDING   │
    └──┬───────┬──┘
       │       │
 approve│       │reject
       │       │
┌──────▼───┐ ┌─▼────────┐
│ APPROVED │ │ REJECTED │──── resubmit ───► PENDING (next round)
└──────────┘ └──────────┘

APPROVED is the only terminal state.
"""

from enum import Enum
from typing import Set, Dict, Optional, NamedTuple


class SubmissionStatus(str, Enum):
    """Effective status of a stage for one person."""

    NOT_STARTED = "not_started"  # Derived: no submission record
    PENDING = "pending"          # Awaiting review
    APPROVED = "approved"        # Cleared by the stage's reviewer
    REJECTED = "rejected"        # Returned to the person with a reason


class WorkflowAction(str, Enum):
    """Actions that trigger status transitions."""

    SUBMIT = "submit"        # NOT_STARTED → PENDING
    EDIT = "edit"            # PENDING → PENDING
    RESUBMIT = "resubmit"    # REJECTED → PENDING
    APPROVE = "approve"      # PENDING → APPROVED
    REJECT = "reject"        # PENDING → REJECTED


class TransitionRule(NamedTuple):
    """Defines a valid status transition."""
    from_state: SubmissionStatus
    to_state: SubmissionStatus
    action: WorkflowAction
    requires_comment: bool = False
    starts_round: bool = False


TRANSITION_RULES: list[TransitionRule] = [
    # Person-driven
    TransitionRule(SubmissionStatus.NOT_STARTED, SubmissionStatus.PENDING, WorkflowAction.SUBMIT,
                   starts_round=True),
    TransitionRule(SubmissionStatus.PENDING, SubmissionStatus.PENDING, WorkflowAction.EDIT),
    TransitionRule(SubmissionStatus.REJECTED, SubmissionStatus.PENDING, WorkflowAction.RESUBMIT,
                   starts_round=True),

    # Reviewer-driven
    TransitionRule(SubmissionStatus.PENDING, SubmissionStatus.APPROVED, WorkflowAction.APPROVE),
    TransitionRule(SubmissionStatus.PENDING, SubmissionStatus.REJECTED, WorkflowAction.REJECT,
                   requires_comment=True),
]

VALID_TRANSITIONS: Dict[SubmissionStatus, Set[WorkflowAction]] = {}
TRANSITION_TARGETS: Dict[tuple[SubmissionStatus, WorkflowAction], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.action)
    TRANSITION_TARGETS[(rule.from_state, rule.action)] = rule


# No outgoing transitions
TERMINAL_STATES: Set[SubmissionStatus] = {
    SubmissionStatus.APPROVED,
}

# States a reviewer can act on
REVIEWABLE_STATES: Set[SubmissionStatus] = {
    SubmissionStatus.PENDING,
}


def can_transition(from_state: SubmissionStatus, action: WorkflowAction) -> bool:
    """Check if an action is valid from the given state."""
    return action in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(from_state: SubmissionStatus, action: WorkflowAction) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, action))


def submit_action_for(current: SubmissionStatus) -> Optional[WorkflowAction]:
    """Map the current status to the action a submit call performs, if any."""
    return {
        SubmissionStatus.NOT_STARTED: WorkflowAction.SUBMIT,
        SubmissionStatus.PENDING: WorkflowAction.EDIT,
        SubmissionStatus.REJECTED: WorkflowAction.RESUBMIT,
    }.get(current)
