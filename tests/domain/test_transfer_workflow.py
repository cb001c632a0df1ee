"""
Transfer state machine definition.

Exhaustive checks that every (state, action) pair either maps to exactly one
transition or raises InvalidStateTransitionError, and that terminal states
are dead ends.
"""

import pytest

from stock_kernel.domain.workflow import Transition, Workflow
from stock_kernel.exceptions import InvalidStateTransitionError
from stock_modules.transfers.models import TransferStatus
from stock_modules.transfers.workflows import (
    APPROVE,
    CANCEL,
    COMPLETE,
    DISPATCH,
    RECEIVE,
    REJECT,
    TRANSFER_WORKFLOW,
)

ALL_ACTIONS = (APPROVE, REJECT, DISPATCH, RECEIVE, COMPLETE, CANCEL)

EXPECTED = {
    ("Pending", APPROVE): "Approved",
    ("Pending", REJECT): "Rejected",
    ("Pending", CANCEL): "Cancelled",
    ("Approved", DISPATCH): "In Transit",
    ("Approved", CANCEL): "Cancelled",
    ("In Transit", RECEIVE): "Delivered",
    ("In Transit", CANCEL): "Cancelled",
    ("Delivered", COMPLETE): "Completed",
}


class TestTransferWorkflowDefinition:

    def test_initial_state_is_pending(self):
        assert TRANSFER_WORKFLOW.initial_state == TransferStatus.PENDING.value

    def test_states_match_status_enum(self):
        assert set(TRANSFER_WORKFLOW.states) == {s.value for s in TransferStatus}

    def test_terminal_states(self):
        assert set(TRANSFER_WORKFLOW.terminal_states) == {
            "Completed", "Cancelled", "Rejected",
        }

    @pytest.mark.parametrize("state", [s.value for s in TransferStatus])
    @pytest.mark.parametrize("action", ALL_ACTIONS)
    def test_every_state_action_pair(self, state, action):
        expected = EXPECTED.get((state, action))
        if expected is None:
            with pytest.raises(InvalidStateTransitionError) as exc_info:
                TRANSFER_WORKFLOW.transition_for(state, action, entity="transfer TRF000001")
            assert exc_info.value.current_state == state
            assert exc_info.value.action == action
            assert exc_info.value.code == "INVALID_STATE_TRANSITION"
        else:
            transition = TRANSFER_WORKFLOW.transition_for(state, action, entity="t")
            assert transition.to_state == expected

    def test_terminal_states_have_no_actions(self):
        for state in TRANSFER_WORKFLOW.terminal_states:
            assert TRANSFER_WORKFLOW.actions_from(state) == ()

    def test_ledger_posting_transitions(self):
        posting = {
            (t.from_state, t.action)
            for t in TRANSFER_WORKFLOW.transitions
            if t.posts_movements
        }
        assert posting == {
            ("Approved", DISPATCH),
            ("Delivered", COMPLETE),
            ("In Transit", CANCEL),
        }

    def test_error_lists_allowed_states(self):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            TRANSFER_WORKFLOW.transition_for("Completed", CANCEL, entity="transfer X")
        assert set(exc_info.value.allowed_from) == {"Pending", "Approved", "In Transit"}
        assert "Completed" in str(exc_info.value)


class TestWorkflowValidation:

    def test_unknown_initial_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w",
                description="",
                initial_state="Nowhere",
                states=("A",),
                transitions=(),
            )

    def test_transition_to_unknown_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w",
                description="",
                initial_state="A",
                states=("A",),
                transitions=(Transition("A", "B", action="go"),),
            )

    def test_outgoing_transition_from_terminal_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w",
                description="",
                initial_state="A",
                states=("A", "B"),
                transitions=(Transition("B", "A", action="reopen"),),
                terminal_states=("B",),
            )
