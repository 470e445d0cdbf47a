"""
Tests for the declarative workflows.

Verifies:
- Each workflow's states and transitions are internally consistent
- Stored status enums align with workflow states
- require_transition rejects undeclared actions with a typed error
"""

import pytest

from assessment_kernel.domain.workflow import Transition, Workflow
from assessment_kernel.exceptions import InvalidTransitionError
from assessment_modules.additionals.models import EntryStatus
from assessment_modules.additionals.workflows import ENTRY_WORKFLOW
from assessment_modules.assessment.workflows import ASSESSMENT_WORKFLOW, AssessmentStage
from assessment_modules.frc.models import FRCStatus
from assessment_modules.frc.workflows import FRC_WORKFLOW

ALL_WORKFLOWS = [ENTRY_WORKFLOW, FRC_WORKFLOW, ASSESSMENT_WORKFLOW]


class TestWorkflowDefinitions:

    @pytest.mark.parametrize("workflow", ALL_WORKFLOWS, ids=lambda w: w.name)
    def test_transitions_reference_declared_states(self, workflow):
        for t in workflow.transitions:
            assert t.from_state in workflow.states
            assert t.to_state in workflow.states

    @pytest.mark.parametrize("workflow", ALL_WORKFLOWS, ids=lambda w: w.name)
    def test_no_duplicate_actions_from_a_state(self, workflow):
        keys = [(t.from_state, t.action) for t in workflow.transitions]
        assert len(keys) == len(set(keys))

    def test_entry_status_aligns_with_workflow(self):
        assert {s.value for s in EntryStatus} <= set(ENTRY_WORKFLOW.states)

    def test_frc_status_aligns_with_workflow(self):
        assert {s.value for s in FRCStatus} == set(FRC_WORKFLOW.states)

    def test_assessment_stages_align_with_workflow(self):
        assert {s.value for s in AssessmentStage} == set(ASSESSMENT_WORKFLOW.states)

    def test_unknown_state_rejected_at_definition(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a",),
                transitions=(Transition("a", "b", action="go"),),
            )

    @pytest.mark.parametrize("workflow", ALL_WORKFLOWS, ids=lambda w: w.name)
    def test_terminal_states_have_no_actions(self, workflow):
        for state in workflow.terminal_states:
            assert workflow.allowed_actions(state) == ()

    def test_transition_out_of_terminal_state_rejected(self):
        with pytest.raises(ValueError, match="terminal state 'closed'"):
            Workflow(
                name="broken",
                description="",
                initial_state="open",
                states=("open", "closed"),
                transitions=(
                    Transition("open", "closed", action="close"),
                    Transition("closed", "open", action="reopen"),
                ),
                terminal_states=("closed",),
            )

    def test_undeclared_terminal_state_rejected(self):
        with pytest.raises(ValueError, match="not in states"):
            Workflow(
                name="broken",
                description="",
                initial_state="open",
                states=("open",),
                transitions=(),
                terminal_states=("archived",),
            )


class TestEntryWorkflow:

    def test_only_pending_entries_have_actions(self):
        assert set(ENTRY_WORKFLOW.allowed_actions("pending")) == {"edit", "approve", "decline", "delete"}
        assert ENTRY_WORKFLOW.allowed_actions("approved") == ()
        assert ENTRY_WORKFLOW.allowed_actions("declined") == ()

    def test_decline_is_guarded(self):
        transition = ENTRY_WORKFLOW.find_transition("pending", "decline")
        assert transition.guard is not None


class TestFrcWorkflow:

    def test_complete_and_reopen(self):
        assert FRC_WORKFLOW.require_transition("in_progress", "complete", "frc", "x").to_state == "completed"
        assert FRC_WORKFLOW.require_transition("completed", "reopen", "frc", "x").to_state == "in_progress"

    def test_no_decisions_when_completed(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            FRC_WORKFLOW.require_transition("completed", "decide", "frc", "frc-1")

        assert exc_info.value.current_state == "completed"
        assert "reopen" in exc_info.value.detail


class TestAssessmentWorkflow:

    def test_reconciliation_edge(self):
        assert ASSESSMENT_WORKFLOW.find_transition("frc_in_progress", "complete_frc").to_state == "archived"
        assert ASSESSMENT_WORKFLOW.find_transition("archived", "reopen_frc").to_state == "frc_in_progress"

    def test_cancelled_is_terminal(self):
        assert ASSESSMENT_WORKFLOW.allowed_actions("cancelled") == ()
        assert "cancelled" in ASSESSMENT_WORKFLOW.terminal_states
