"""
Final Repair Costing Workflow (``assessment_modules.frc.workflows``).

Responsibility
--------------
Declares the FRC lifecycle: lines are decided and synced while in
progress, completion requires every line decided and a sign-off, and
reopen is the single sanctioned way back.

Architecture position
---------------------
**Modules layer** -- declarative workflow definitions.
"""

from assessment_kernel.domain.workflow import Guard, Transition, Workflow
from assessment_kernel.logging_config import get_logger

logger = get_logger("modules.frc.workflows")


ALL_LINES_DECIDED = Guard(
    name="all_lines_decided",
    description="No FRC line is still pending",
)

REOPEN_REASON_PROVIDED = Guard(
    name="reopen_reason_provided",
    description="A non-blank reason accompanies the reopen",
)

FRC_WORKFLOW = Workflow(
    name="final_repair_costing",
    description="Quoted-versus-actual reconciliation lifecycle",
    initial_state="in_progress",
    states=(
        "in_progress",
        "completed",
    ),
    transitions=(
        Transition("in_progress", "in_progress", action="decide"),
        Transition("in_progress", "in_progress", action="sync"),
        Transition("in_progress", "completed", action="complete", guard=ALL_LINES_DECIDED),
        Transition("completed", "in_progress", action="reopen", guard=REOPEN_REASON_PROVIDED),
    ),
)

logger.info(
    "frc_workflow_registered",
    extra={
        "workflow_name": FRC_WORKFLOW.name,
        "state_count": len(FRC_WORKFLOW.states),
        "transition_count": len(FRC_WORKFLOW.transitions),
        "initial_state": FRC_WORKFLOW.initial_state,
    },
)
