"""
Assessment Stage Workflow (``assessment_modules.assessment.workflows``).

Responsibility
--------------
Declares the assessment lifecycle from request through archive.  The
financial core only drives the reconciliation edge
(``frc_in_progress`` <-> ``archived``); the other transitions exist so the
stage tracker validates against the full lifecycle.

Architecture position
---------------------
**Modules layer** -- declarative workflow definitions.
"""

from enum import Enum

from assessment_kernel.domain.workflow import Guard, Transition, Workflow
from assessment_kernel.logging_config import get_logger

logger = get_logger("modules.assessment.workflows")


class AssessmentStage(str, Enum):
    """Must align with ``ASSESSMENT_WORKFLOW.states``."""
    REQUEST_SUBMITTED = "request_submitted"
    REQUEST_REVIEWED = "request_reviewed"
    INSPECTION_SCHEDULED = "inspection_scheduled"
    APPOINTMENT_SCHEDULED = "appointment_scheduled"
    ASSESSMENT_IN_PROGRESS = "assessment_in_progress"
    ESTIMATE_REVIEW = "estimate_review"
    ESTIMATE_SENT = "estimate_sent"
    ESTIMATE_FINALIZED = "estimate_finalized"
    FRC_IN_PROGRESS = "frc_in_progress"
    ARCHIVED = "archived"
    CANCELLED = "cancelled"


FRC_SIGNED_OFF = Guard(
    name="frc_signed_off",
    description="Final repair costing completed with a sign-off",
)

ASSESSMENT_WORKFLOW = Workflow(
    name="assessment",
    description="Vehicle damage assessment lifecycle",
    initial_state=AssessmentStage.REQUEST_SUBMITTED.value,
    states=tuple(stage.value for stage in AssessmentStage),
    terminal_states=(AssessmentStage.CANCELLED.value,),
    transitions=(
        Transition("request_submitted", "request_reviewed", action="review_request"),
        Transition("request_reviewed", "inspection_scheduled", action="schedule_inspection"),
        Transition("inspection_scheduled", "appointment_scheduled", action="schedule_appointment"),
        Transition("appointment_scheduled", "assessment_in_progress", action="start_assessment"),
        Transition("assessment_in_progress", "estimate_review", action="submit_estimate"),
        Transition("estimate_review", "estimate_sent", action="send_estimate"),
        Transition("estimate_sent", "estimate_finalized", action="finalize_estimate"),
        Transition("estimate_finalized", "frc_in_progress", action="start_frc"),
        Transition("frc_in_progress", "archived", action="complete_frc", guard=FRC_SIGNED_OFF),
        Transition("archived", "frc_in_progress", action="reopen_frc"),
        Transition("request_submitted", "cancelled", action="cancel"),
        Transition("request_reviewed", "cancelled", action="cancel"),
        Transition("inspection_scheduled", "cancelled", action="cancel"),
        Transition("appointment_scheduled", "cancelled", action="cancel"),
        Transition("assessment_in_progress", "cancelled", action="cancel"),
    ),
)

logger.info(
    "assessment_workflow_registered",
    extra={
        "workflow_name": ASSESSMENT_WORKFLOW.name,
        "state_count": len(ASSESSMENT_WORKFLOW.states),
        "transition_count": len(ASSESSMENT_WORKFLOW.transitions),
        "initial_state": ASSESSMENT_WORKFLOW.initial_state,
    },
)
