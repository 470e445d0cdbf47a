"""
AssessmentStageTracker -- reference WorkflowStatusBridge.

Responsibility:
    Moves an assessment between ``frc_in_progress`` and ``archived`` when
    its final repair costing is completed or reopened, validating each move
    against ``ASSESSMENT_WORKFLOW``.

Architecture position:
    Services layer.  Stands in for the host application's assessment
    workflow; keeps stages in memory.

Failure modes:
    - InvalidTransitionError when the tracked stage does not allow the move.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from assessment_kernel.logging_config import get_logger
from assessment_modules.assessment.workflows import ASSESSMENT_WORKFLOW, AssessmentStage

logger = get_logger("services.workflow_bridge")


@dataclass(frozen=True)
class StageChange:
    estimate_id: UUID
    from_stage: AssessmentStage
    to_stage: AssessmentStage
    action: str


class AssessmentStageTracker:
    """
    In-memory stage tracker keyed by estimate id.

    Estimates never tracked explicitly are treated as ``frc_in_progress``:
    the bridge is only signalled once reconciliation has started.
    """

    def __init__(self) -> None:
        self._stages: dict[UUID, AssessmentStage] = {}
        self.history: list[StageChange] = []

    def track(self, estimate_id: UUID, stage: AssessmentStage | str) -> None:
        self._stages[estimate_id] = AssessmentStage(stage)

    def stage_of(self, estimate_id: UUID) -> AssessmentStage:
        return self._stages.get(estimate_id, AssessmentStage.FRC_IN_PROGRESS)

    def reconciliation_completed(self, estimate_id: UUID) -> None:
        self._move(estimate_id, "complete_frc")

    def reconciliation_reopened(self, estimate_id: UUID) -> None:
        self._move(estimate_id, "reopen_frc")

    def _move(self, estimate_id: UUID, action: str) -> None:
        current = self.stage_of(estimate_id)
        transition = ASSESSMENT_WORKFLOW.require_transition(
            current.value, action, "assessment", estimate_id
        )
        target = AssessmentStage(transition.to_state)
        self._stages[estimate_id] = target
        self.history.append(StageChange(estimate_id, current, target, action))
        logger.info(
            "assessment_stage_changed",
            extra={
                "estimate_id": str(estimate_id),
                "from_stage": current.value,
                "to_stage": target.value,
                "action": action,
            },
        )
