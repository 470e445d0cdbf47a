"""Assessment lifecycle stages."""

from assessment_modules.assessment.workflows import ASSESSMENT_WORKFLOW, AssessmentStage

__all__ = ["ASSESSMENT_WORKFLOW", "AssessmentStage"]
