"""Service layer: transaction-scoped orchestration of the financial aggregates."""

from assessment_services.financials import AssessmentFinancialsService, AuditFailure
from assessment_services.workflow_bridge import AssessmentStageTracker, StageChange

__all__ = [
    "AssessmentFinancialsService",
    "AssessmentStageTracker",
    "AuditFailure",
    "StageChange",
]
