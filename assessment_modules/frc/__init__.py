"""Final repair costing: quoted-versus-actual reconciliation."""

from assessment_modules.frc.models import (
    ComponentTotals,
    FRCLine,
    FRCSource,
    FRCStatus,
    FRCTotals,
    LineDecision,
    SignOff,
)
from assessment_modules.frc.reconciliation import (
    ENTITY_TYPE,
    FinalRepairCosting,
    FRCVarianceSummary,
    SyncResult,
)
from assessment_modules.frc.workflows import FRC_WORKFLOW

__all__ = [
    "ENTITY_TYPE",
    "FRC_WORKFLOW",
    "ComponentTotals",
    "FRCLine",
    "FRCSource",
    "FRCStatus",
    "FRCTotals",
    "FRCVarianceSummary",
    "FinalRepairCosting",
    "LineDecision",
    "SignOff",
    "SyncResult",
]
