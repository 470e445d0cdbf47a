"""ORM models for the reference persistence layer."""

from assessment_kernel.models.aggregates import (
    AdditionalsEntryRecord,
    AdditionalsLedgerRecord,
    EstimateRecord,
    FinalRepairCostingRecord,
)
from assessment_kernel.models.audit_event import AuditLogRecord


def import_all_models() -> None:
    """Import every ORM model so Base.metadata knows all tables."""
    from assessment_kernel.services import sequence_service  # noqa: F401  SequenceCounter table


__all__ = [
    "AdditionalsEntryRecord",
    "AdditionalsLedgerRecord",
    "AuditLogRecord",
    "EstimateRecord",
    "FinalRepairCostingRecord",
    "import_all_models",
]
