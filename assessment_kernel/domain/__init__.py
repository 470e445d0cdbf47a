"""
Assessment kernel domain layer -- pure value objects, zero I/O.
"""

from assessment_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from assessment_kernel.domain.line_items import (
    PROCESS_RULES,
    CostBreakdown,
    CostComponent,
    LineItem,
    ProcessRule,
    Quantities,
    rule_for,
)
from assessment_kernel.domain.protocols import (
    AggregateRepository,
    AuditRecord,
    AuditSink,
    WorkflowStatusBridge,
)
from assessment_kernel.domain.values import PartType, ProcessType, RateSet

__all__ = [
    "AggregateRepository",
    "AuditRecord",
    "AuditSink",
    "Clock",
    "CostBreakdown",
    "CostComponent",
    "DeterministicClock",
    "LineItem",
    "PROCESS_RULES",
    "PartType",
    "ProcessRule",
    "ProcessType",
    "Quantities",
    "RateSet",
    "SystemClock",
    "WorkflowStatusBridge",
    "rule_for",
]
