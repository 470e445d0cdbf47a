"""
Final Repair Costing Models (``assessment_modules.frc.models``).

Responsibility
--------------
Frozen value objects for reconciliation: the snapshotted FRC line with its
decision, the sign-off, and the report totals split by source.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O.

Invariants enforced
-------------------
* ``FRCLine.quoted``, ``quantities_snapshot`` and ``rate_snapshot`` are
  fixed at compose time.  Later changes to estimate or ledger rates never
  reach a composed line.
* ``actual`` is None until the line is decided.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from assessment_kernel.domain.line_items import CostBreakdown, LineItem, Quantities
from assessment_kernel.domain.values import ZERO, PartType, ProcessType, RateSet


class FRCSource(str, Enum):
    ESTIMATE = "estimate"
    ADDITIONAL = "additional"


class LineDecision(str, Enum):
    PENDING = "pending"
    AGREED = "agreed"
    ADJUSTED = "adjusted"


class FRCStatus(str, Enum):
    """Must align with ``workflows.FRC_WORKFLOW.states``."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SignOff:
    name: str
    role: str
    signed_at: datetime
    notes: str | None = None
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role,
            "signed_at": self.signed_at.isoformat(),
            "notes": self.notes,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SignOff:
        return cls(
            name=data["name"],
            role=data["role"],
            signed_at=datetime.fromisoformat(data["signed_at"]),
            notes=data.get("notes"),
            email=data.get("email"),
        )


@dataclass(frozen=True)
class FRCLine:
    """
    One reconciled line.

    Contract:
        Built with ``FRCLine.snapshot``.  Deciding a line replaces the
        record; quoted values and snapshots are never touched.
    """

    id: UUID
    source_type: FRCSource
    source_line_id: UUID
    description: str
    process_type: ProcessType
    part_type: PartType | None
    quoted: CostBreakdown
    quantities_snapshot: Quantities
    rate_snapshot: RateSet
    decision: LineDecision = LineDecision.PENDING
    actual: CostBreakdown | None = None
    actual_quantities: Quantities | None = None
    adjust_reason: str | None = None
    decided_at: datetime | None = None
    decided_in_revision: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_type", FRCSource(self.source_type))
        object.__setattr__(self, "process_type", ProcessType(self.process_type))
        object.__setattr__(self, "decision", LineDecision(self.decision))
        if self.part_type is not None:
            object.__setattr__(self, "part_type", PartType(self.part_type))

    @classmethod
    def snapshot(
        cls,
        source_type: FRCSource,
        source_line_id: UUID,
        line: LineItem,
        rate_set: RateSet,
    ) -> FRCLine:
        return cls(
            id=uuid4(),
            source_type=source_type,
            source_line_id=source_line_id,
            description=line.description,
            process_type=line.process_type,
            part_type=line.part_type,
            quoted=line.computed,
            quantities_snapshot=line.quantities,
            rate_snapshot=rate_set,
        )

    @property
    def source_key(self) -> tuple[FRCSource, UUID]:
        return (self.source_type, self.source_line_id)

    @property
    def is_decided(self) -> bool:
        return self.decision is not LineDecision.PENDING

    @property
    def actual_or_quoted(self) -> CostBreakdown:
        return self.actual if self.actual is not None else self.quoted

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "source_type": self.source_type.value,
            "source_line_id": str(self.source_line_id),
            "description": self.description,
            "process_type": self.process_type.value,
            "part_type": self.part_type.value if self.part_type else None,
            "quoted": self.quoted.to_dict(),
            "quantities_snapshot": self.quantities_snapshot.to_dict(),
            "rate_snapshot": self.rate_snapshot.to_dict(),
            "decision": self.decision.value,
            "actual": self.actual.to_dict() if self.actual else None,
            "actual_quantities": self.actual_quantities.to_dict() if self.actual_quantities else None,
            "adjust_reason": self.adjust_reason,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "decided_in_revision": self.decided_in_revision,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FRCLine:
        return cls(
            id=UUID(data["id"]),
            source_type=FRCSource(data["source_type"]),
            source_line_id=UUID(data["source_line_id"]),
            description=data["description"],
            process_type=ProcessType(data["process_type"]),
            part_type=data.get("part_type"),
            quoted=CostBreakdown.from_dict(data["quoted"]),
            quantities_snapshot=Quantities.from_dict(data["quantities_snapshot"]),
            rate_snapshot=RateSet.from_dict(data["rate_snapshot"]),
            decision=LineDecision(data["decision"]),
            actual=CostBreakdown.from_dict(data["actual"]) if data.get("actual") else None,
            actual_quantities=(
                Quantities.from_dict(data["actual_quantities"])
                if data.get("actual_quantities") else None
            ),
            adjust_reason=data.get("adjust_reason"),
            decided_at=datetime.fromisoformat(data["decided_at"]) if data.get("decided_at") else None,
            decided_in_revision=data.get("decided_in_revision"),
        )


@dataclass(frozen=True)
class ComponentTotals:
    """FRC report columns for one group of lines (VAT exclusive)."""

    parts_nett: Decimal = ZERO
    parts_markup: Decimal = ZERO
    labour: Decimal = ZERO
    paint: Decimal = ZERO
    outwork: Decimal = ZERO

    @property
    def parts(self) -> Decimal:
        return self.parts_nett + self.parts_markup

    @property
    def subtotal(self) -> Decimal:
        return self.parts + self.labour + self.paint + self.outwork

    @classmethod
    def from_breakdowns(cls, breakdowns: Iterable[CostBreakdown]) -> ComponentTotals:
        parts_nett = parts_markup = labour = paint = outwork = ZERO
        for b in breakdowns:
            parts_nett += b.part_nett
            parts_markup += b.part_markup
            labour += b.labour_total
            paint += b.paint_cost
            outwork += b.outwork_cost
        return cls(parts_nett, parts_markup, labour, paint, outwork)


@dataclass(frozen=True)
class FRCTotals:
    """Quoted or actual totals of a reconciliation, split by source."""

    estimate: ComponentTotals
    additionals: ComponentTotals
    vat_percentage: Decimal
    vat_amount: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.estimate.subtotal + self.additionals.subtotal

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.vat_amount
