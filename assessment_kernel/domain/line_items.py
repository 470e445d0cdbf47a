"""
Line items -- the priced unit shared by estimates, additionals and FRC.

Responsibility:
    Defines the process-type rule table (which cost components a process
    type carries), the quantity and cost-breakdown value objects, and the
    frozen LineItem that travels between the three ledgers.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Costing happens in ``assessment_engines.costing``; this module only
    describes shapes and the tagged-variant rule table the engine switches on.

Invariants enforced:
    - A LineItem's ``computed`` breakdown is only ever produced by the
      costing engine (``price_line``); there is no setter for cost fields.
    - ``negated()`` flips every quantity and every cost so that a removal
      or reversal nets to exactly zero against its source.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from assessment_kernel.domain.values import (
    ZERO,
    PartType,
    ProcessType,
    decimal_str,
    optional_decimal,
    to_decimal,
)


class CostComponent(str, Enum):
    """A cost component of a line and the quantity field that drives it."""

    PART = "part"
    STRIP_ASSEMBLE = "strip_assemble"
    LABOUR = "labour"
    PAINT = "paint"
    OUTWORK = "outwork"

    @property
    def quantity_field(self) -> str:
        return _QUANTITY_FIELDS[self]


_QUANTITY_FIELDS: dict[CostComponent, str] = {
    CostComponent.PART: "nett_part_price",
    CostComponent.STRIP_ASSEMBLE: "strip_assemble_hours",
    CostComponent.LABOUR: "labour_hours",
    CostComponent.PAINT: "paint_panels",
    CostComponent.OUTWORK: "outwork_charge",
}


@dataclass(frozen=True)
class ProcessRule:
    """Cost components that apply to one process type.

    Contract: frozen, descriptive only.
    Non-goals: does not price anything -- the costing engine does.
    """

    process_type: ProcessType
    components: tuple[CostComponent, ...]
    requires_part_type: bool = False

    def uses(self, component: CostComponent) -> bool:
        return component in self.components

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(c.quantity_field for c in self.components)


PROCESS_RULES: dict[ProcessType, ProcessRule] = {
    ProcessType.NEW: ProcessRule(
        ProcessType.NEW,
        (
            CostComponent.PART,
            CostComponent.STRIP_ASSEMBLE,
            CostComponent.LABOUR,
            CostComponent.PAINT,
        ),
        requires_part_type=True,
    ),
    ProcessType.REPAIR: ProcessRule(
        ProcessType.REPAIR,
        (CostComponent.STRIP_ASSEMBLE, CostComponent.LABOUR, CostComponent.PAINT),
    ),
    ProcessType.PAINT: ProcessRule(
        ProcessType.PAINT,
        (CostComponent.STRIP_ASSEMBLE, CostComponent.PAINT),
    ),
    ProcessType.BLEND: ProcessRule(
        ProcessType.BLEND,
        (CostComponent.STRIP_ASSEMBLE, CostComponent.PAINT),
    ),
    ProcessType.ALIGN: ProcessRule(
        ProcessType.ALIGN,
        (CostComponent.LABOUR,),
    ),
    ProcessType.OUTWORK: ProcessRule(
        ProcessType.OUTWORK,
        (CostComponent.OUTWORK,),
    ),
}


def rule_for(process_type: ProcessType | str) -> ProcessRule:
    return PROCESS_RULES[ProcessType(process_type)]


@dataclass(frozen=True)
class Quantities:
    """Inputs a line is priced from; which ones matter depends on its rule."""

    nett_part_price: Decimal | None = None
    strip_assemble_hours: Decimal | None = None
    labour_hours: Decimal | None = None
    paint_panels: Decimal | None = None
    outwork_charge: Decimal | None = None

    def __post_init__(self) -> None:
        for f in fields(self):
            object.__setattr__(
                self, f.name, optional_decimal(getattr(self, f.name), f.name)
            )

    def get(self, component: CostComponent) -> Decimal | None:
        return getattr(self, component.quantity_field)

    def merged(self, patch: Mapping[str, Any]) -> Quantities:
        """Return a copy with ``patch`` applied; unknown keys raise KeyError."""
        known = {f.name for f in fields(self)}
        unknown = set(patch) - known
        if unknown:
            raise KeyError(f"Unknown quantity field(s): {sorted(unknown)}")
        return replace(self, **dict(patch))

    def negated(self) -> Quantities:
        return Quantities(
            **{
                f.name: None if getattr(self, f.name) is None else -getattr(self, f.name)
                for f in fields(self)
            }
        )

    def to_dict(self) -> dict[str, str | None]:
        return {f.name: decimal_str(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Quantities:
        return cls(**dict(data or {}))


@dataclass(frozen=True)
class CostBreakdown:
    """Component costs and total of a priced line.

    ``part_selling_price = part_nett + part_markup``; ``total`` is the sum
    of the components that apply to the line's process type.
    """

    part_nett: Decimal = ZERO
    part_markup: Decimal = ZERO
    part_selling_price: Decimal = ZERO
    strip_assemble_cost: Decimal = ZERO
    labour_cost: Decimal = ZERO
    paint_cost: Decimal = ZERO
    outwork_cost: Decimal = ZERO
    total: Decimal = ZERO

    def __post_init__(self) -> None:
        for f in fields(self):
            object.__setattr__(self, f.name, to_decimal(getattr(self, f.name), f.name))

    @property
    def labour_total(self) -> Decimal:
        """Labour including strip & assemble, as reported on the FRC."""
        return self.strip_assemble_cost + self.labour_cost

    def component_cost(self, component: CostComponent) -> Decimal:
        if component is CostComponent.PART:
            return self.part_selling_price
        if component is CostComponent.STRIP_ASSEMBLE:
            return self.strip_assemble_cost
        if component is CostComponent.LABOUR:
            return self.labour_cost
        if component is CostComponent.PAINT:
            return self.paint_cost
        return self.outwork_cost

    def negated(self) -> CostBreakdown:
        return CostBreakdown(**{f.name: -getattr(self, f.name) for f in fields(self)})

    def to_dict(self) -> dict[str, str]:
        return {f.name: str(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CostBreakdown:
        return cls(**dict(data))


@dataclass(frozen=True)
class LineItem:
    """
    A single priced line.

    Contract:
        Construct with ``LineItem.create`` (unpriced) and price it with
        ``assessment_engines.costing.price_line``.  Editing a quantity means
        building a new LineItem and pricing it again.
    """

    id: UUID
    process_type: ProcessType
    description: str
    quantities: Quantities = field(default_factory=Quantities)
    part_type: PartType | None = None
    computed: CostBreakdown = field(default_factory=CostBreakdown)

    def __post_init__(self) -> None:
        object.__setattr__(self, "process_type", ProcessType(self.process_type))
        if self.part_type is not None:
            object.__setattr__(self, "part_type", PartType(self.part_type))

    @classmethod
    def create(
        cls,
        process_type: ProcessType | str,
        description: str,
        quantities: Quantities | Mapping[str, Any] | None = None,
        part_type: PartType | str | None = None,
        line_id: UUID | None = None,
    ) -> LineItem:
        if quantities is None:
            quantities = Quantities()
        elif not isinstance(quantities, Quantities):
            quantities = Quantities.from_dict(quantities)
        return cls(
            id=line_id or uuid4(),
            process_type=ProcessType(process_type),
            description=description,
            quantities=quantities,
            part_type=part_type,
        )

    @property
    def total(self) -> Decimal:
        return self.computed.total

    @property
    def rule(self) -> ProcessRule:
        return rule_for(self.process_type)

    def negated(self, line_id: UUID | None = None) -> LineItem:
        """Sign-inverse copy: every quantity and cost negated."""
        return replace(
            self,
            id=line_id or uuid4(),
            quantities=self.quantities.negated(),
            computed=self.computed.negated(),
        )

    def copied(self, line_id: UUID | None = None) -> LineItem:
        """Same-sign copy under a new id."""
        return replace(self, id=line_id or uuid4())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "process_type": self.process_type.value,
            "description": self.description,
            "quantities": self.quantities.to_dict(),
            "part_type": self.part_type.value if self.part_type else None,
            "computed": self.computed.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LineItem:
        return cls(
            id=UUID(str(data["id"])),
            process_type=ProcessType(data["process_type"]),
            description=data["description"],
            quantities=Quantities.from_dict(data.get("quantities")),
            part_type=data.get("part_type"),
            computed=CostBreakdown.from_dict(data["computed"]),
        )
