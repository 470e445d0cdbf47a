"""
assessment_engines.costing -- Process-type-driven line-item costing.

Responsibility:
    Compute a line item's component costs and total from its process type,
    quantities and an applicable RateSet.  The same formulas price estimate
    lines, pending additionals and adjusted FRC actuals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import assessment_kernel/domain and assessment_kernel/exceptions.

Formulas:
    part_selling_price  = nett_part_price * (1 + markup(part_type) / 100)
    strip_assemble_cost = strip_assemble_hours * labour_rate
    labour_cost         = labour_hours * labour_rate
    paint_cost          = paint_panels * paint_rate
    outwork_cost        = outwork_charge            (never marked up)
    total               = sum of the components the process type uses

Invariants enforced:
    - Determinism: identical inputs produce identical CostBreakdowns; no
      clock access, no I/O, no hidden state.
    - A quantity the process type does not use never affects the result
      (an ALIGN line's nett part price is ignored).
    - Each component is rounded once via ``round_money``; the total is the
      sum of rounded components.

Failure modes:
    - InvalidLineItemError when a required quantity is None or negative, or
      when a NEW line has no part type.
"""

from __future__ import annotations

from dataclasses import replace

from assessment_engines.tracer import traced_engine
from assessment_kernel.domain.line_items import (
    CostBreakdown,
    CostComponent,
    LineItem,
    ProcessRule,
    Quantities,
    rule_for,
)
from assessment_kernel.domain.values import (
    HUNDRED,
    ZERO,
    PartType,
    ProcessType,
    RateSet,
    round_money,
)
from assessment_kernel.exceptions import InvalidLineItemError

ENGINE_VERSION = "1.0"


def validate_quantities(
    process_type: ProcessType | str,
    quantities: Quantities,
    part_type: PartType | str | None = None,
    line_id: object = None,
) -> ProcessRule:
    """Check every field the process type requires; return its rule.

    Raises:
        InvalidLineItemError: required field is None or negative.
    """
    rule = rule_for(process_type)
    for component in rule.components:
        value = quantities.get(component)
        if value is None or value < ZERO:
            raise InvalidLineItemError(
                field=component.quantity_field,
                process_type=rule.process_type.value,
                value=value,
                line_id=line_id,
            )
    if rule.requires_part_type and part_type is None:
        raise InvalidLineItemError(
            field="part_type",
            process_type=rule.process_type.value,
            line_id=line_id,
        )
    return rule


def _component_costs(
    rule: ProcessRule,
    quantities: Quantities,
    part_type: PartType | str | None,
    rate_set: RateSet,
) -> CostBreakdown:
    part_nett = part_markup = part_selling = ZERO
    strip_assemble = labour = paint = outwork = ZERO

    for component in rule.components:
        qty = quantities.get(component) or ZERO
        match component:
            case CostComponent.PART:
                markup_pct = rate_set.markup_for(part_type) if part_type else ZERO
                part_nett = round_money(qty)
                part_selling = round_money(qty * (1 + markup_pct / HUNDRED))
                part_markup = part_selling - part_nett
            case CostComponent.STRIP_ASSEMBLE:
                strip_assemble = round_money(qty * rate_set.labour_rate)
            case CostComponent.LABOUR:
                labour = round_money(qty * rate_set.labour_rate)
            case CostComponent.PAINT:
                paint = round_money(qty * rate_set.paint_rate)
            case CostComponent.OUTWORK:
                outwork = round_money(qty)

    return CostBreakdown(
        part_nett=part_nett,
        part_markup=part_markup,
        part_selling_price=part_selling,
        strip_assemble_cost=strip_assemble,
        labour_cost=labour,
        paint_cost=paint,
        outwork_cost=outwork,
        total=part_selling + strip_assemble + labour + paint + outwork,
    )


@traced_engine(
    "costing",
    ENGINE_VERSION,
    fingerprint_fields=("process_type", "quantities", "part_type", "rate_set"),
)
def cost(
    process_type: ProcessType | str,
    quantities: Quantities,
    part_type: PartType | str | None,
    rate_set: RateSet,
) -> CostBreakdown:
    """Price one line.

    Preconditions:
        Every quantity required by ``process_type`` is present and >= 0.
    Postconditions:
        Returns a CostBreakdown whose total is the sum of the components
        the process type uses.
    Raises:
        InvalidLineItemError: validation failure.
    """
    rule = validate_quantities(process_type, quantities, part_type)
    return _component_costs(rule, quantities, part_type, rate_set)


def price_line(line: LineItem, rate_set: RateSet) -> LineItem:
    """Return ``line`` with ``computed`` re-derived against ``rate_set``."""
    validate_quantities(line.process_type, line.quantities, line.part_type, line_id=line.id)
    computed = cost(line.process_type, line.quantities, line.part_type, rate_set)
    return replace(line, computed=computed)


@traced_engine(
    "costing.actual",
    ENGINE_VERSION,
    fingerprint_fields=("process_type", "quantities", "part_type", "rate_set"),
)
def derive_actual(
    process_type: ProcessType | str,
    quantities: Quantities,
    part_type: PartType | str | None,
    rate_set: RateSet,
) -> CostBreakdown:
    """Price invoiced actuals for a reconciled line.

    Uses the same formulas as ``cost``.  ``rate_set`` must be the rate
    snapshot taken when the line was reconciled, never the live rates.
    """
    return cost(process_type, quantities, part_type, rate_set)

