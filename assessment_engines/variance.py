"""
assessment_engines.variance -- Quoted vs actual repair-cost variances.

Responsibility:
    Calculate component-level and line-level variances between the quoted
    breakdown captured when an FRC was composed and the actual (invoiced)
    breakdown recorded when each line was decided.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ``assessment_modules.frc``.

Invariants enforced:
    - Identical inputs produce identical outputs; no clock access.
    - ``variance = actual - quoted`` for every component and for the total,
      so line variances sum to the aggregate variance exactly.
    - Division-by-zero safe: variance_percent is 0 when quoted is 0.

Usage:
    from assessment_engines.variance import line_variance

    result = line_variance(quoted=line.quoted, actual=line.actual)
    result.total.variance          # Decimal
    result.total.is_favorable      # True when the repair came in cheaper
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from assessment_kernel.domain.line_items import CostBreakdown
from assessment_kernel.domain.values import HUNDRED, ZERO, round_percent


class VarianceComponent(str, Enum):
    """Component a variance is measured on."""

    PARTS = "parts"
    STRIP_ASSEMBLE = "strip_assemble"
    LABOUR = "labour"
    PAINT = "paint"
    OUTWORK = "outwork"
    TOTAL = "total"


_BREAKDOWN_FIELDS: dict[VarianceComponent, str] = {
    VarianceComponent.PARTS: "part_selling_price",
    VarianceComponent.STRIP_ASSEMBLE: "strip_assemble_cost",
    VarianceComponent.LABOUR: "labour_cost",
    VarianceComponent.PAINT: "paint_cost",
    VarianceComponent.OUTWORK: "outwork_cost",
    VarianceComponent.TOTAL: "total",
}


@dataclass(frozen=True)
class VarianceResult:
    """
    Result of one quoted-vs-actual comparison.

    All fields are immutable. Use properties for derived values.
    """

    component: VarianceComponent
    quoted: Decimal
    actual: Decimal

    @property
    def variance(self) -> Decimal:
        return self.actual - self.quoted

    @property
    def is_favorable(self) -> bool:
        """True when the actual cost came in under the quote."""
        return self.actual < self.quoted

    @property
    def variance_percent(self) -> Decimal:
        """Variance as a percentage of quoted, rounded to 2 places."""
        if self.quoted == ZERO:
            return ZERO
        return round_percent(self.variance / abs(self.quoted) * HUNDRED)

    @property
    def absolute_variance(self) -> Decimal:
        return abs(self.variance)


@dataclass(frozen=True)
class LineVariance:
    """Per-component variances of one reconciled line."""

    components: tuple[VarianceResult, ...]

    def get(self, component: VarianceComponent) -> VarianceResult:
        for result in self.components:
            if result.component is component:
                return result
        raise KeyError(component)

    @property
    def total(self) -> VarianceResult:
        return self.get(VarianceComponent.TOTAL)


def line_variance(quoted: CostBreakdown, actual: CostBreakdown) -> LineVariance:
    """Compare every component of two breakdowns."""
    return LineVariance(
        components=tuple(
            VarianceResult(
                component=component,
                quoted=getattr(quoted, field_name),
                actual=getattr(actual, field_name),
            )
            for component, field_name in _BREAKDOWN_FIELDS.items()
        )
    )


def aggregate_variance(
    pairs: Iterable[tuple[CostBreakdown, CostBreakdown]],
) -> LineVariance:
    """Sum quoted and actual per component across (quoted, actual) pairs."""
    quoted_sums = {c: ZERO for c in _BREAKDOWN_FIELDS}
    actual_sums = {c: ZERO for c in _BREAKDOWN_FIELDS}
    for quoted, actual in pairs:
        for component, field_name in _BREAKDOWN_FIELDS.items():
            quoted_sums[component] += getattr(quoted, field_name)
            actual_sums[component] += getattr(actual, field_name)
    return LineVariance(
        components=tuple(
            VarianceResult(component=c, quoted=quoted_sums[c], actual=actual_sums[c])
            for c in _BREAKDOWN_FIELDS
        )
    )
