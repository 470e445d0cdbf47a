"""
Assessment engines -- pure calculation layer, zero I/O.

Engines:
    costing     line-item pricing by process type
    totals      subtotal / VAT / total helpers
    threshold   repair-cost-to-valuation risk tiers
    valuation   write-off and salvage figures
    variance    quoted vs actual comparisons
"""

from assessment_engines.costing import cost, derive_actual, price_line, validate_quantities
from assessment_engines.threshold import (
    RiskTier,
    ThresholdEvaluator,
    ThresholdResult,
    ThresholdTiers,
)
from assessment_engines.totals import calculate_subtotal, calculate_total, calculate_vat
from assessment_engines.valuation import (
    ValuationBasis,
    WriteOffFigures,
    WriteOffPercentages,
    compute_write_off_values,
)
from assessment_engines.variance import (
    LineVariance,
    VarianceComponent,
    VarianceResult,
    aggregate_variance,
    line_variance,
)

__all__ = [
    "LineVariance",
    "RiskTier",
    "ThresholdEvaluator",
    "ThresholdResult",
    "ThresholdTiers",
    "ValuationBasis",
    "VarianceComponent",
    "VarianceResult",
    "WriteOffFigures",
    "WriteOffPercentages",
    "aggregate_variance",
    "calculate_subtotal",
    "calculate_total",
    "calculate_vat",
    "compute_write_off_values",
    "cost",
    "derive_actual",
    "line_variance",
    "price_line",
    "validate_quantities",
]
