"""
assessment_engines.threshold -- Write-off risk tier classification.

Responsibility:
    Compare a repair total to an externally supplied reference valuation
    (retail, market or trade value) and classify the percentage into a
    risk tier.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Tiers (default boundaries, lower bound inclusive):
    red     percentage >= 90
    orange  60 <= percentage < 90
    yellow  25 <= percentage < 60
    green   percentage < 25

Invariants enforced:
    - Classification uses the exact (unrounded) percentage, so 89.99 of
      100 is orange and 90 of 100 is red.
    - The reported percentage is rounded to 2 places for display only.

Failure modes:
    - InvalidValuationError if the reference value is zero or negative.
    - ValueError if tier boundaries are not strictly ascending.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from assessment_engines.tracer import traced_engine
from assessment_kernel.domain.values import HUNDRED, ZERO, round_percent, to_decimal
from assessment_kernel.exceptions import InvalidValuationError


class RiskTier(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"


@dataclass(frozen=True)
class ThresholdTiers:
    """Lower bounds (inclusive, in percent) of the yellow/orange/red tiers."""

    yellow_from: Decimal = Decimal("25")
    orange_from: Decimal = Decimal("60")
    red_from: Decimal = Decimal("90")

    def __post_init__(self) -> None:
        for name in ("yellow_from", "orange_from", "red_from"):
            object.__setattr__(self, name, to_decimal(getattr(self, name), name))
        if not (ZERO <= self.yellow_from < self.orange_from < self.red_from):
            raise ValueError(
                "Threshold tiers must be ascending: "
                f"{self.yellow_from} < {self.orange_from} < {self.red_from}"
            )

    def classify(self, percentage: Decimal) -> RiskTier:
        if percentage >= self.red_from:
            return RiskTier.RED
        if percentage >= self.orange_from:
            return RiskTier.ORANGE
        if percentage >= self.yellow_from:
            return RiskTier.YELLOW
        return RiskTier.GREEN


@dataclass(frozen=True)
class ThresholdResult:
    tier: RiskTier
    percentage: Decimal


class ThresholdEvaluator:
    """
    Pure evaluator for repair-cost-to-valuation risk.

    Contract:
        No I/O; boundaries come in through the constructor (usually from
        ``assessment_config``).
    """

    def __init__(self, tiers: ThresholdTiers | None = None):
        self.tiers = tiers or ThresholdTiers()

    @traced_engine("threshold", "1.0", fingerprint_fields=("total", "reference_value"))
    def evaluate(self, total: Decimal, reference_value: Decimal) -> ThresholdResult:
        """Classify ``total`` as a percentage of ``reference_value``.

        Raises:
            InvalidValuationError: reference_value <= 0.
        """
        total = to_decimal(total, "total")
        reference_value = to_decimal(reference_value, "reference_value")
        if reference_value <= ZERO:
            raise InvalidValuationError(reference_value)

        percentage = total / reference_value * HUNDRED
        return ThresholdResult(
            tier=self.tiers.classify(percentage),
            percentage=round_percent(percentage),
        )


def evaluate(total: Decimal, reference_value: Decimal) -> ThresholdResult:
    """Module-level shortcut using the default tier boundaries."""
    return ThresholdEvaluator().evaluate(total, reference_value)
