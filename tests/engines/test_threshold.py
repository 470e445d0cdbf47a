"""
Tests for the write-off risk threshold evaluator.

Tier boundaries are inclusive at the lower bound; classification uses the
unrounded percentage.
"""

from decimal import Decimal

import pytest

from assessment_engines.threshold import (
    RiskTier,
    ThresholdEvaluator,
    ThresholdTiers,
    evaluate,
)
from assessment_kernel.exceptions import InvalidValuationError


class TestDefaultTiers:

    @pytest.mark.parametrize(
        "total, expected",
        [
            ("90", RiskTier.RED),
            ("89.99", RiskTier.ORANGE),
            ("60", RiskTier.ORANGE),
            ("59.99", RiskTier.YELLOW),
            ("25", RiskTier.YELLOW),
            ("24.99", RiskTier.GREEN),
            ("0", RiskTier.GREEN),
            ("150", RiskTier.RED),
        ],
    )
    def test_boundaries_against_100(self, total, expected):
        result = evaluate(Decimal(total), Decimal("100"))
        assert result.tier is expected

    def test_percentage_is_reported_rounded(self):
        result = ThresholdEvaluator().evaluate(Decimal("1"), Decimal("3"))
        assert result.percentage == Decimal("33.33")
        assert result.tier is RiskTier.YELLOW

    def test_rounding_does_not_promote_tier(self):
        # 89.996% rounds to 90.00 for display but is still orange
        result = evaluate(Decimal("89996"), Decimal("100000"))
        assert result.percentage == Decimal("90.00")
        assert result.tier is RiskTier.ORANGE


class TestInvalidValuation:

    @pytest.mark.parametrize("reference", ["0", "-1"])
    def test_non_positive_reference_rejected(self, reference):
        with pytest.raises(InvalidValuationError) as exc_info:
            evaluate(Decimal("100"), Decimal(reference))

        assert exc_info.value.code == "INVALID_VALUATION"


class TestCustomTiers:

    def test_custom_boundaries(self):
        evaluator = ThresholdEvaluator(
            ThresholdTiers(yellow_from=Decimal("10"), orange_from=Decimal("50"), red_from=Decimal("75"))
        )
        assert evaluator.evaluate(Decimal("75"), Decimal("100")).tier is RiskTier.RED
        assert evaluator.evaluate(Decimal("10"), Decimal("100")).tier is RiskTier.YELLOW

    def test_boundaries_must_ascend(self):
        with pytest.raises(ValueError):
            ThresholdTiers(yellow_from=Decimal("60"), orange_from=Decimal("25"), red_from=Decimal("90"))

    def test_evaluation_emits_engine_trace(self, captured_logs):
        evaluate(Decimal("50"), Decimal("100"))

        traces = [r for r in captured_logs() if r["message"] == "ASSESSMENT_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "threshold"
        assert len(traces[-1]["input_fingerprint"]) == 16
