"""
Property-based tests for the financial invariants.

Hypothesis generates rates, quantities and valuations; every generated
case must satisfy:
- estimate subtotal is the sum of its line totals and total = subtotal + VAT
- pricing the same line twice gives identical results
- approving then reversing an additional nets to zero
- a higher repair total never lands in a lower risk tier
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from assessment_engines.costing import price_line
from assessment_engines.threshold import RiskTier, ThresholdEvaluator
from assessment_kernel.domain.clock import DeterministicClock
from assessment_kernel.domain.line_items import LineItem
from assessment_kernel.domain.values import RateSet, round_money
from assessment_modules.additionals.ledger import AdditionalsLedger
from assessment_modules.estimate.aggregate import Estimate

TIER_ORDER = [RiskTier.GREEN, RiskTier.YELLOW, RiskTier.ORANGE, RiskTier.RED]


def money(min_value="0.01", max_value="250000"):
    return st.decimals(
        min_value=Decimal(min_value),
        max_value=Decimal(max_value),
        places=2,
        allow_nan=False,
        allow_infinity=False,
    )


def hours():
    return st.decimals(min_value=Decimal("0.1"), max_value=Decimal("40"), places=2)


@st.composite
def rate_sets(draw):
    return RateSet(
        labour_rate=draw(money("100", "1500")),
        paint_rate=draw(money("500", "5000")),
        vat_percentage=draw(st.sampled_from([Decimal("0"), Decimal("14"), Decimal("15")])),
        oem_markup_pct=draw(st.decimals(min_value=0, max_value=50, places=1)),
        aftermarket_markup_pct=draw(st.decimals(min_value=0, max_value=50, places=1)),
        second_hand_markup_pct=draw(st.decimals(min_value=0, max_value=50, places=1)),
    )


@st.composite
def line_specs(draw):
    kind = draw(st.sampled_from(["N", "A", "O"]))
    if kind == "N":
        return (
            "N",
            {
                "nett_part_price": draw(money()),
                "strip_assemble_hours": draw(hours()),
                "labour_hours": draw(hours()),
                "paint_panels": draw(st.decimals(min_value=0, max_value=5, places=2)),
            },
            draw(st.sampled_from(["oem", "aftermarket", "second_hand"])),
        )
    if kind == "A":
        return ("A", {"labour_hours": draw(hours())}, None)
    return ("O", {"outwork_charge": draw(money())}, None)


def _estimate(rates, specs):
    estimate = Estimate(rate_set=rates, clock=DeterministicClock())
    for process_type, quantities, part_type in specs:
        estimate.add_line(process_type, "generated line", quantities, part_type=part_type)
    return estimate


class TestEstimateTotals:

    @given(rates=rate_sets(), specs=st.lists(line_specs(), min_size=1, max_size=8))
    @settings(max_examples=60, deadline=None)
    def test_totals_reconcile(self, rates, specs):
        estimate = _estimate(rates, specs)

        subtotal = sum((line.total for line in estimate.line_items.values()), Decimal("0"))
        assert estimate.subtotal == subtotal
        assert estimate.vat_amount == round_money(subtotal * rates.vat_percentage / 100)
        assert estimate.total == estimate.subtotal + estimate.vat_amount

    @given(rates=rate_sets(), drawn=line_specs())
    @settings(max_examples=60, deadline=None)
    def test_pricing_is_deterministic(self, rates, drawn):
        process_type, quantities, part_type = drawn
        line = LineItem.create(process_type, "generated line", quantities, part_type)

        assert price_line(line, rates) == price_line(line, rates)

    @given(rates=rate_sets(), drawn=line_specs())
    @settings(max_examples=60, deadline=None)
    def test_line_total_is_two_place_money(self, rates, drawn):
        estimate = _estimate(rates, [drawn])

        total = next(iter(estimate.line_items.values())).total
        assert total == round_money(total)
        assert total >= 0


class TestAdditionalsNetting:

    @given(rates=rate_sets(), base=line_specs(), extras=st.lists(line_specs(), min_size=1, max_size=5))
    @settings(max_examples=40, deadline=None)
    def test_approve_then_reverse_nets_to_zero(self, rates, base, extras):
        estimate = _estimate(rates, [base])
        estimate.finalize()
        ledger = AdditionalsLedger.open_for(estimate, clock=DeterministicClock())

        for process_type, quantities, part_type in extras:
            entry = ledger.add_entry(process_type, "generated additional", quantities, part_type)
            ledger.approve(entry.id)
            ledger.reverse(entry.id, "not required")

        assert ledger.approved_total == Decimal("0")
        assert ledger.effective_lines() == ()
        assert ledger.combined_total(estimate) == estimate.total


class TestThresholdMonotonicity:

    @given(
        low=money("0", "500000"),
        extra=money("0", "500000"),
        valuation=money("1000", "1000000"),
    )
    @settings(max_examples=100, deadline=None)
    def test_higher_total_never_lower_tier(self, low, extra, valuation):
        evaluator = ThresholdEvaluator()

        lower = evaluator.evaluate(low, valuation)
        higher = evaluator.evaluate(low + extra, valuation)

        assert TIER_ORDER.index(higher.tier) >= TIER_ORDER.index(lower.tier)
        assert higher.percentage >= lower.percentage
