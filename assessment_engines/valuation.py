"""
assessment_engines.valuation -- Write-off and salvage figures per valuation basis.

Responsibility:
    Given a vehicle's retail, market and trade values and the insurer's
    write-off percentages, compute the borderline write-off, total
    write-off and salvage amounts for each basis.  These are the reference
    figures an assessor compares the combined repair total against.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Failure modes:
    - ValueError if a percentage is negative or above 100.
    - InvalidValuationError if a retail, market or trade value is negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from assessment_kernel.domain.values import HUNDRED, ZERO, round_money, to_decimal
from assessment_kernel.exceptions import InvalidValuationError


class ValuationBasis(str, Enum):
    RETAIL = "retail"
    MARKET = "market"
    TRADE = "trade"


@dataclass(frozen=True)
class WriteOffPercentages:
    """Insurer-specific percentages of a valuation."""

    borderline_writeoff_pct: Decimal
    total_writeoff_pct: Decimal
    salvage_pct: Decimal

    def __post_init__(self) -> None:
        for name in ("borderline_writeoff_pct", "total_writeoff_pct", "salvage_pct"):
            value = to_decimal(getattr(self, name), name)
            if value < ZERO or value > HUNDRED:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")
            object.__setattr__(self, name, value)


@dataclass(frozen=True)
class WriteOffFigures:
    basis: ValuationBasis
    value: Decimal
    borderline_writeoff: Decimal
    total_writeoff: Decimal
    salvage: Decimal


def write_off_figures(
    basis: ValuationBasis,
    value: Decimal,
    percentages: WriteOffPercentages,
) -> WriteOffFigures:
    value = to_decimal(value, "value")
    if value < ZERO:
        raise InvalidValuationError(value, basis=basis.value)
    return WriteOffFigures(
        basis=basis,
        value=value,
        borderline_writeoff=round_money(value * percentages.borderline_writeoff_pct / HUNDRED),
        total_writeoff=round_money(value * percentages.total_writeoff_pct / HUNDRED),
        salvage=round_money(value * percentages.salvage_pct / HUNDRED),
    )


def compute_write_off_values(
    percentages: WriteOffPercentages,
    retail_value: Decimal | None = None,
    market_value: Decimal | None = None,
    trade_value: Decimal | None = None,
) -> dict[ValuationBasis, WriteOffFigures]:
    """Figures for every basis that has a value; missing bases are skipped."""
    values = {
        ValuationBasis.RETAIL: retail_value,
        ValuationBasis.MARKET: market_value,
        ValuationBasis.TRADE: trade_value,
    }
    return {
        basis: write_off_figures(basis, value, percentages)
        for basis, value in values.items()
        if value is not None
    }
