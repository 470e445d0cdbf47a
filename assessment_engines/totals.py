"""
assessment_engines.totals -- Subtotal / VAT / total helpers.

Shared by the Estimate, the AdditionalsLedger and the FRC so every ledger
rounds VAT the same way.  Pure functions, zero I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from assessment_kernel.domain.line_items import LineItem
from assessment_kernel.domain.values import HUNDRED, ZERO, round_money


def calculate_subtotal(lines: Iterable[LineItem]) -> Decimal:
    """Sum of line totals (negative lines included)."""
    return sum((line.total for line in lines), ZERO)


def calculate_vat(subtotal: Decimal, vat_percentage: Decimal) -> Decimal:
    return round_money(subtotal * vat_percentage / HUNDRED)


def calculate_total(subtotal: Decimal, vat_amount: Decimal) -> Decimal:
    return subtotal + vat_amount
