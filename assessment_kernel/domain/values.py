"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the RateSet value object, the ProcessType/PartType codes,
    and the decimal helpers every
    calculation in the system goes through.  Monetary values are always
    ``Decimal`` and are rounded in exactly one place (``round_money``).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by line_items, engines and every aggregate.

Invariants enforced:
    - All rates and markups are non-negative Decimals.
    - A RateSet is frozen: dependents copy it by value at snapshot time, so
      later rate edits never alter historical totals.
    - Money rounding is ROUND_HALF_UP to ``MONEY_DECIMAL_PLACES``.

Failure modes:
    - ValueError on construction with negative or non-numeric values.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

MONEY_DECIMAL_PLACES = 2
PERCENT_DECIMAL_PLACES = 2
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Coerce ``value`` to Decimal, rejecting floats' binary noise via str()."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be numeric, got bool")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid decimal for {field_name}: {value!r}") from e


def optional_decimal(value: Any, field_name: str = "value") -> Decimal | None:
    if value is None:
        return None
    return to_decimal(value, field_name)


def round_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """
    Round a monetary value.

    This is the ONLY sanctioned rounding function for money in the system.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def round_percent(value: Decimal) -> Decimal:
    return round_money(value, PERCENT_DECIMAL_PLACES)


def decimal_str(value: Decimal | None) -> str | None:
    """Serialize a Decimal for JSON state (None passes through)."""
    return None if value is None else str(value)


class ProcessType(str, Enum):
    """Repair process code; decides which cost components a line carries."""

    NEW = "N"
    REPAIR = "R"
    PAINT = "P"
    BLEND = "B"
    ALIGN = "A"
    OUTWORK = "O"


class PartType(str, Enum):
    """Part sourcing category; decides the markup applied to the nett price."""

    OEM = "oem"
    AFTERMARKET = "aftermarket"
    SECOND_HAND = "second_hand"


@dataclass(frozen=True, slots=True)
class RateSet:
    """
    Labour/paint rates, VAT and part markups in force for an estimate.

    Contract:
        Owned by exactly one Estimate; copied by value into an
        AdditionalsLedger and a FinalRepairCosting when they are created.

    Guarantees:
        - Immutable and hashable.
        - Every field is a non-negative Decimal.
    """

    labour_rate: Decimal
    paint_rate: Decimal
    vat_percentage: Decimal
    oem_markup_pct: Decimal = ZERO
    aftermarket_markup_pct: Decimal = ZERO
    second_hand_markup_pct: Decimal = ZERO

    def __post_init__(self) -> None:
        for f in fields(self):
            value = to_decimal(getattr(self, f.name), f.name)
            if value < ZERO:
                raise ValueError(f"{f.name} cannot be negative: {value}")
            object.__setattr__(self, f.name, value)

    def markup_for(self, part_type: PartType | str) -> Decimal:
        """Markup percentage for a part sourcing category."""
        part_type = PartType(part_type)
        if part_type is PartType.OEM:
            return self.oem_markup_pct
        if part_type is PartType.AFTERMARKET:
            return self.aftermarket_markup_pct
        return self.second_hand_markup_pct

    def to_dict(self) -> dict[str, str]:
        return {f.name: str(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RateSet:
        return cls(**{f.name: data[f.name] for f in fields(cls) if f.name in data})
