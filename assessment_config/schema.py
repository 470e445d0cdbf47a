"""
Configuration Schema (``assessment_config.schema``).

Responsibility
--------------
Frozen dataclasses describing one assessment configuration set: scope,
default rates, threshold tier boundaries, write-off percentages and money
precision.

Architecture position
---------------------
**Config layer** -- pure data definitions.  No kernel imports; the
translation into kernel types lives in ``assessment_config.bridges``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class ConfigScope:
    client: str
    currency: str
    effective_from: date
    effective_to: date | None = None


@dataclass(frozen=True)
class RateSetDef:
    labour_rate: Decimal
    paint_rate: Decimal
    vat_percentage: Decimal
    oem_markup_pct: Decimal
    aftermarket_markup_pct: Decimal
    second_hand_markup_pct: Decimal


@dataclass(frozen=True)
class ThresholdDef:
    """Lower bounds (inclusive, percent of valuation) of each risk tier."""
    yellow_from: Decimal
    orange_from: Decimal
    red_from: Decimal


@dataclass(frozen=True)
class WriteOffDef:
    borderline_writeoff_pct: Decimal
    total_writeoff_pct: Decimal
    salvage_pct: Decimal


@dataclass(frozen=True)
class AssessmentConfigurationSet:
    """One loaded, validated configuration set.

    ``checksum`` is the SHA-256 of the canonical JSON of the source
    document and identifies exactly which configuration governed a run.
    """
    config_id: str
    version: int
    scope: ConfigScope
    money_decimal_places: int
    rate_set: RateSetDef
    thresholds: ThresholdDef
    write_off: WriteOffDef
    checksum: str
