"""
Configuration Loader (``assessment_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``assessment_config.schema``.  Runtime callers go through
``assessment_config.get_active_config()``, never this module.

Invariants enforced
-------------------
* No silent defaults for required keys: a missing key raises ``KeyError``.
* Invalid values (negative rates, percentages outside 0-100, tier
  boundaries out of order) raise ``ValueError``.
* ``compute_checksum`` is deterministic for identical content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from assessment_config.schema import (
    AssessmentConfigurationSet,
    ConfigScope,
    RateSetDef,
    ThresholdDef,
    WriteOffDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{field_name} must be a number, got {value!r}") from None


def _non_negative(data: dict[str, Any], field_name: str) -> Decimal:
    value = parse_decimal(data[field_name], field_name)
    if value < 0:
        raise ValueError(f"{field_name} cannot be negative: {value}")
    return value


def _percentage(data: dict[str, Any], field_name: str) -> Decimal:
    value = _non_negative(data, field_name)
    if value > 100:
        raise ValueError(f"{field_name} cannot exceed 100: {value}")
    return value


def parse_scope(data: dict[str, Any]) -> ConfigScope:
    return ConfigScope(
        client=data["client"],
        currency=data["currency"],
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
    )


def parse_rate_set(data: dict[str, Any]) -> RateSetDef:
    return RateSetDef(
        labour_rate=_non_negative(data, "labour_rate"),
        paint_rate=_non_negative(data, "paint_rate"),
        vat_percentage=_percentage(data, "vat_percentage"),
        oem_markup_pct=_non_negative(data, "oem_markup_pct"),
        aftermarket_markup_pct=_non_negative(data, "aftermarket_markup_pct"),
        second_hand_markup_pct=_non_negative(data, "second_hand_markup_pct"),
    )


def parse_thresholds(data: dict[str, Any]) -> ThresholdDef:
    thresholds = ThresholdDef(
        yellow_from=_non_negative(data, "yellow_from"),
        orange_from=_non_negative(data, "orange_from"),
        red_from=_non_negative(data, "red_from"),
    )
    if not thresholds.yellow_from < thresholds.orange_from < thresholds.red_from:
        raise ValueError(
            "Threshold boundaries must be strictly ascending: "
            f"{thresholds.yellow_from} < {thresholds.orange_from} < {thresholds.red_from}"
        )
    return thresholds


def parse_write_off(data: dict[str, Any]) -> WriteOffDef:
    return WriteOffDef(
        borderline_writeoff_pct=_percentage(data, "borderline_writeoff_pct"),
        total_writeoff_pct=_percentage(data, "total_writeoff_pct"),
        salvage_pct=_percentage(data, "salvage_pct"),
    )


def parse_configuration(data: dict[str, Any]) -> AssessmentConfigurationSet:
    """Parse a full configuration document.

    Raises:
        KeyError: a required key is missing.
        ValueError: a value is out of range.
    """
    places = data["money_decimal_places"]
    if isinstance(places, bool) or not isinstance(places, int) or not 0 <= places <= 4:
        raise ValueError(f"money_decimal_places must be an integer 0-4, got {places!r}")

    return AssessmentConfigurationSet(
        config_id=data["config_id"],
        version=int(data["version"]),
        scope=parse_scope(data["scope"]),
        money_decimal_places=places,
        rate_set=parse_rate_set(data["rate_set"]),
        thresholds=parse_thresholds(data["thresholds"]),
        write_off=parse_write_off(data["write_off"]),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> AssessmentConfigurationSet:
    return parse_configuration(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
