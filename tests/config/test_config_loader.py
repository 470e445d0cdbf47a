"""
Tests for configuration loading and the config -> kernel bridges.

Verifies:
- The bundled default set loads and validates
- Missing keys and out-of-range values are rejected
- get_active_config() emits ASSESSMENT_CONFIG_TRACE
- Bridges produce the kernel value objects the engines consume
"""

import copy
from decimal import Decimal

import pytest
import yaml

from assessment_config import get_active_config
from assessment_config.bridges import (
    build_rate_set,
    build_threshold_evaluator,
    build_write_off_percentages,
)
from assessment_config.loader import compute_checksum, load_configuration, parse_configuration
from assessment_engines.threshold import RiskTier
from assessment_kernel.domain.values import PartType

VALID = {
    "config_id": "insurer-a",
    "version": 3,
    "scope": {"client": "insurer-a", "currency": "ZAR", "effective_from": "2025-01-01"},
    "money_decimal_places": 2,
    "rate_set": {
        "labour_rate": "450.00",
        "paint_rate": "1800.00",
        "vat_percentage": "15",
        "oem_markup_pct": "20",
        "aftermarket_markup_pct": "30",
        "second_hand_markup_pct": "10",
    },
    "thresholds": {"yellow_from": "30", "orange_from": "55", "red_from": "80"},
    "write_off": {
        "borderline_writeoff_pct": "60",
        "total_writeoff_pct": "70",
        "salvage_pct": "25",
    },
}


def _with(path, value):
    """Copy of VALID with one nested key replaced (or removed when value is ...)."""
    data = copy.deepcopy(VALID)
    target = data
    for key in path[:-1]:
        target = target[key]
    if value is ...:
        del target[path[-1]]
    else:
        target[path[-1]] = value
    return data


class TestDefaultConfiguration:

    def test_bundled_default_loads(self):
        config = get_active_config()

        assert config.config_id == "default"
        assert config.scope.currency == "ZAR"
        assert config.rate_set.labour_rate == Decimal("500.00")
        assert config.thresholds.orange_from == Decimal("60")
        assert config.write_off.salvage_pct == Decimal("30")

    def test_trace_logged(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "ASSESSMENT_CONFIG_TRACE"]
        assert traces[-1]["config_set_id"] == "default"
        assert traces[-1]["checksum"] == config.checksum

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "insurer-a.yaml"
        path.write_text(yaml.safe_dump(VALID))

        config = get_active_config(path)

        assert config.config_id == "insurer-a"
        assert config.version == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_configuration(tmp_path / "absent.yaml")


class TestParsing:

    def test_valid_document(self):
        config = parse_configuration(copy.deepcopy(VALID))

        assert config.rate_set.aftermarket_markup_pct == Decimal("30")
        assert config.scope.effective_from.isoformat() == "2025-01-01"
        assert config.scope.effective_to is None

    def test_checksum_is_deterministic(self):
        reordered = dict(reversed(list(copy.deepcopy(VALID).items())))

        assert compute_checksum(VALID) == compute_checksum(reordered)
        assert compute_checksum(VALID) != compute_checksum(_with(("version",), 4))

    @pytest.mark.parametrize(
        "path",
        [
            ("rate_set", "labour_rate"),
            ("thresholds", "red_from"),
            ("write_off", "salvage_pct"),
            ("money_decimal_places",),
        ],
    )
    def test_missing_key(self, path):
        with pytest.raises(KeyError):
            parse_configuration(_with(path, ...))

    @pytest.mark.parametrize(
        "path, value",
        [
            (("rate_set", "labour_rate"), "-1"),
            (("rate_set", "vat_percentage"), "101"),
            (("rate_set", "paint_rate"), "abc"),
            (("thresholds", "orange_from"), "20"),
            (("thresholds", "red_from"), "55"),
            (("write_off", "total_writeoff_pct"), "150"),
            (("money_decimal_places",), 5),
            (("money_decimal_places",), "2"),
            (("money_decimal_places",), True),
        ],
    )
    def test_invalid_value(self, path, value):
        with pytest.raises(ValueError):
            parse_configuration(_with(path, value))


class TestBridges:

    @pytest.fixture
    def config(self):
        return parse_configuration(copy.deepcopy(VALID))

    def test_rate_set(self, config):
        rates = build_rate_set(config)

        assert rates.labour_rate == Decimal("450.00")
        assert rates.markup_for(PartType.AFTERMARKET) == Decimal("30")

    def test_threshold_evaluator_uses_configured_tiers(self, config):
        evaluator = build_threshold_evaluator(config)

        assert evaluator.evaluate(Decimal("30000"), Decimal("100000")).tier is RiskTier.YELLOW
        assert evaluator.evaluate(Decimal("80000"), Decimal("100000")).tier is RiskTier.RED

    def test_write_off_percentages(self, config):
        percentages = build_write_off_percentages(config)

        assert percentages.borderline_writeoff_pct == Decimal("60")
        assert percentages.salvage_pct == Decimal("25")
