"""
Config -> Kernel Bridges.

Convert a loaded configuration set into the value objects the kernel and
engines consume.  These live here because the kernel must never import
``assessment_config``.

Usage:
    from assessment_config import get_active_config
    from assessment_config.bridges import build_rate_set, build_threshold_evaluator

    config = get_active_config()
    estimate = Estimate(rate_set=build_rate_set(config))
"""

from __future__ import annotations

from assessment_config.schema import AssessmentConfigurationSet
from assessment_engines.threshold import ThresholdEvaluator, ThresholdTiers
from assessment_engines.valuation import WriteOffPercentages
from assessment_kernel.domain.values import RateSet


def build_rate_set(config: AssessmentConfigurationSet) -> RateSet:
    rates = config.rate_set
    return RateSet(
        labour_rate=rates.labour_rate,
        paint_rate=rates.paint_rate,
        vat_percentage=rates.vat_percentage,
        oem_markup_pct=rates.oem_markup_pct,
        aftermarket_markup_pct=rates.aftermarket_markup_pct,
        second_hand_markup_pct=rates.second_hand_markup_pct,
    )


def build_threshold_tiers(config: AssessmentConfigurationSet) -> ThresholdTiers:
    t = config.thresholds
    return ThresholdTiers(yellow_from=t.yellow_from, orange_from=t.orange_from, red_from=t.red_from)


def build_threshold_evaluator(config: AssessmentConfigurationSet) -> ThresholdEvaluator:
    return ThresholdEvaluator(tiers=build_threshold_tiers(config))


def build_write_off_percentages(config: AssessmentConfigurationSet) -> WriteOffPercentages:
    w = config.write_off
    return WriteOffPercentages(
        borderline_writeoff_pct=w.borderline_writeoff_pct,
        total_writeoff_pct=w.total_writeoff_pct,
        salvage_pct=w.salvage_pct,
    )
