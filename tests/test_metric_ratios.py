"""
Ratio derivation tests.

Guards against:
1. Division by zero / NaN / Infinity leaking out of ratio helpers
2. Storefront revenue being folded into ROAS
3. Implausible ROAS on small spend passing without a warning
"""
import math

import pytest

from app.services import metric_ratios


# ---------------------------------------------------------------------------
# Zero denominators
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("fn", [
    metric_ratios.ctr,
    metric_ratios.cpc,
    metric_ratios.cost_per_result,
    metric_ratios.roas,
    metric_ratios.conversion_rate,
    metric_ratios.budget_utilization,
    metric_ratios.frequency,
])
@pytest.mark.parametrize("numerator", [0, 5, 123.45, "17", None])
def test_zero_denominator_returns_zero(fn, numerator):
    assert fn(numerator, 0) == 0


@pytest.mark.parametrize("numerator,denominator", [
    (float("nan"), 10),
    (10, float("nan")),
    (float("inf"), 10),
    (10, float("inf")),
    ("abc", 10),
    (10, "abc"),
    (10, -5),
    (None, None),
])
def test_bad_input_never_produces_nan_or_inf(numerator, denominator):
    result = metric_ratios.safe_ratio(numerator, denominator, 100.0)
    assert math.isfinite(result)
    assert result == 0


def test_ratio_values():
    assert metric_ratios.ctr(50, 10000) == pytest.approx(0.5)
    assert metric_ratios.cpc(50, 25) == pytest.approx(2.0)
    assert metric_ratios.roas(300, 100) == pytest.approx(3.0)
    assert metric_ratios.conversion_rate(5, 50) == pytest.approx(10.0)
    assert metric_ratios.budget_utilization(80, 100) == pytest.approx(80.0)


def test_numeric_strings_are_parsed():
    assert metric_ratios.roas("250.5", "100") == pytest.approx(2.505)


# ---------------------------------------------------------------------------
# Revenue attribution
# ---------------------------------------------------------------------------

def test_roas_uses_platform_revenue_only():
    summary = metric_ratios.revenue_summary(100, 200, storefront_revenue=1000)
    assert summary["roas"] == 2.0
    assert summary["platform_attributed_revenue"] == 200
    assert summary["storefront_revenue"] == 1000
    assert summary["total_revenue"] == 1000
    assert summary["blended_roas"] == 10.0


def test_total_revenue_without_storefront_is_platform_revenue():
    summary = metric_ratios.revenue_summary(100, 250)
    assert summary["storefront_revenue"] is None
    assert summary["total_revenue"] == 250
    assert summary["blended_roas"] == summary["roas"] == 2.5


# ---------------------------------------------------------------------------
# Data-quality warnings
# ---------------------------------------------------------------------------

def test_attribution_warning_on_high_roas_small_spend():
    warning = metric_ratios.attribution_warning(25, 50)
    assert warning is not None
    assert warning["type"] == "attribution_mismatch"
    assert warning["severity"] == "warning"


def test_no_attribution_warning_on_large_spend():
    assert metric_ratios.attribution_warning(25, 5000) is None


def test_no_attribution_warning_on_normal_roas():
    assert metric_ratios.attribution_warning(4, 50) is None


def test_validate_metrics_flags_each_problem():
    types = {w["type"] for w in metric_ratios.validate_metrics(-10, 0)}
    assert "negative_spend" in types

    types = {w["type"] for w in metric_ratios.validate_metrics(0, 500)}
    assert types == {"revenue_without_spend"}

    types = {w["type"] for w in metric_ratios.validate_metrics(40, 2000)}
    assert types == {"attribution_mismatch"}


def test_validate_metrics_clean_data_has_no_warnings():
    assert metric_ratios.validate_metrics(1000, 3500) == []
