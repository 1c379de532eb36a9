"""
Advertising ratio derivation.

Every ratio returns 0 when its denominator is <= 0 or either side is not a
finite number. Nothing in here raises, and NaN/Infinity never leaves.

CTR is a percentage (0-100). ROAS is a multiple (revenue / spend) and is
always computed from platform-attributed revenue; storefront revenue is
reported next to it, never folded into it.
"""
import math
from typing import Any, Dict, List, Optional

from app.config import get_settings
from app.utils.helpers import to_optional_float

settings = get_settings()


def safe_ratio(numerator: Any, denominator: Any, scale: float = 1.0) -> float:
    """numerator / denominator * scale, or 0 on a missing/non-positive denominator"""
    num = to_optional_float(numerator)
    den = to_optional_float(denominator)
    if num is None or den is None or den <= 0:
        return 0.0
    result = (num / den) * scale
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def ctr(clicks: Any, impressions: Any) -> float:
    return safe_ratio(clicks, impressions, 100.0)


def cpc(spend: Any, clicks: Any) -> float:
    return safe_ratio(spend, clicks)


def cost_per_result(spend: Any, conversions: Any) -> float:
    return safe_ratio(spend, conversions)


def roas(revenue: Any, spend: Any) -> float:
    return safe_ratio(revenue, spend)


def conversion_rate(conversions: Any, clicks: Any) -> float:
    return safe_ratio(conversions, clicks, 100.0)


def budget_utilization(spend: Any, budget: Any) -> float:
    return safe_ratio(spend, budget, 100.0)


def frequency(impressions: Any, reach: Any) -> float:
    return safe_ratio(impressions, reach)


def revenue_summary(
    spend: Any,
    platform_revenue: Any,
    storefront_revenue: Any = None,
) -> Dict:
    """
    Keep ad-platform revenue and storefront revenue apart.

    ``roas`` uses platform-attributed revenue only. ``total_revenue`` is the
    storefront figure when one is known (it already contains ad-driven
    orders), otherwise the platform figure. ``blended_roas`` is total
    revenue over spend and is labelled as such.
    """
    platform = max(to_optional_float(platform_revenue) or 0.0, 0.0)
    storefront = to_optional_float(storefront_revenue)
    total = storefront if storefront is not None else platform
    return {
        "platform_attributed_revenue": round(platform, 2),
        "storefront_revenue": round(storefront, 2) if storefront is not None else None,
        "total_revenue": round(total, 2),
        "roas": round(roas(platform, spend), 2),
        "blended_roas": round(roas(total, spend), 2),
    }


def attribution_warning(
    roas_value: Any,
    spend: Any,
    threshold: Optional[float] = None,
    min_spend: Optional[float] = None,
) -> Optional[Dict]:
    """
    Flag ROAS that is implausibly high on a small spend.

    That combination nearly always means revenue and spend come from
    tracking sources that disagree, not that the ads are that good.
    """
    threshold = settings.roas_sanity_threshold if threshold is None else threshold
    min_spend = settings.roas_sanity_min_spend if min_spend is None else min_spend
    r = to_optional_float(roas_value) or 0.0
    s = to_optional_float(spend) or 0.0
    if r > threshold and s < min_spend:
        return {
            "type": "attribution_mismatch",
            "severity": "warning",
            "message": (
                f"ROAS of {r:.1f}x on ${s:,.2f} spend is unusually high. "
                "Double check that the ad platform and the store attribute purchases the same way."
            ),
        }
    return None


def validate_metrics(spend: Any, revenue: Any, roas_value: Any = None) -> List[Dict]:
    """Data-quality warnings for a spend/revenue pair. Warnings, not errors."""
    warnings: List[Dict] = []
    s = to_optional_float(spend)
    r = to_optional_float(revenue)

    if s is not None and s < 0:
        warnings.append({
            "type": "negative_spend",
            "severity": "warning",
            "message": f"Spend is negative (${s:,.2f}). Check the last sync for refunds or credits recorded as spend.",
        })

    if (s is None or s == 0) and r is not None and r > 0:
        warnings.append({
            "type": "revenue_without_spend",
            "severity": "warning",
            "message": f"${r:,.2f} revenue attributed with no recorded spend. Spend may not be synced yet.",
        })

    if roas_value is None:
        roas_value = roas(r, s)
    mismatch = attribution_warning(roas_value, s or 0.0)
    if mismatch and s:
        warnings.append(mismatch)

    return warnings
