"""
Campaign Performance Metrics

Benchmark grading for a single campaign and a portfolio-level rollup
across a brand's campaigns. Pure functions over campaign records and
daily stats rows; nothing in here touches the database.
"""
import math
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.services import metric_ratios
from app.services.trend_analysis import (
    CAMPAIGN_TREND_THRESHOLD,
    STABLE_VOLATILITY_LIMIT,
    HistoricalWindow,
    analyze_trends,
    stat_row,
    volatility_score,
)
from app.utils.helpers import field_value, to_float, to_optional_float

# Industry benchmarks (Meta, e-commerce)
BENCHMARKS = {
    "ctr": {"good": 2.0, "average": 1.0, "poor": 0.5},
    "cpc": {"good": 1.0, "average": 2.0, "poor": 4.0},
    "roas": {"good": 4.0, "average": 2.0, "poor": 1.0},
}

PERFORMER_SHARE = 0.3


def _score_higher_better(value: float, metric: str) -> int:
    if value >= BENCHMARKS[metric]["good"]:
        return 3
    if value >= BENCHMARKS[metric]["average"]:
        return 2
    return 1


def _score_lower_better(value: float, metric: str) -> int:
    if value <= BENCHMARKS[metric]["good"]:
        return 3
    if value <= BENCHMARKS[metric]["average"]:
        return 2
    return 1


def _grade(score: int) -> str:
    if score >= 8:
        return "Excellent"
    if score >= 6:
        return "Good"
    if score >= 4:
        return "Average"
    return "Poor"


def _audience_reach(impressions: float) -> str:
    if impressions > 100_000:
        return "Excellent"
    if impressions > 50_000:
        return "Good"
    if impressions > 10_000:
        return "Average"
    return "Limited"


def _trend_vs(current: float, historical: float) -> str:
    if historical == 0:
        return "stable"
    change = (current - historical) / historical * 100
    if change > CAMPAIGN_TREND_THRESHOLD:
        return "improving"
    if change < -CAMPAIGN_TREND_THRESHOLD:
        return "declining"
    return "stable"


def _campaign_value(campaign: Any, name: str, derived: float) -> float:
    value = to_optional_float(field_value(campaign, name))
    return derived if value is None else value


def calculate_campaign_metrics(campaign: Any, history: Optional[HistoricalWindow] = None) -> Dict:
    """Grade a campaign against benchmarks and its own last 7 days"""
    history = history or HistoricalWindow()

    spend = to_float(field_value(campaign, "spent", field_value(campaign, "spend")))
    budget = to_float(field_value(campaign, "budget"))
    impressions = to_float(field_value(campaign, "impressions"))
    clicks = to_float(field_value(campaign, "clicks"))
    conversions = to_float(field_value(campaign, "conversions"))
    revenue = to_float(field_value(campaign, "revenue"))
    ctr = _campaign_value(campaign, "ctr", metric_ratios.ctr(clicks, impressions))
    cpc = _campaign_value(campaign, "cpc", metric_ratios.cpc(spend, clicks))
    roas = _campaign_value(campaign, "roas", metric_ratios.roas(revenue, spend))

    budget_utilization = metric_ratios.budget_utilization(spend, budget)
    conversion_rate = metric_ratios.conversion_rate(conversions, clicks)

    ctr_score = _score_higher_better(ctr, "ctr")
    cpc_score = _score_lower_better(cpc, "cpc")
    roas_score = _score_higher_better(roas, "roas")

    key_issues = []
    if ctr < BENCHMARKS["ctr"]["average"]:
        key_issues.append("Low click-through rate")
    if cpc > BENCHMARKS["cpc"]["average"]:
        key_issues.append("High cost per click")
    if roas < BENCHMARKS["roas"]["average"]:
        key_issues.append("Low return on ad spend")
    if budget_utilization < 50:
        key_issues.append("Under-utilizing budget")
    if budget_utilization > 90:
        key_issues.append("Budget nearly exhausted")
    if conversions < 10:
        key_issues.append("Low conversion volume")

    strengths = []
    if ctr >= BENCHMARKS["ctr"]["good"]:
        strengths.append("Strong engagement rate")
    if cpc <= BENCHMARKS["cpc"]["good"]:
        strengths.append("Cost-effective clicks")
    if roas >= BENCHMARKS["roas"]["good"]:
        strengths.append("High return on investment")
    if impressions > 100_000:
        strengths.append("Excellent reach")
    if conversion_rate > 5:
        strengths.append("High conversion rate")

    averages = history.averages or {}
    volatility = volatility_score([day["roas"] for day in history.last_7_days])

    return {
        "performance_grade": _grade(ctr_score + cpc_score + roas_score),
        "budget_utilization": budget_utilization,
        "cost_efficiency": {3: "Efficient", 2: "Moderate"}.get(cpc_score, "Inefficient"),
        "audience_reach": _audience_reach(impressions),
        "conversion_rate": conversion_rate,
        "benchmark_comparison": {
            "ctr": {3: "Above Average", 2: "Average"}.get(ctr_score, "Below Average"),
            "cpc": {3: "Excellent", 2: "Average"}.get(cpc_score, "Poor"),
            "roas": {3: "Excellent", 2: "Average"}.get(roas_score, "Poor"),
        },
        "key_issues": key_issues,
        "strengths": strengths,
        "trends": {
            # Campaign spend is a running total, compare against a week of average days
            "spend_trend": _trend_vs(spend, to_float(averages.get("spend")) * 7),
            "ctr_trend": _trend_vs(ctr, to_float(averages.get("ctr"))),
            "roas_trend": _trend_vs(roas, to_float(averages.get("roas"))),
            "week_over_week_change": history.performance_trend,
        },
        "consistency": {
            "is_stable": volatility < STABLE_VOLATILITY_LIMIT,
            "volatility_score": volatility,
        },
    }


def _ranked_active(entities: Iterable[Any], name_field: str, limit: int) -> List[Dict]:
    """Active, spending entities ranked by ROAS"""
    active = []
    for entity in entities or []:
        status = str(field_value(entity, "status", "")).upper()
        spent = to_float(field_value(entity, "spent", field_value(entity, "spend")))
        if status == "ACTIVE" and spent > 0:
            active.append({
                "name": field_value(entity, name_field, field_value(entity, "name")),
                "spend": spent,
                "ctr": to_float(field_value(entity, "ctr")),
                "roas": to_float(field_value(entity, "roas")),
            })
    active.sort(key=lambda e: e["roas"], reverse=True)
    return active[:limit]


def analyze_campaign_data(
    campaigns: Sequence[Any],
    daily_stats: Sequence[Any],
    adsets: Sequence[Any] = (),
    ads: Sequence[Any] = (),
) -> Dict:
    """
    Portfolio rollup for a brand over the loaded daily stats window.

    Totals come from daily stats, not from campaign records, since campaign
    ``spent`` is lifetime spend.
    """
    rows = list(daily_stats or [])
    normalized = [stat_row(r) for r in rows]

    total_spend = sum(r["spend"] for r in normalized)
    total_revenue = sum(r["revenue"] for r in normalized)
    total_impressions = sum(r["impressions"] for r in normalized)
    total_clicks = sum(r["clicks"] for r in normalized)
    total_conversions = sum(r["conversions"] for r in normalized)

    active_campaigns = sum(
        1 for c in campaigns or [] if str(field_value(c, "status", "")).upper() == "ACTIVE"
    )

    per_campaign: "OrderedDict[str, Dict]" = OrderedDict()
    for row, values in zip(rows, normalized):
        campaign_id = str(field_value(row, "campaign_id", "unknown"))
        perf = per_campaign.setdefault(campaign_id, {
            "campaign_id": campaign_id,
            "campaign_name": field_value(row, "campaign_name", field_value(row, "entity_name", campaign_id)),
            "spend": 0.0,
            "revenue": 0.0,
            "impressions": 0.0,
            "clicks": 0.0,
        })
        for key in ("spend", "revenue", "impressions", "clicks"):
            perf[key] += values[key]

    spending = [dict(p, roas=metric_ratios.roas(p["revenue"], p["spend"])) for p in per_campaign.values() if p["spend"] > 0]
    spending.sort(key=lambda p: p["roas"], reverse=True)
    bucket = math.ceil(len(spending) * PERFORMER_SHARE)

    return {
        "total_spend": total_spend,
        "total_revenue": total_revenue,
        "total_impressions": total_impressions,
        "total_clicks": total_clicks,
        "total_conversions": total_conversions,
        "average_roas": metric_ratios.roas(total_revenue, total_spend),
        "average_ctr": metric_ratios.ctr(total_clicks, total_impressions),
        "average_cpc": metric_ratios.cpc(total_spend, total_clicks),
        "cost_per_conversion": metric_ratios.cost_per_result(total_spend, total_conversions),
        "conversion_rate": metric_ratios.conversion_rate(total_conversions, total_clicks),
        "active_campaigns": active_campaigns,
        "top_performers": spending[:bucket],
        "under_performers": spending[-bucket:] if bucket else [],
        "top_adsets": _ranked_active(adsets, "adset_name", 5),
        "top_ads": _ranked_active(ads, "ad_name", 10),
        "campaign_spend_distribution": [
            {
                "campaign": p["campaign_name"],
                "spend": p["spend"],
                "roas": p["roas"],
                "percentage": metric_ratios.safe_ratio(p["spend"], total_spend, 100.0),
            }
            for p in spending
        ],
        "trends": analyze_trends(rows),
    }
