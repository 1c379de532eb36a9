"""
Trend & growth-rate calculations over daily series.

Growth compares the earlier and later half of a window using per-day
averages, so halves of unequal length compare fairly. Results are clamped to
+/-500% and rounded to one decimal.
"""
import statistics
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from app.services import metric_ratios
from app.utils.helpers import field_value, to_date, to_float
from app.utils.logger import log

ZERO_EPSILON = 0.0001
GROWTH_CAP = 500.0

# Trend thresholds (percent change). Ads move faster than ad sets/campaigns.
CAMPAIGN_TREND_THRESHOLD = 10.0
ADSET_TREND_THRESHOLD = 10.0
AD_TREND_THRESHOLD = 15.0

STABLE_VOLATILITY_LIMIT = 25.0

_METRIC_ALIASES = {"cpr": "cost_per_result", "adSpend": "spend", "spent": "spend"}


@dataclass
class TrendResult:
    direction: str  # improving | declining | stable
    change: float

    def to_dict(self) -> Dict:
        return {"direction": self.direction, "change": self.change}


@dataclass
class HistoricalWindow:
    """Last 7 complete days vs the 7 before them"""
    last_7_days: List[Dict] = field(default_factory=list)
    previous_7_days: List[Dict] = field(default_factory=list)
    averages: Dict[str, float] = field(default_factory=dict)
    spend_trend: float = 0.0
    performance_trend: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "last_7_days": self.last_7_days,
            "previous_7_days": self.previous_7_days,
            "averages": self.averages,
            "trends": {
                "spend_trend": round(self.spend_trend, 1),
                "performance_trend": round(self.performance_trend, 1),
            },
        }


def percent_change(current: float, previous: float) -> float:
    """Signed % change; 0 when there is no positive baseline"""
    previous = to_float(previous)
    if previous <= 0:
        return 0.0
    return (to_float(current) - previous) / previous * 100


def classify_trend(change: float, threshold: float = CAMPAIGN_TREND_THRESHOLD) -> TrendResult:
    if change > threshold:
        return TrendResult("improving", change)
    if change < -threshold:
        return TrendResult("declining", change)
    return TrendResult("stable", change)


def calculate_growth(series: Iterable, metric: str) -> float:
    """
    Growth (%) of ``metric`` between the earlier and later half of a daily series.

    Returns 0 for fewer than two points, and for a single-day window: the
    prior day is not in the loaded range, so there is nothing honest to
    compare against.
    """
    metric = _METRIC_ALIASES.get(metric, metric)
    points = []
    for item in series or []:
        day = to_date(field_value(item, "date"))
        if day is not None:
            points.append((day, to_float(field_value(item, metric))))

    if len(points) < 2:
        return 0.0

    points.sort(key=lambda p: p[0])
    if len({d for d, _ in points}) == 1:
        log.debug(f"Single-day window for {metric}; growth not computed")
        return 0.0

    oldest = points[0][0].toordinal()
    newest = points[-1][0].toordinal()
    midpoint = oldest + (newest - oldest) / 2

    first = [v for d, v in points if d.toordinal() < midpoint]
    second = [v for d, v in points if d.toordinal() >= midpoint]

    # Data clustered at one end: split by count instead of by time
    if not first or not second:
        half = len(points) // 2
        first = [v for _, v in points[:half]]
        second = [v for _, v in points[half:]]

    first_avg = sum(first) / len(first)
    second_avg = sum(second) / len(second)

    if abs(first_avg) < ZERO_EPSILON:
        # No baseline: only growth from zero to a positive level counts
        return 100.0 if second_avg > ZERO_EPSILON else 0.0

    growth = (second_avg - first_avg) / first_avg * 100
    growth = max(-GROWTH_CAP, min(GROWTH_CAP, growth))
    return round(growth, 1)


def volatility_score(values: Sequence[float]) -> float:
    """Coefficient of variation (%) of the positive values"""
    positives = [to_float(v) for v in values if to_float(v) > 0]
    if not positives:
        return 0.0
    mean = statistics.fmean(positives)
    spread = statistics.pstdev(positives)
    return round(spread / max(mean, 1.0) * 100, 1)


def stat_row(row) -> Dict:
    """Normalize a daily stats row (ORM or dict) into plain numbers"""
    spend = to_float(field_value(row, "spend", field_value(row, "spent")))
    impressions = to_float(field_value(row, "impressions"))
    clicks = to_float(field_value(row, "clicks"))
    conversions = to_float(field_value(row, "conversions"))
    revenue = to_float(field_value(row, "revenue"))
    roas_value = field_value(row, "roas")
    day = to_date(field_value(row, "date"))
    return {
        "date": day.isoformat() if day else None,
        "spend": spend,
        "impressions": impressions,
        "clicks": clicks,
        "conversions": conversions,
        "revenue": revenue,
        "ctr": to_float(field_value(row, "ctr")) or metric_ratios.ctr(clicks, impressions),
        "cpc": to_float(field_value(row, "cpc")) or metric_ratios.cpc(spend, clicks),
        "roas": to_float(roas_value) if roas_value is not None else metric_ratios.roas(revenue, spend),
    }


def _average(rows: List[Dict], key: str) -> float:
    if not rows:
        return 0.0
    return sum(r[key] for r in rows) / len(rows)


def split_weeks(daily_stats: Iterable, today: date):
    """Rows for [today-7, today) and [today-14, today-7), newest first"""
    week_start = today - timedelta(days=7)
    prior_start = today - timedelta(days=14)
    last_7, previous_7 = [], []
    for row in daily_stats or []:
        normalized = stat_row(row)
        if not normalized["date"]:
            continue
        day = date.fromisoformat(normalized["date"])
        if week_start <= day < today:
            last_7.append(normalized)
        elif prior_start <= day < week_start:
            previous_7.append(normalized)
    last_7.sort(key=lambda r: r["date"], reverse=True)
    previous_7.sort(key=lambda r: r["date"], reverse=True)
    return last_7, previous_7


def build_historical_window(daily_stats: Iterable, today: date) -> HistoricalWindow:
    """7-day averages and week-over-week spend / ROAS trends for one campaign"""
    last_7, previous_7 = split_weeks(daily_stats, today)
    averages = {
        key: _average(last_7, key)
        for key in ("spend", "ctr", "cpc", "roas", "impressions", "clicks", "conversions")
    }
    return HistoricalWindow(
        last_7_days=last_7,
        previous_7_days=previous_7,
        averages=averages,
        spend_trend=percent_change(sum(r["spend"] for r in last_7), sum(r["spend"] for r in previous_7)),
        performance_trend=percent_change(_average(last_7, "roas"), _average(previous_7, "roas")),
    )


def entity_trend(last_7: List[Dict], previous_7: List[Dict], threshold: float) -> Dict:
    """Week-over-week ROAS trend for a single ad set or ad"""
    average_roas = _average(last_7, "roas")
    change = percent_change(average_roas, _average(previous_7, "roas"))
    return {
        "trend": classify_trend(change, threshold).direction,
        "average_ctr": _average(last_7, "ctr"),
        "average_cpc": _average(last_7, "cpc"),
        "average_roas": average_roas,
        "week_over_week_change": change,
    }


def analyze_trends(daily_stats: Iterable) -> Dict[str, List[str]]:
    """Narrative trend buckets: recent 7 rows vs the 7 before them"""
    rows = [stat_row(r) for r in daily_stats or []]
    rows = [r for r in rows if r["date"]]
    trends: Dict[str, List[str]] = {"improving": [], "declining": [], "stable": []}
    if len(rows) < 7:
        return trends

    rows.sort(key=lambda r: r["date"], reverse=True)
    recent = rows[:7]
    previous = rows[7:14]

    recent_roas = _average(recent, "roas")
    recent_ctr = _average(recent, "ctr")
    recent_spend = _average(recent, "spend")
    previous_roas = _average(previous, "roas") if previous else recent_roas
    previous_ctr = _average(previous, "ctr") if previous else recent_ctr
    previous_spend = _average(previous, "spend") if previous else recent_spend

    roas_change = percent_change(recent_roas, previous_roas)
    if roas_change > 10:
        trends["improving"].append(f"ROAS improved by {roas_change:.1f}%")
    elif roas_change < -10:
        trends["declining"].append(f"ROAS declined by {abs(roas_change):.1f}%")
    else:
        trends["stable"].append(f"ROAS stable at {recent_roas:.1f}x")

    ctr_change = percent_change(recent_ctr, previous_ctr)
    if ctr_change > 15:
        trends["improving"].append(f"CTR improved by {ctr_change:.1f}%")
    elif ctr_change < -15:
        trends["declining"].append(f"CTR declined by {abs(ctr_change):.1f}%")

    spend_change = percent_change(recent_spend, previous_spend)
    if abs(spend_change) > 20:
        direction = "increased" if spend_change > 0 else "decreased"
        trends["stable"].append(f"Spend {direction} by {abs(spend_change):.1f}%")

    return trends


def series_trend(series: Iterable, metric: str, threshold: float = CAMPAIGN_TREND_THRESHOLD) -> Optional[TrendResult]:
    """calculate_growth + classification, None when the series is too short"""
    items = list(series or [])
    if len(items) < 2:
        return None
    return classify_trend(calculate_growth(items, metric), threshold)
