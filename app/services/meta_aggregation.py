"""
Meta Daily Stats Aggregation

Collapses overlapping Meta insight rows into one row per calendar day:

- repeated syncs of the same entity/day: the highest-spend row wins
  (a later, more complete sync), rows are never added together
- an account-level synthetic row is dropped whenever real entity rows exist
  for the same day, so one spend figure is not counted twice
- conversions and revenue come from the recognized purchase actions

``spend=None`` means the row has not been synced yet. It is kept apart from a
real 0 so a fully-unsynced range can be detected and served from the
campaign-level table instead.
"""
import json
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.config import get_settings
from app.services import metric_ratios
from app.services.trend_analysis import calculate_growth
from app.utils.helpers import field_value, to_date, to_float, to_int, to_optional_float
from app.utils.logger import log

settings = get_settings()

ACCOUNT_LEVEL_IDS = frozenset({"account_level_data", "account"})
ENTITY_ID_FIELDS = ("entity_id", "ad_id", "adset_id", "campaign_id")

GROWTH_METRICS = {
    "spend": "spend_growth",
    "impressions": "impression_growth",
    "clicks": "click_growth",
    "conversions": "conversion_growth",
    "ctr": "ctr_growth",
    "roas": "roas_growth",
    "cost_per_result": "cpr_growth",
}


@dataclass
class DailyRecord:
    """One insight row for a single entity on a single day"""
    date: date
    entity_id: str
    spend: Optional[float]
    impressions: int = 0
    clicks: int = 0
    conversions: float = 0.0
    reach: int = 0
    revenue: float = 0.0
    actions: Optional[List[Dict]] = None
    action_values: Optional[List[Dict]] = None

    @property
    def is_account_level(self) -> bool:
        return self.entity_id in ACCOUNT_LEVEL_IDS


@dataclass
class AggregatedDay:
    date: str
    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    conversions: float = 0.0
    revenue: float = 0.0
    reach: int = 0
    ctr: float = 0.0
    cpc: float = 0.0
    cost_per_result: float = 0.0
    roas: float = 0.0
    has_missing_spend: bool = False

    def to_dict(self) -> Dict:
        return asdict(self)


def _action_list(value: Any) -> Optional[List[Dict]]:
    """Actions arrive as a list, a JSON string (raw API payloads) or not at all"""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            log.warning("Unparseable actions payload on insight row, ignoring it")
            return None
    if not isinstance(value, (list, tuple)):
        return None
    return [a for a in value if isinstance(a, dict)]


def _sum_actions(actions: Sequence[Dict], recognized: frozenset) -> float:
    return sum(
        to_float(action.get("value"))
        for action in actions
        if action.get("action_type") in recognized
    )


def normalize_record(row: Any) -> Optional[DailyRecord]:
    """Build a DailyRecord from a DB row or dict. Rows without a date are dropped."""
    day = to_date(field_value(row, "date"))
    if day is None:
        log.debug("Skipping insight row without a date")
        return None

    raw_spend = field_value(row, "spend")
    if raw_spend is None:
        raw_spend = field_value(row, "spent")

    entity_id = None
    for name in ENTITY_ID_FIELDS:
        entity_id = field_value(row, name)
        if entity_id is not None:
            break

    return DailyRecord(
        date=day,
        # Rows with no entity are the account rollup
        entity_id=str(entity_id) if entity_id is not None else "account_level_data",
        spend=to_optional_float(raw_spend),
        impressions=to_int(field_value(row, "impressions")),
        clicks=to_int(field_value(row, "clicks")),
        conversions=to_float(field_value(row, "conversions")),
        reach=to_int(field_value(row, "reach")),
        revenue=to_float(field_value(row, "revenue")),
        actions=_action_list(field_value(row, "actions")),
        action_values=_action_list(field_value(row, "action_values")),
    )


def _spend_rank(record: DailyRecord) -> float:
    # An unsynced row loses to any synced row, including a real 0
    return float("-inf") if record.spend is None else record.spend


def _select_records(records: List[DailyRecord]) -> List[DailyRecord]:
    """One record per entity (highest spend), account rollup dropped if entities exist"""
    by_entity: Dict[str, DailyRecord] = {}
    for record in records:
        current = by_entity.get(record.entity_id)
        if current is None or _spend_rank(record) > _spend_rank(current):
            by_entity[record.entity_id] = record

    entity_rows = [r for r in by_entity.values() if not r.is_account_level]
    if entity_rows:
        return entity_rows
    return list(by_entity.values())


def aggregate_daily_records(
    rows: Iterable[Any],
    conversion_actions: Optional[Iterable[str]] = None,
) -> List[AggregatedDay]:
    """De-duplicate insight rows and return one AggregatedDay per date, oldest first"""
    recognized = frozenset(conversion_actions or settings.conversion_actions)

    by_date: Dict[date, List[DailyRecord]] = defaultdict(list)
    for row in rows or []:
        record = row if isinstance(row, DailyRecord) else normalize_record(row)
        if record is not None:
            by_date[record.date].append(record)

    days: List[AggregatedDay] = []
    for day in sorted(by_date):
        selected = _select_records(by_date[day])
        dropped = len(by_date[day]) - len(selected)
        if dropped:
            log.debug(f"{day}: dropped {dropped} duplicate/account-level rows")

        spend = sum(r.spend or 0.0 for r in selected)
        impressions = sum(r.impressions for r in selected)
        clicks = sum(r.clicks for r in selected)
        reach = sum(r.reach for r in selected)

        conversions = 0.0
        revenue = 0.0
        for record in selected:
            if record.actions is not None:
                conversions += _sum_actions(record.actions, recognized)
            else:
                conversions += record.conversions
            if record.action_values is not None:
                revenue += _sum_actions(record.action_values, recognized)
            else:
                revenue += record.revenue

        days.append(AggregatedDay(
            date=day.isoformat(),
            spend=spend,
            impressions=impressions,
            clicks=clicks,
            conversions=conversions,
            revenue=revenue,
            reach=reach,
            ctr=metric_ratios.ctr(clicks, impressions),
            cpc=metric_ratios.cpc(spend, clicks),
            cost_per_result=metric_ratios.cost_per_result(spend, conversions),
            roas=metric_ratios.roas(revenue, spend),
            has_missing_spend=any(r.spend is None for r in selected),
        ))

    log.debug(f"Aggregated {len(days)} days of Meta insight data")
    return days


def _is_all_zero(days: Sequence[AggregatedDay]) -> bool:
    return all(
        not d.spend and not d.impressions and not d.clicks and not d.conversions
        for d in days
    )


@dataclass
class AggregationResult:
    days: List[AggregatedDay] = field(default_factory=list)
    source: str = "ad_insights"
    fallback_reason: Optional[str] = None


def aggregate_with_fallback(
    primary_rows: Iterable[Any],
    secondary_rows: Optional[Iterable[Any]] = None,
    conversion_actions: Optional[Iterable[str]] = None,
) -> AggregationResult:
    """
    Aggregate ad-level rows, falling back to the campaign-level table when the
    ad-level rows are all zero (or unsynced) while the campaign table is not.

    The fallback is a workaround for an ad-level sync that silently wrote
    zeros. It is reported on the result and logged, not hidden.
    """
    primary = aggregate_daily_records(primary_rows, conversion_actions)
    if not _is_all_zero(primary) or secondary_rows is None:
        return AggregationResult(days=primary)

    secondary = aggregate_daily_records(secondary_rows, conversion_actions)
    if not secondary or _is_all_zero(secondary):
        return AggregationResult(days=primary)

    reason = (
        "Ad-level insights are all zero for this range while campaign-level "
        "stats are not; showing campaign-level figures. Ad-level sync needs attention."
    )
    log.warning(f"Meta aggregation fallback: {reason}")
    return AggregationResult(days=secondary, source="campaign_stats", fallback_reason=reason)


def empty_summary() -> Dict:
    """Zero-valued summary with the same shape as summarize_days()"""
    summary = {
        "spend": 0.0,
        "impressions": 0,
        "clicks": 0,
        "conversions": 0.0,
        "revenue": 0.0,
        "reach": 0,
        "ctr": 0.0,
        "cpc": 0.0,
        "cost_per_result": 0.0,
        "roas": 0.0,
        "frequency": 0.0,
        "average_daily_spend": 0.0,
        "has_missing_spend": False,
        "daily_data": [],
    }
    for key in GROWTH_METRICS.values():
        summary[key] = 0.0
    return summary


def summarize_days(days: Sequence[AggregatedDay]) -> Dict:
    """Totals, ratios and growth over a list of aggregated days"""
    if not days:
        return empty_summary()

    spend = sum(d.spend for d in days)
    impressions = sum(d.impressions for d in days)
    clicks = sum(d.clicks for d in days)
    conversions = sum(d.conversions for d in days)
    revenue = sum(d.revenue for d in days)
    reach = sum(d.reach for d in days)

    summary = {
        "spend": round(spend, 2),
        "impressions": impressions,
        "clicks": clicks,
        "conversions": round(conversions, 2),
        "revenue": round(revenue, 2),
        "reach": reach,
        "ctr": round(metric_ratios.ctr(clicks, impressions), 2),
        "cpc": round(metric_ratios.cpc(spend, clicks), 2),
        "cost_per_result": round(metric_ratios.cost_per_result(spend, conversions), 2),
        "roas": round(metric_ratios.roas(revenue, spend), 2),
        "frequency": round(metric_ratios.frequency(impressions, reach), 2),
        "average_daily_spend": round(spend / len(days), 2),
        "has_missing_spend": any(d.has_missing_spend for d in days),
        "daily_data": [d.to_dict() for d in days],
    }
    for metric, key in GROWTH_METRICS.items():
        summary[key] = calculate_growth(days, metric)
    return summary
