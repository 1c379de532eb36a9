"""
Meta daily aggregation tests.

Guards against:
1. Account-level rollup rows being added on top of entity rows (double counting)
2. Repeated syncs of one ad/day being summed instead of de-duplicated
3. Unsynced spend (None) being treated like a real zero
4. Aggregating already-aggregated rows changing the totals
"""
from datetime import date, datetime

import pytest

from app.services.meta_aggregation import (
    aggregate_daily_records,
    aggregate_with_fallback,
    empty_summary,
    normalize_record,
    summarize_days,
)


def _row(day, ad_id, spend, **extra):
    row = {"date": day, "ad_id": ad_id, "spend": spend, "impressions": 1000, "clicks": 10}
    row.update(extra)
    return row


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def test_normalize_accepts_spent_strings_and_datetimes():
    record = normalize_record({
        "date": datetime(2024, 1, 1, 15, 30),
        "ad_id": "ad_1",
        "spent": "12.50",
        "impressions": "1000",
        "clicks": "7",
    })
    assert record.date == date(2024, 1, 1)
    assert record.entity_id == "ad_1"
    assert record.spend == 12.5
    assert record.impressions == 1000
    assert record.clicks == 7


def test_normalize_keeps_missing_spend_distinct_from_zero():
    assert normalize_record({"date": "2024-01-01", "ad_id": "a", "spend": None}).spend is None
    assert normalize_record({"date": "2024-01-01", "ad_id": "a", "spend": 0}).spend == 0.0


def test_normalize_drops_rows_without_date():
    assert normalize_record({"ad_id": "a", "spend": 10}) is None


# ---------------------------------------------------------------------------
# De-duplication
# ---------------------------------------------------------------------------

def test_account_level_row_is_not_double_counted():
    rows = [
        _row("2024-01-01", "account_level_data", 100),
        _row("2024-01-01", "ad_1", 40),
        _row("2024-01-01", "ad_2", 35),
    ]
    days = aggregate_daily_records(rows)
    assert len(days) == 1
    assert days[0].spend == 75


def test_account_level_row_used_when_alone():
    days = aggregate_daily_records([_row("2024-01-01", "account_level_data", 100)])
    assert days[0].spend == 100


def test_repeated_sync_keeps_highest_spend():
    rows = [
        _row("2024-01-01", "ad_1", 20, impressions=500),
        _row("2024-01-01", "ad_1", 30, impressions=800),
        _row("2024-01-01", "ad_1", "25", impressions=700),
    ]
    days = aggregate_daily_records(rows)
    assert days[0].spend == 30
    assert days[0].impressions == 800


def test_synced_zero_beats_unsynced_row():
    rows = [
        _row("2024-01-01", "ad_1", None, impressions=999),
        _row("2024-01-01", "ad_1", 0, impressions=0),
    ]
    days = aggregate_daily_records(rows)
    assert days[0].impressions == 0
    assert days[0].has_missing_spend is False


def test_missing_spend_is_flagged():
    days = aggregate_daily_records([_row("2024-01-01", "ad_1", None)])
    assert days[0].spend == 0
    assert days[0].has_missing_spend is True


def test_days_are_sorted_ascending():
    rows = [
        _row("2024-01-03", "ad_1", 10),
        _row("2024-01-01", "ad_1", 10),
        _row("2024-01-02", "ad_1", 10),
    ]
    assert [d.date for d in aggregate_daily_records(rows)] == ["2024-01-01", "2024-01-02", "2024-01-03"]


# ---------------------------------------------------------------------------
# Conversions and revenue from actions
# ---------------------------------------------------------------------------

def test_purchase_actions_drive_conversions_and_revenue():
    rows = [
        _row(
            "2024-01-01", "ad_1", 50,
            actions=[
                {"action_type": "purchase", "value": "2"},
                {"action_type": "link_click", "value": "40"},
            ],
            action_values=[
                {"action_type": "purchase", "value": "150.00"},
                {"action_type": "add_to_cart", "value": "900"},
            ],
        ),
        _row(
            "2024-01-01", "ad_2", 50,
            actions=[{"action_type": "omni_purchase", "value": 1}],
            action_values=[{"action_type": "omni_purchase", "value": 50}],
        ),
    ]
    day = aggregate_daily_records(rows)[0]
    assert day.conversions == 3
    assert day.revenue == 200
    assert day.roas == pytest.approx(2.0)
    assert day.ctr == pytest.approx(1.0)


def test_conversion_action_set_is_configurable():
    rows = [_row("2024-01-01", "ad_1", 10, actions=[{"action_type": "lead", "value": "4"}])]
    assert aggregate_daily_records(rows)[0].conversions == 0
    assert aggregate_daily_records(rows, conversion_actions=["lead"])[0].conversions == 4


def test_actions_as_json_string():
    rows = [_row("2024-01-01", "ad_1", 10, actions='[{"action_type": "purchase", "value": "3"}]')]
    assert aggregate_daily_records(rows)[0].conversions == 3


def test_zero_impressions_and_spend_give_zero_ratios():
    day = aggregate_daily_records([_row("2024-01-01", "ad_1", 0, impressions=0, clicks=0)])[0]
    assert day.ctr == 0
    assert day.roas == 0
    assert day.cpc == 0


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------

def test_aggregating_aggregated_days_is_idempotent():
    rows = [
        _row("2024-01-01", "account_level_data", 100),
        _row("2024-01-01", "ad_1", 40, actions=[{"action_type": "purchase", "value": "2"}],
             action_values=[{"action_type": "purchase", "value": "120"}]),
        _row("2024-01-01", "ad_2", 35),
        _row("2024-01-02", "ad_1", 20, reach=300),
        _row("2024-01-02", "ad_1", 25, reach=400),
    ]
    once = aggregate_daily_records(rows)
    twice = aggregate_daily_records([d.to_dict() for d in once])

    assert [d.date for d in twice] == [d.date for d in once]
    for first, second in zip(once, twice):
        assert second.spend == first.spend
        assert second.impressions == first.impressions
        assert second.clicks == first.clicks
        assert second.conversions == first.conversions
        assert second.revenue == first.revenue
        assert second.reach == first.reach


# ---------------------------------------------------------------------------
# Secondary source fallback
# ---------------------------------------------------------------------------

def test_fallback_to_campaign_stats_when_ad_rows_are_all_zero():
    primary = [_row("2024-01-01", "ad_1", None, impressions=0, clicks=0)]
    secondary = [{"date": "2024-01-01", "entity_id": "c1", "spend": 80, "impressions": 4000, "clicks": 40}]
    result = aggregate_with_fallback(primary, secondary)
    assert result.source == "campaign_stats"
    assert result.fallback_reason
    assert result.days[0].spend == 80


def test_no_fallback_when_primary_has_data():
    primary = [_row("2024-01-01", "ad_1", 10)]
    secondary = [{"date": "2024-01-01", "entity_id": "c1", "spend": 80}]
    result = aggregate_with_fallback(primary, secondary)
    assert result.source == "ad_insights"
    assert result.fallback_reason is None
    assert result.days[0].spend == 10


def test_no_fallback_when_secondary_is_also_zero():
    primary = [_row("2024-01-01", "ad_1", 0, impressions=0, clicks=0)]
    secondary = [{"date": "2024-01-01", "entity_id": "c1", "spend": 0}]
    assert aggregate_with_fallback(primary, secondary).source == "ad_insights"


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def test_summary_totals_and_growth():
    rows = [
        _row("2024-01-01", "ad_1", 10, clicks=10),
        _row("2024-01-02", "ad_1", 10, clicks=10),
        _row("2024-01-03", "ad_1", 20, clicks=10),
        _row("2024-01-04", "ad_1", 20, clicks=10),
    ]
    summary = summarize_days(aggregate_daily_records(rows))
    assert summary["spend"] == 60
    assert summary["clicks"] == 40
    assert summary["cpc"] == 1.5
    assert summary["average_daily_spend"] == 15
    assert summary["spend_growth"] == 100.0
    assert summary["click_growth"] == 0.0
    assert len(summary["daily_data"]) == 4


def test_empty_summary_has_same_shape():
    rows = [_row("2024-01-01", "ad_1", 10)]
    assert set(empty_summary()) == set(summarize_days(aggregate_daily_records(rows)))
    assert summarize_days([]) == empty_summary()
