"""
Calendar helper tests: weekly identifiers, local days and prompt ranges.
"""
from datetime import date, datetime

import pytest
import pytz

from app.utils.dates import (
    SERVER_LOCAL,
    get_week_identifier,
    local_day_string,
    local_today,
    parse_range,
    week_bounds,
)

NOW = datetime(2024, 3, 15, 10, 30)  # Friday


# ---------------------------------------------------------------------------
# Weekly identifier
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("now,expected", [
    (datetime(2024, 3, 11, 0, 0), "2024-03-11"),
    (datetime(2024, 3, 15, 10, 30), "2024-03-11"),
    (datetime(2024, 3, 17, 23, 59), "2024-03-11"),
    (datetime(2024, 3, 18, 0, 0), "2024-03-18"),
    (datetime(2024, 1, 1, 12, 0), "2024-01-01"),
])
def test_week_identifier_is_monday(now, expected):
    assert get_week_identifier(now) == expected


def test_week_bounds():
    assert week_bounds(NOW) == (date(2024, 3, 11), date(2024, 3, 17))


# ---------------------------------------------------------------------------
# Local day
# ---------------------------------------------------------------------------

def test_naive_now_is_server_local():
    assert local_day_string(NOW) == "2024-03-15"
    assert local_day_string(NOW, SERVER_LOCAL) == "2024-03-15"


def test_user_timezone_shifts_day():
    now = pytz.utc.localize(datetime(2024, 3, 15, 2, 0))
    assert local_today(now, "America/New_York") == date(2024, 3, 14)
    assert local_today(now, "Asia/Tokyo") == date(2024, 3, 15)


def test_unknown_timezone_falls_back():
    assert local_day_string(NOW, "Mars/Olympus_Mons") == "2024-03-15"


# ---------------------------------------------------------------------------
# Prompt ranges
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text,start,end,label", [
    ("How did the last 7 days go?", date(2024, 3, 8), date(2024, 3, 14), "last 7 days"),
    ("past 1 day", date(2024, 3, 14), date(2024, 3, 14), "last 1 days"),
    ("compare the last 2 weeks", date(2024, 3, 1), date(2024, 3, 14), "last 2 weeks"),
    ("What happened yesterday?", date(2024, 3, 14), date(2024, 3, 14), "yesterday"),
    ("Spend today", date(2024, 3, 15), date(2024, 3, 15), "today"),
    ("Recap last week", date(2024, 3, 4), date(2024, 3, 10), "last week"),
    ("this week so far", date(2024, 3, 11), date(2024, 3, 15), "this week"),
    ("How was last month?", date(2024, 2, 1), date(2024, 2, 29), "last month"),
    ("this month", date(2024, 3, 1), date(2024, 3, 15), "this month"),
])
def test_parse_range(text, start, end, label):
    parsed = parse_range(text, NOW)
    assert (parsed.start, parsed.end, parsed.label) == (start, end, label)


def test_parse_range_unrecognized():
    assert parse_range("Which campaign should I scale?", NOW) is None
    assert parse_range("", NOW) is None


def test_range_to_dict():
    parsed = parse_range("last 7 days", NOW)
    assert parsed.to_dict() == {"from": "2024-03-08", "to": "2024-03-14", "days": 7, "label": "last 7 days"}
