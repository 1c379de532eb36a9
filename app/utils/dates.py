"""
Calendar helpers: local day strings, weekly identifiers and prompt date ranges.

Nothing in here reads the wall clock. Callers pass ``now`` in so the request
handler decides what "today" is and tests can pin it.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

import pytz

from app.utils.logger import log

SERVER_LOCAL = "server-local"


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date
    label: str

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def to_dict(self) -> dict:
        return {"from": self.start.isoformat(), "to": self.end.isoformat(), "days": self.days, "label": self.label}


def localize(now: datetime, tz_name: Optional[str] = None) -> datetime:
    """Express ``now`` in the given zone. Naive datetimes are server-local time."""
    if not tz_name or tz_name == SERVER_LOCAL:
        return now if now.tzinfo is None else now.astimezone()
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        log.warning(f"Unknown timezone '{tz_name}', using server-local time")
        return now if now.tzinfo is None else now.astimezone()
    aware = now if now.tzinfo is not None else now.astimezone()
    return aware.astimezone(tz)


def local_today(now: datetime, tz_name: Optional[str] = None) -> date:
    return localize(now, tz_name).date()


def local_day_string(now: datetime, tz_name: Optional[str] = None) -> str:
    """YYYY-MM-DD of ``now`` in the user's zone (or server-local)"""
    return local_today(now, tz_name).isoformat()


def week_bounds(now: datetime) -> Tuple[date, date]:
    """Monday and the following Sunday of the server-time week containing ``now``"""
    today = localize(now).date()
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)


def get_week_identifier(now: datetime) -> str:
    """
    Weekly gating key: the Monday of the current server-time week.

    Always derived from server time. Client-supplied timezones are never
    consulted so a user cannot shift into a "new" week early.
    """
    monday, _ = week_bounds(now)
    return monday.isoformat()


_LAST_N_DAYS = re.compile(r"\b(?:last|past|previous)\s+(\d{1,3})\s+days?\b")
_LAST_N_WEEKS = re.compile(r"\b(?:last|past|previous)\s+(\d{1,2})\s+weeks?\b")


def parse_range(text: str, now: datetime, tz_name: Optional[str] = None) -> Optional[DateRange]:
    """
    Pull a date range out of free text ("how did we do yesterday?",
    "compare the last 14 days"). Returns None when nothing is recognized.

    Rolling windows ("last N days") cover complete days and end yesterday.
    """
    if not text:
        return None
    lowered = text.lower()
    today = local_today(now, tz_name)
    yesterday = today - timedelta(days=1)

    match = _LAST_N_DAYS.search(lowered)
    if match:
        n = max(1, int(match.group(1)))
        return DateRange(yesterday - timedelta(days=n - 1), yesterday, f"last {n} days")

    match = _LAST_N_WEEKS.search(lowered)
    if match:
        n = max(1, int(match.group(1)))
        return DateRange(yesterday - timedelta(days=7 * n - 1), yesterday, f"last {n} weeks")

    if "yesterday" in lowered:
        return DateRange(yesterday, yesterday, "yesterday")
    if "today" in lowered:
        return DateRange(today, today, "today")

    monday = today - timedelta(days=today.weekday())
    if "last week" in lowered or "previous week" in lowered:
        start = monday - timedelta(days=7)
        return DateRange(start, start + timedelta(days=6), "last week")
    if "this week" in lowered:
        return DateRange(monday, today, "this week")

    first_of_month = today.replace(day=1)
    if "last month" in lowered or "previous month" in lowered:
        end = first_of_month - timedelta(days=1)
        return DateRange(end.replace(day=1), end, "last month")
    if "this month" in lowered:
        return DateRange(first_of_month, today, "this month")

    return None
