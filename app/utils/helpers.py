"""
Helper utilities
"""
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional
import math


def field_value(item: Any, name: str, default: Any = None) -> Any:
    """Read a field from a dict-like row or an ORM/dataclass instance"""
    if item is None:
        return default
    if isinstance(item, Mapping):
        value = item.get(name, default)
    else:
        value = getattr(item, name, default)
    return default if value is None else value


def to_optional_float(value: Any) -> Optional[float]:
    """Parse a numeric or numeric-string value. None/blank/garbage -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except (TypeError, ValueError):
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def to_float(value: Any, default: float = 0.0) -> float:
    """Parse a number, falling back to default"""
    number = to_optional_float(value)
    return default if number is None else number


def to_int(value: Any, default: int = 0) -> int:
    """Parse an integer count ("123", 123.0, Decimal) falling back to default"""
    number = to_optional_float(value)
    return default if number is None else int(number)


def to_date(value: Any) -> Optional[date]:
    """Normalize a date/datetime/ISO string to a calendar date (no time part)"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None
