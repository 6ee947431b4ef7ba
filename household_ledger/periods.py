"""
Date and Period Utilities

Month arithmetic used by the installment expander, the recurring bill
roller and every aggregation. Month keys ("YYYY-MM") are the universal
bucketing key for filters and rollups.

All functions are pure. add_months never raises: malformed input comes
back unchanged so a bad document cannot break a whole snapshot.
"""

from calendar import monthrange
from datetime import date, datetime, timezone
from typing import Optional, Union, overload

DateLike = Union[date, str]


def parse_date(value: object) -> Optional[date]:
    """Parse a date or an ISO "YYYY-MM-DD" string. Returns None on bad input."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _shift(value: date, months: int) -> date:
    total = value.year * 12 + (value.month - 1) + months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    day = min(value.day, monthrange(year, month)[1])
    return date(year, month, day)


@overload
def add_months(value: date, months: int) -> date: ...


@overload
def add_months(value: str, months: int) -> str: ...


def add_months(value, months):
    """
    Add calendar months, keeping the day of month.

    If the target month is shorter the day is clamped to its last day:
        add_months(date(2024, 1, 31), 1) -> date(2024, 2, 29)
        add_months("2023-01-31", 1)      -> "2023-02-28"

    Dates come back as dates, ISO strings as ISO strings. Anything that
    cannot be interpreted is returned unchanged.
    """
    try:
        if isinstance(value, date):
            return _shift(value, int(months))
        if isinstance(value, str):
            parsed = parse_date(value)
            if parsed is None:
                return value
            return _shift(parsed, int(months)).isoformat()
    except (ValueError, TypeError, OverflowError):
        return value
    return value


def month_key(value: DateLike) -> str:
    """Return the "YYYY-MM" key for a date or ISO string ("" if unparseable)."""
    parsed = parse_date(value)
    if parsed is None:
        return value[:7] if isinstance(value, str) else ""
    return f"{parsed.year:04d}-{parsed.month:02d}"


def year_key(value: DateLike) -> str:
    """Return the "YYYY" key for a date or ISO string."""
    return month_key(value)[:4]


def month_keys(start: date, count: int) -> list[str]:
    """Return `count` consecutive month keys beginning at the month of `start`."""
    first = start.replace(day=1)
    return [month_key(_shift(first, index)) for index in range(max(0, count))]


def today_utc() -> date:
    """Current calendar date in UTC, without time of day."""
    return datetime.now(timezone.utc).date()
