"""Settlement period and summary-key helpers.

GB settlement days are split into half-hour settlement periods numbered
from 1. Summary tables are keyed by date, ``"YYYY-MM"`` and ``"YYYY"``.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone


def all_periods(periods_per_day: int) -> set[int]:
    """Return the full period range {1..periods_per_day}."""
    if periods_per_day < 1:
        raise ValueError(f"periods_per_day must be positive, got {periods_per_day}")
    return set(range(1, periods_per_day + 1))


def year_month_key(d: date) -> str:
    """``date(2025, 3, 4)`` -> ``"2025-03"``."""
    return f"{d.year:04d}-{d.month:02d}"


def year_key(d: date) -> str:
    """``date(2025, 3, 4)`` -> ``"2025"``."""
    return f"{d.year:04d}"


def month_bounds(year_month: str) -> tuple[date, date]:
    """Return the first and last day of a ``"YYYY-MM"`` month (inclusive)."""
    year_str, month_str = year_month.split("-")
    year, month = int(year_str), int(month_str)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def year_months(year: str) -> tuple[str, str]:
    """Return the first and last ``"YYYY-MM"`` keys of a year (inclusive)."""
    return f"{int(year):04d}-01", f"{int(year):04d}-12"


def end_of_day_utc(d: date) -> datetime:
    """Exclusive upper bound of a settlement date: next midnight, UTC."""
    return datetime.combine(d + timedelta(days=1), time.min, tzinfo=timezone.utc)


def date_range(start: date, end: date) -> list[date]:
    """Inclusive list of dates from *start* to *end*."""
    if end < start:
        raise ValueError(f"end {end} is before start {start}")
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]
