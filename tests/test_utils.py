"""Tests for value parsing and settlement period helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from curtailment.core.utils.parsing import parse_flag, parse_iso_date, parse_numeric_value
from curtailment.core.utils.periods import (
    all_periods,
    date_range,
    end_of_day_utc,
    month_bounds,
    year_key,
    year_month_key,
    year_months,
)


# ---------------------------------------------------------------------------
# parse_numeric_value
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "raw, expected",
    [
        (7.2, 7.2),
        (-12, -12.0),
        ("-12.5", -12.5),
        (" 1,234.5 ", 1234.5),
    ],
)
def test_parse_numeric_value(raw, expected):
    assert parse_numeric_value(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "-", "   "])
def test_parse_numeric_value_placeholders_are_none(raw):
    assert parse_numeric_value(raw) is None


def test_parse_numeric_value_rejects_garbage():
    with pytest.raises(ValueError):
        parse_numeric_value("abc")
    with pytest.raises(ValueError):
        parse_numeric_value(True)


# ---------------------------------------------------------------------------
# parse_flag
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "raw, expected",
    [(None, False), (True, True), (False, False), ("true", True), ("F", False), (1, True), (0, False)],
)
def test_parse_flag(raw, expected):
    assert parse_flag(raw) is expected


def test_parse_flag_rejects_unknown_literal():
    with pytest.raises(ValueError):
        parse_flag("maybe")


def test_parse_iso_date():
    assert parse_iso_date("2025-03-04") == date(2025, 3, 4)
    assert parse_iso_date(datetime(2025, 3, 4, 12)) == date(2025, 3, 4)


# ---------------------------------------------------------------------------
# Periods and keys
# ---------------------------------------------------------------------------
def test_all_periods():
    assert all_periods(48) == set(range(1, 49))
    with pytest.raises(ValueError):
        all_periods(0)


def test_summary_keys():
    d = date(2025, 3, 4)
    assert year_month_key(d) == "2025-03"
    assert year_key(d) == "2025"


def test_month_bounds_handles_leap_february():
    assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds("2025-02") == (date(2025, 2, 1), date(2025, 2, 28))


def test_year_months():
    assert year_months("2025") == ("2025-01", "2025-12")


def test_end_of_day_utc_is_next_midnight():
    assert end_of_day_utc(date(2025, 12, 31)) == datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_date_range_inclusive():
    assert date_range(date(2025, 2, 27), date(2025, 3, 1)) == [
        date(2025, 2, 27),
        date(2025, 2, 28),
        date(2025, 3, 1),
    ]
    with pytest.raises(ValueError):
        date_range(date(2025, 3, 2), date(2025, 3, 1))
