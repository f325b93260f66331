"""Value parsing utilities for Elexon BMRS payloads.

The settlement stack endpoints return numbers either as JSON numbers or as
strings, and reason flags either as booleans, ``null`` or string literals.

Examples::

    >>> parse_numeric_value("-12.5")
    -12.5
    >>> parse_numeric_value(7.2)
    7.2
    >>> parse_numeric_value("")  # returns None
    >>> parse_flag(None)
    False
    >>> parse_flag("true")
    True
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

_TRUE_LITERALS = {"true", "t", "1", "y", "yes"}
_FALSE_LITERALS = {"false", "f", "0", "n", "no", ""}


def parse_numeric_value(raw: Any) -> float | None:
    """Parse a numeric JSON value (number or string) into a float.

    Args:
        raw: The raw value from the payload.

    Returns:
        The parsed float value, or None for null/empty/placeholder values.

    Raises:
        ValueError: If the value cannot be parsed as a number.
    """
    if raw is None:
        return None

    if isinstance(raw, bool):
        raise ValueError(f"Cannot parse boolean {raw!r} as a numeric value")

    if isinstance(raw, (int, float)):
        return float(raw)

    stripped = str(raw).strip()

    # Return None for empty or dash-only placeholders
    if stripped in ("", "-"):
        return None

    try:
        return float(stripped.replace(",", ""))
    except ValueError:
        raise ValueError(f"Cannot parse '{raw}' as a numeric value")


def parse_flag(raw: Any) -> bool:
    """Parse a reason flag; ``null`` and missing flags are False.

    Raises:
        ValueError: If a string flag is not a recognised literal.
    """
    if raw is None:
        return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0

    literal = str(raw).strip().lower()
    if literal in _TRUE_LITERALS:
        return True
    if literal in _FALSE_LITERALS:
        return False
    raise ValueError(f"Cannot parse '{raw}' as a boolean flag")


def parse_iso_date(value: str | date) -> date:
    """Parse a ``YYYY-MM-DD`` string (or pass a date through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()
