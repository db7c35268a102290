"""Date and value helpers shared by the product engines."""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable


def to_ordinal(value: Any) -> int:
    """Return the proleptic Gregorian ordinal for an int, date, or ISO string."""
    if isinstance(value, bool):
        raise TypeError(f"not a date: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, date):
        return value.toordinal()
    if isinstance(value, str):
        return date.fromisoformat(value[:10]).toordinal()
    raise TypeError(f"not a date: {value!r}")


def to_date(ordinal: int) -> date:
    return date.fromordinal(ordinal)


def to_yyyy_mm_dd(ordinal: int) -> str:
    return to_date(ordinal).isoformat()


def subtract_year(ordinal: int) -> int:
    """Return the ordinal of the same month/day one year earlier.

    Feb 29 maps to Feb 28 of the previous year.
    """
    d = to_date(ordinal)
    try:
        previous = d.replace(year=d.year - 1)
    except ValueError:
        previous = d.replace(year=d.year - 1, day=28)
    return previous.toordinal()


def concat_ints(a: int, b: int) -> int:
    """Concatenate the decimal digits of two integers: (3, 4) -> 34."""
    return int(f"{int(a)}{int(b)}")


def scale_value(value: float, low: float, high: float) -> float:
    """Linearly rescale a [0, 1] probability into [low, high]."""
    return low + float(value) * (high - low)


def flatten_values(values: Iterable[Any]) -> list[dict]:
    """Order a date group of product values by pixel and convert to records."""
    ordered = sorted(values, key=lambda v: (v.px, v.py))
    return [v.to_dict() for v in ordered]
