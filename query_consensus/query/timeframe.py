"""
Timeframe translation to Elasticsearch date math.
"""

import re
from typing import Any, Dict, Optional

from query_consensus.core.models import Timeframe

# Canonical unit -> date math suffix ("m" is minutes, "M" is months)
DATE_MATH_UNITS = {
    "second": "s",
    "minute": "m",
    "hour": "h",
    "day": "d",
    "week": "w",
    "month": "M",
    "year": "y",
}

UNIT_ALIASES = {
    "s": "second", "sec": "second", "secs": "second", "seconds": "second",
    "m": "minute", "min": "minute", "mins": "minute", "minutes": "minute",
    "h": "hour", "hr": "hour", "hrs": "hour", "hours": "hour",
    "d": "day", "days": "day",
    "w": "week", "wk": "week", "weeks": "week",
    "M": "month", "mo": "month", "mon": "month", "months": "month",
    "y": "year", "yr": "year", "years": "year",
}

NAMED_RANGES = {
    "today": {"gte": "now/d", "lte": "now"},
    "yesterday": {"gte": "now-1d/d", "lt": "now/d"},
    "this week": {"gte": "now/w", "lte": "now"},
    "last week": {"gte": "now-1w/w", "lt": "now/w"},
    "this month": {"gte": "now/M", "lte": "now"},
    "last month": {"gte": "now-1M/M", "lt": "now/M"},
    "this year": {"gte": "now/y", "lte": "now"},
}

# Unit -> (next smaller unit, how many make one)
SMALLER_UNITS = {
    "minute": ("second", 60),
    "hour": ("minute", 60),
    "day": ("hour", 24),
    "week": ("day", 7),
    "month": ("day", 30),
    "year": ("day", 365),
}

RELATIVE_BOUND = re.compile(r"^now-(\d+)([smhdwMy])")


def normalize_unit(unit: Optional[str]) -> Optional[str]:
    """Map a unit spelling ("hrs", "M", "Days") to its canonical name."""
    if not unit:
        return None
    if unit in UNIT_ALIASES:  # case-sensitive: "M" vs "m"
        return UNIT_ALIASES[unit]
    lowered = unit.lower()
    if lowered in DATE_MATH_UNITS:
        return lowered
    return UNIT_ALIASES.get(lowered)


def date_math_offset(amount: float, unit: str) -> str:
    """
    Render an amount of a canonical unit as a date math offset.

    Whole amounts keep their unit ("7d"); fractional ones step down to
    smaller units until whole (2.5 hours -> "150m"). Seconds are rounded.
    """
    while not float(amount).is_integer() and unit in SMALLER_UNITS:
        unit, factor = SMALLER_UNITS[unit]
        amount = round(amount * factor, 6)
    return f"{int(round(amount))}{DATE_MATH_UNITS[unit]}"


def timeframe_range(timeframe: Timeframe) -> Optional[Dict[str, Any]]:
    """
    Convert a timeframe into range bounds.

    Args:
        timeframe: Relative, absolute or named timeframe

    Returns:
        Range body such as {"gte": "now-7d", "lte": "now"}, or None when the
        timeframe carries no usable bound
    """
    kind = (timeframe.type or "relative").lower()

    if kind == "relative":
        unit = normalize_unit(timeframe.unit)
        if unit is None:
            return None
        amount = timeframe.value if timeframe.value is not None else 1
        return {"gte": f"now-{date_math_offset(amount, unit)}", "lte": "now"}

    if kind == "absolute":
        bounds = {}
        if timeframe.start:
            bounds["gte"] = timeframe.start
        if timeframe.end:
            bounds["lte"] = timeframe.end
        return bounds or None

    if kind == "named":
        period = (timeframe.period or "").strip().lower().replace("_", " ")
        named = NAMED_RANGES.get(period)
        return dict(named) if named else None

    return None


def interval_for(unit: Optional[str], value: Optional[float]) -> str:
    """
    Pick a histogram interval for a window of `value` `unit`s.

    minute or <=6 hours -> minute; hours or <=3 days -> hour;
    days or <=2 weeks -> day; weeks or <=3 months -> week; otherwise month.
    """
    unit = normalize_unit(unit)
    value = value if value is not None else 1

    if unit in ("second", "minute") or (unit == "hour" and value <= 6):
        return "minute"
    if unit == "hour" or (unit == "day" and value <= 3):
        return "hour"
    if unit == "day" or (unit == "week" and value <= 2):
        return "day"
    if unit == "week" or (unit == "month" and value <= 3):
        return "week"
    if unit is None:
        return "day"
    return "month"


def determine_interval(
    timeframe: Optional[Timeframe],
    fallback_range: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Choose the calendar interval for a time-series histogram.

    A relative timeframe drives the choice directly; otherwise a "now-N<u>"
    lower bound in fallback_range is used; otherwise "day".
    """
    if timeframe is not None and (timeframe.type or "relative").lower() == "relative":
        if normalize_unit(timeframe.unit):
            return interval_for(timeframe.unit, timeframe.value)

    if fallback_range:
        lower = fallback_range.get("gte") or fallback_range.get("gt")
        if isinstance(lower, str):
            match = RELATIVE_BOUND.match(lower)
            if match:
                return interval_for(match.group(2), int(match.group(1)))

    return "day"


def extended_bounds(timeframe: Optional[Timeframe]) -> Optional[Dict[str, str]]:
    """Histogram bounds for absolute timeframes with both ends known."""
    if timeframe is None or (timeframe.type or "").lower() != "absolute":
        return None
    if timeframe.start and timeframe.end:
        return {"min": timeframe.start, "max": timeframe.end}
    return None
