"""Year-fraction conventions used by every pricer (ACT/365.25)."""

import re
from datetime import date, datetime

DAYS_PER_YEAR = 365.25
WEEKS_PER_YEAR = 52.18

_TENOR_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([DWMY])\s*$", re.IGNORECASE)


def as_date(value):
    """Coerce a date, datetime or ISO-8601 string to a ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip()[:10]).date()
    raise TypeError(f"Cannot interpret {value!r} as a date")


def year_fraction(maturity, valuation):
    """
    Time to maturity in years, floored at zero.

    An instrument whose maturity is on or before the valuation date gets
    exactly 0.0, which the pricers treat as expired.
    """
    days = (as_date(maturity) - as_date(valuation)).days
    return max(0.0, days / DAYS_PER_YEAR)


def tenor_to_years(tenor):
    """Convert a tenor string such as ``"3M"`` or ``"10D"`` to years."""
    m = _TENOR_RE.match(tenor)
    if m is None:
        raise ValueError(f"Unrecognised tenor: {tenor!r}")
    n, unit = float(m.group(1)), m.group(2).upper()
    if unit == "D":
        return n / DAYS_PER_YEAR
    if unit == "W":
        return n / WEEKS_PER_YEAR
    if unit == "M":
        return n / 12.0
    return n
