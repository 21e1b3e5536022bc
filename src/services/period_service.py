"""Calendar helpers for monthly ledger periods.

A period is always stored as the first day of its month. Callers may pass a
date, a datetime or a "YYYY-MM" / "YYYY-MM-DD" string.
"""

import re
from datetime import date, datetime

from src.services.errors import ValidationError

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def normalize_period(value: date | datetime | str) -> date:
    """Return the first day of the month containing ``value``.

    Raises:
        ValidationError: If a string is not "YYYY-MM" or an ISO date
    """
    if isinstance(value, datetime):
        return date(value.year, value.month, 1)
    if isinstance(value, date):
        return date(value.year, value.month, 1)

    text = str(value).strip()
    match = _MONTH_RE.match(text)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid period month: {text!r}. Use YYYY-MM")
        return date(year, month, 1)

    try:
        parsed = date.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f"Invalid period: {text!r}. Use YYYY-MM") from e
    return date(parsed.year, parsed.month, 1)


def next_period(period: date) -> date:
    """First day of the month after ``period``."""
    if period.month == 12:
        return date(period.year + 1, 1, 1)
    return date(period.year, period.month + 1, 1)


def period_bounds(value: date | datetime | str) -> tuple[date, date]:
    """Half-open [start, end) date range covering the month of ``value``."""
    start = normalize_period(value)
    return start, next_period(start)


def format_period(period: date) -> str:
    """Render a period as "YYYY-MM"."""
    return f"{period.year:04d}-{period.month:02d}"


def as_date(value: date | datetime) -> date:
    """Collapse a datetime to its calendar date; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


__all__ = ["normalize_period", "next_period", "period_bounds", "format_period", "as_date"]
