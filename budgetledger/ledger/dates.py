"""Mini README: Calendar helpers shared by the ledger and analytics.

The record store keeps dates as epoch-millisecond integers while the
engine works with naive local ``datetime`` values. These helpers convert
between the two and implement calendar-month arithmetic that keeps the
day of month, clamping to the last day when the target month is shorter
(31 January plus one month is 28/29 February).
"""

from __future__ import annotations

import calendar
from datetime import datetime
from typing import Optional


def to_epoch_ms(value: Optional[datetime]) -> Optional[int]:
    """Convert a datetime to epoch milliseconds, passing ``None`` through."""

    if value is None:
        return None
    return int(round(value.timestamp() * 1000))


def from_epoch_ms(value: Optional[object]) -> Optional[datetime]:
    """Parse epoch milliseconds (or an ISO string / datetime) into a datetime."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            value = float(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value) / 1000)
    raise ValueError(f"Unsupported date value: {value!r}")


def days_in_month(year: int, month: int) -> int:
    """Number of days in the given month."""

    return calendar.monthrange(year, month)[1]


def add_months(value: datetime, months: int) -> datetime:
    """Shift a datetime by whole calendar months keeping the day of month."""

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, days_in_month(year, month))
    return value.replace(year=year, month=month, day=day)


def same_month(value: datetime, year: int, month: int) -> bool:
    """Whether ``value`` falls within the given calendar month."""

    return value.year == year and value.month == month


def month_key(value: datetime) -> str:
    """Sortable ``YYYY-MM`` key used to group ledger rows by month."""

    return f"{value.year:04d}-{value.month:02d}"
