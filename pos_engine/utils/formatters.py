"""
Display formatting for receipts and shift summaries.
Amounts arrive as integer cents; output uses comma thousands grouping and a
dot decimal separator.
"""
from datetime import datetime
from typing import Optional

from pos_engine.utils.money import from_minor_units


def money(cents: Optional[int], symbol: str = '') -> str:
    """
    Format an amount in cents with exactly 2 decimals.

    Examples:
        money(12497) -> "124.97"
        money(150000, '$') -> "$1,500.00"
        money(-250, '$') -> "-$2.50"
        money(None) -> "-"
    """
    if cents is None:
        return "-"

    sign = "-" if cents < 0 else ""
    value = from_minor_units(abs(cents))

    integer_part, decimal_part = f"{value:.2f}".split(".")
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    integer_formatted = ','.join(groups)[::-1]

    return f"{sign}{symbol}{integer_formatted}.{decimal_part}"


def datetime_label(value: Optional[datetime], with_time: bool = True) -> str:
    """
    Format a datetime as YYYY-MM-DD HH:MM (or just the date).

    Examples:
        datetime_label(datetime(2026, 1, 12, 15, 30)) -> "2026-01-12 15:30"
    """
    if value is None or not isinstance(value, datetime):
        return "-"
    if with_time:
        return value.strftime("%Y-%m-%d %H:%M")
    return value.strftime("%Y-%m-%d")


def duration_label(minutes: int) -> str:
    """Shift duration as '3h 05m'."""
    hours, mins = divmod(max(0, int(minutes)), 60)
    return f"{hours}h {mins:02d}m"
