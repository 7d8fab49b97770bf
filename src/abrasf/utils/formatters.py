from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal


def format_decimal(value: Decimal | int | str, places: int = 2) -> str:
    """Format a number with a fixed number of fraction digits and '.' as separator.

    Independent of locale: Decimal formatting never uses grouping here.
    """
    d = Decimal(str(value))
    quantum = Decimal(1).scaleb(-places)
    return f"{d.quantize(quantum, rounding=ROUND_HALF_UP):.{places}f}"


def format_money(value: Decimal | int | str) -> str:
    """Monetary amount: 2 fraction digits."""
    return format_decimal(value, 2)


def format_rate(value: Decimal | int | str) -> str:
    """Rate (Aliquota): 4 fraction digits."""
    return format_decimal(value, 4)


def format_date(value: date) -> str:
    """ABRASF date (yyyy-MM-dd)."""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()

