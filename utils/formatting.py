"""Output formatting utilities for Expensage.

Provides reusable functions for:
- Month labels for the ef_month column
- Currency amounts (two decimals, locale grouping, no symbol)
- Timestamps for the expense table
- Whole-number figures for the stats panel
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

MONTHS = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN",
          "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}

Number = Union[int, float, Decimal]


def month_name(month: int) -> str:
    """Return the three-letter label for a month number.

    Out-of-range numbers wrap around instead of raising, so 13 is "JAN"
    and 0 is "DEC".

    Examples:
        month_name(1) -> "JAN"
        month_name(14) -> "FEB"
    """
    return MONTHS[(int(month) - 1) % 12]


def _group_digits(digits: str, grouping: str) -> str:
    """Insert thousands separators into a string of integer digits."""
    if grouping == "western" or len(digits) <= 3:
        return f"{int(digits):,d}"
    # Indian grouping: last three digits, then pairs (12,34,567)
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_amount(value: Optional[Number], grouping: str = "indian") -> str:
    """Format a currency amount with two decimals and digit grouping.

    No currency symbol is embedded; callers prepend one with
    :func:`currency_symbol`.

    Args:
        value: Amount (int, float, Decimal) or None.
        grouping: "indian" (12,34,567.00) or "western" (1,234,567.00).

    Returns:
        Formatted string, or "-" when value is None.

    Examples:
        format_amount(1234567) -> "12,34,567.00"
        format_amount(1234567, grouping="western") -> "1,234,567.00"
        format_amount(-42.5) -> "-42.50"
    """
    if value is None:
        return "-"
    if grouping not in ("indian", "western"):
        raise ValueError(f"Unknown grouping: {grouping!r}")
    text = f"{float(value):.2f}"
    sign = ""
    if text.startswith("-"):
        sign, text = "-", text[1:]
    whole, fraction = text.split(".")
    return f"{sign}{_group_digits(whole, grouping)}.{fraction}"


def format_stat(value: Optional[Number], grouping: str = "indian") -> str:
    """Format a stats-panel figure as a grouped whole number.

    Examples:
        format_stat(123456.78) -> "1,23,457"
        format_stat(None) -> "0"
    """
    if value is None:
        return "0"
    rounded = round(float(value))
    sign = "-" if rounded < 0 else ""
    return sign + _group_digits(str(abs(rounded)), grouping)


def parse_timestamp(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Coerce a driver timestamp (datetime or ISO-8601 string) to datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).strip())


def format_timestamp(value: Union[datetime, str, None]) -> str:
    """Format a timestamp as a short human string.

    Examples:
        format_timestamp("2024-01-12 10:30:00") -> "12 Jan 2024, 10:30 AM"
        format_timestamp(None) -> "-"
    """
    ts = parse_timestamp(value)
    if ts is None:
        return "-"
    return ts.strftime("%d %b %Y, %I:%M %p")


def currency_symbol(code: Optional[str]) -> str:
    """Return the display symbol for a currency code, or the code itself."""
    if not code:
        return ""
    return CURRENCY_SYMBOLS.get(code.upper(), code.upper() + " ")
