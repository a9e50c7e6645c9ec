"""
Unit tests for utils/formatting.py

Tests all public functions: month_name, format_amount, format_stat,
parse_timestamp, format_timestamp, currency_symbol.
No database, network, or file I/O required.
"""
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.formatting import (
    MONTHS,
    currency_symbol,
    format_amount,
    format_stat,
    format_timestamp,
    month_name,
    parse_timestamp,
)


# ── month_name ────────────────────────────────────────────────────────────────

def test_month_name_first_and_last():
    assert month_name(1) == "JAN"
    assert month_name(12) == "DEC"


def test_month_name_all_labels():
    assert [month_name(m) for m in range(1, 13)] == list(MONTHS)


def test_month_name_wraps_past_december():
    assert month_name(13) == "JAN"
    assert month_name(14) == "FEB"


def test_month_name_wraps_below_one():
    assert month_name(0) == "DEC"
    assert month_name(-1) == "NOV"


@pytest.mark.parametrize("k", [-3, -1, 1, 2, 5])
def test_month_name_wrap_invariant(k):
    for m in range(-12, 25):
        assert month_name(m) == month_name(m + 12 * k)


# ── format_amount ─────────────────────────────────────────────────────────────

def test_format_amount_none():
    assert format_amount(None) == "-"


def test_format_amount_zero():
    assert format_amount(0) == "0.00"


def test_format_amount_small():
    assert format_amount(999) == "999.00"


def test_format_amount_indian_grouping():
    assert format_amount(1234567.891) == "12,34,567.89"
    assert format_amount(100000) == "1,00,000.00"
    assert format_amount(1234) == "1,234.00"


def test_format_amount_western_grouping():
    assert format_amount(1234567.891, grouping="western") == "1,234,567.89"
    assert format_amount(100000, grouping="western") == "100,000.00"


def test_format_amount_negative():
    assert format_amount(-42.5) == "-42.50"
    assert format_amount(-1234567, grouping="indian") == "-12,34,567.00"


def test_format_amount_decimal():
    assert format_amount(Decimal("1850.50")) == "1,850.50"


def test_format_amount_has_no_symbol():
    assert "₹" not in format_amount(1000)
    assert "$" not in format_amount(1000, grouping="western")


def test_format_amount_unknown_grouping():
    with pytest.raises(ValueError, match="grouping"):
        format_amount(1, grouping="swiss")


# ── format_stat ───────────────────────────────────────────────────────────────

def test_format_stat_rounds_to_whole():
    assert format_stat(123456.78) == "1,23,457"


def test_format_stat_western():
    assert format_stat(1234567.4, grouping="western") == "1,234,567"


def test_format_stat_none_is_zero():
    assert format_stat(None) == "0"


def test_format_stat_small():
    assert format_stat(2.4) == "2"


# ── timestamps ────────────────────────────────────────────────────────────────

def test_parse_timestamp_string():
    assert parse_timestamp("2024-01-12 10:30:00") == datetime(2024, 1, 12, 10, 30)


def test_parse_timestamp_passthrough():
    ts = datetime(2024, 5, 1, 8, 0)
    assert parse_timestamp(ts) is ts


def test_parse_timestamp_empty():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_format_timestamp_morning():
    assert format_timestamp("2024-01-12 10:30:00") == "12 Jan 2024, 10:30 AM"


def test_format_timestamp_iso_t_separator():
    assert format_timestamp("2024-01-12T10:30:00") == "12 Jan 2024, 10:30 AM"


def test_format_timestamp_evening_datetime():
    assert format_timestamp(datetime(2024, 3, 5, 22, 5)) == "05 Mar 2024, 10:05 PM"


def test_format_timestamp_missing():
    assert format_timestamp(None) == "-"
    assert format_timestamp("") == "-"


# ── currency_symbol ───────────────────────────────────────────────────────────

class TestCurrencySymbol:
    def test_known_codes(self):
        assert currency_symbol("INR") == "₹"
        assert currency_symbol("USD") == "$"
        assert currency_symbol("EUR") == "€"
        assert currency_symbol("GBP") == "£"

    def test_lowercase_code(self):
        assert currency_symbol("usd") == "$"

    def test_unknown_code_falls_back_to_code(self):
        assert currency_symbol("CHF") == "CHF "

    def test_empty(self):
        assert currency_symbol(None) == ""
        assert currency_symbol("") == ""
