"""Unit tests for cell coercion and date resolution."""
from datetime import date, datetime, timezone

import pandas as pd
import pytest

from orderrecon.coercion_utils import (
    clean_str,
    format_datetime,
    has_value,
    parse_any_date,
    parse_money,
    parse_qty,
    truthy,
)


def test_parse_money_handles_symbols_and_parentheses():
    assert parse_money("$1,234.50") == 1234.5
    assert parse_money("(12.50)") == -12.5
    assert parse_money("-3") == -3.0
    assert parse_money("") == 0.0
    assert parse_money("n/a") == 0.0
    assert parse_money(None) == 0.0
    assert parse_money(float("nan")) == 0.0


def test_parse_money_reads_leading_numeric_prefix():
    assert parse_money("1.2.3") == 1.2
    assert parse_money("1-2") == 1.0
    assert parse_money("12.") == 12.0
    assert parse_money("-") == 0.0
    assert parse_qty("2-3") == 2.0
    assert parse_qty("3 pcs") == 3.0


def test_parse_qty_and_flags():
    assert parse_qty("3") == 3.0
    assert parse_qty("abc") == 0.0
    assert truthy("TRUE") and truthy("yes") and truthy("1") and truthy(True)
    assert not truthy("false") and not truthy("") and not truthy(None)
    assert has_value(" x ") and not has_value("   ")
    assert clean_str("  hi ") == "hi"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2025-03-01 09:30:00", datetime(2025, 3, 1, 9, 30)),
        ("2025-03-01T09:30:00Z", datetime(2025, 3, 1, 9, 30)),
        ("2025-03-01T09:30:00-05:00", datetime(2025, 3, 1, 9, 30)),
        ("12/24/2025, 5:30:00 PM", datetime(2025, 12, 24, 17, 30)),
        ("12/24/2025 17:30", datetime(2025, 12, 24, 17, 30)),
        ("'2025-01-02", datetime(2025, 1, 2)),
        ("45658", datetime(2025, 1, 1)),
        (45658.5, datetime(2025, 1, 1, 12, 0)),
        (1735689600000, datetime(2025, 1, 1)),
    ],
)
def test_parse_any_date_accepts_common_shapes(raw, expected):
    assert parse_any_date(raw) == expected


def test_parse_any_date_native_values():
    assert parse_any_date(date(2025, 5, 6)) == datetime(2025, 5, 6)
    assert parse_any_date(pd.Timestamp("2025-05-06 07:08")) == datetime(2025, 5, 6, 7, 8)
    aware = datetime(2025, 5, 6, 7, 8, tzinfo=timezone.utc)
    assert parse_any_date(aware).tzinfo is None


@pytest.mark.parametrize("raw", ["", "   ", None, "not a date", "12", True, float("nan")])
def test_parse_any_date_never_raises(raw):
    assert parse_any_date(raw) is None


def test_format_datetime():
    assert format_datetime(datetime(2025, 1, 2, 3, 4, 5)) == "2025-01-02 03:04:05"
    assert format_datetime(None) == ""
