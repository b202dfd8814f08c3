"""Forgiving coercion of raw spreadsheet cells.

Raw exports arrive as strings (or, from in-memory frames, as native values).
Nothing here raises on malformed input: a bad cell degrades to "", 0 or None
so that a single row can never abort a build.
"""
from __future__ import annotations

import math
import re
import warnings
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pandas as pd

_NUMERIC_CHARS = re.compile(r"[^\d.\-]")
_LEADING_NUMBER = re.compile(r"-?\d*\.?\d+")
_NUMERIC_TEXT = re.compile(r"^-?\d+(?:\.\d+)?$")
_MANUAL_DATETIME = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})(?:[ T](\d{2}):(\d{2})(?::(\d{2}))?)?"
)
_TRUTHY_TOKENS = {"true", "yes", "y", "1"}

# Spreadsheet serial days count from 1899-12-30
SERIAL_EPOCH = datetime(1899, 12, 30)
SERIAL_DAY_RANGE = (20000, 80000)
EPOCH_MS_THRESHOLD = 1_000_000_000_000

DATE_FORMATS = (
    "%m/%d/%Y, %I:%M:%S %p",
    "%m/%d/%Y, %I:%M %p",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y, %H:%M:%S",
    "%m/%d/%Y, %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def clean_str(value: object) -> str:
    """Trimmed string form of a cell; missing values become ""."""
    if _is_missing(value):
        return ""
    return str(value).strip()


def _leading_number(text: str) -> float:
    # Leading numeric prefix: "1.2.3" reads as 1.2 and "1-2" as 1
    match = _LEADING_NUMBER.match(_NUMERIC_CHARS.sub("", text))
    if match is None:
        raise ValueError(text)
    return float(match.group(0))


def parse_money(value: object) -> float:
    """Parse a money cell: strips symbols and separators, "(12.50)" is negative."""
    if _is_missing(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    text = str(value).strip()
    if not text:
        return 0.0
    negative = text.startswith("(") and text.endswith(")")
    try:
        number = _leading_number(text)
    except ValueError:
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return -abs(number) if negative else number


def parse_qty(value: object) -> float:
    """Parse a quantity cell; anything unreadable is 0."""
    if _is_missing(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        number = _leading_number(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def truthy(value: object) -> bool:
    """Interpret flag cells such as Test Order / Test Mode."""
    if value is True:
        return True
    return clean_str(value).lower() in _TRUTHY_TOKENS


def has_value(value: object) -> bool:
    """True when the cell holds anything other than blank."""
    return clean_str(value) != ""


def _from_number(number: float) -> Optional[datetime]:
    if not math.isfinite(number):
        return None
    try:
        if number > EPOCH_MS_THRESHOLD:
            aware = datetime.fromtimestamp(number / 1000.0, tz=timezone.utc)
            return aware.replace(tzinfo=None)
        low, high = SERIAL_DAY_RANGE
        if low <= number <= high:
            return SERIAL_EPOCH + timedelta(days=number)
    except (OverflowError, OSError, ValueError):
        return None
    return None


def _naive(dt: datetime) -> datetime:
    # Keep the wall-clock value of offset-aware inputs
    return dt.replace(tzinfo=None) if dt.tzinfo is not None else dt


def parse_any_date(value: object) -> Optional[datetime]:
    """Best-effort conversion of a cell to a naive ``datetime``.

    Tried in order: native date values; epoch milliseconds or spreadsheet
    serial days (numbers or numeric strings); ISO strings; locale formats such
    as "12/24/2025, 5:30:00 PM"; ``yyyy-mm-dd[ hh:mm[:ss]]``; finally pandas'
    own parser. Returns None when nothing fits. Never raises.
    """
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        return _naive(value.to_pydatetime())
    if isinstance(value, datetime):
        return _naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        return _from_number(float(value))

    text = str(value).strip().lstrip("'").strip()
    if not text:
        return None

    if _NUMERIC_TEXT.match(text):
        return _from_number(float(text))

    try:
        return _naive(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass

    no_comma = text.replace(",", "", 1)
    for fmt in DATE_FORMATS:
        for candidate in (text, no_comma):
            try:
                return datetime.strptime(candidate, fmt)
            except ValueError:
                continue

    match = _MANUAL_DATETIME.match(text)
    if match:
        year, month, day, hour, minute, second = (int(g) if g else 0 for g in match.groups())
        try:
            return datetime(year, month, day, hour, minute, second)
        except ValueError:
            return None

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(text, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
    if pd.isna(parsed):
        return None
    return _naive(parsed.to_pydatetime())


def format_datetime(value: Optional[datetime]) -> str:
    """Render a resolved date for the canonical table ("" when unknown)."""
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M:%S")
