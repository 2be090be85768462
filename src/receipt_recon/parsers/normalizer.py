"""
Field normalization for raw date and amount tokens.

Bank exports disagree on almost every formatting detail, so both parsers
accept many shapes but never return a value they could not validate.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
import logging
import re

import pandas as pd

from ..utils.exceptions import ParseError

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY_SYMBOLS = "$£€¥₹₽¢₩₪₿"

# (pattern, positions of year/month/day in the match groups)
DATE_PATTERNS: list[tuple[re.Pattern, tuple[int, int, int]]] = [
    (re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"), (1, 2, 3)),  # YYYY-MM-DD
    (re.compile(r"^(\d{2})/(\d{2})/(\d{4})$"), (3, 1, 2)),  # MM/DD/YYYY
    (re.compile(r"^(\d{2})-(\d{2})-(\d{4})$"), (3, 1, 2)),  # MM-DD-YYYY
    (re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$"), (3, 1, 2)),  # M/D/YYYY
    (re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$"), (3, 1, 2)),  # M-D-YYYY
    (re.compile(r"^(\d{4})/(\d{2})/(\d{2})$"), (1, 2, 3)),  # YYYY/MM/DD
    (re.compile(r"^(\d{2})\.(\d{2})\.(\d{4})$"), (3, 2, 1)),  # DD.MM.YYYY
    (re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$"), (3, 2, 1)),  # D.M.YYYY
]

CONCATENATED_MMDDYYYY = re.compile(r"^(\d{2})(\d{2})(\d{4})$")
AMBIGUOUS_NUMERIC = re.compile(r"^\d{1,2}\D\d{1,2}\D\d{4}$")
MONTH_NAME = re.compile(r"(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)", re.IGNORECASE)
MIN_YEAR = 1900
MAX_YEAR = 2100


def parse_date(value: Any) -> date:
    """
    Parse a raw date token into a calendar date.

    Known patterns are tried first and must round-trip to a real date;
    then a permissive parse; then a few substitution edge cases. A
    permissive result is kept only when the token spells out the year,
    month and day itself.

    Raises:
        ParseError: If no interpretation yields a valid date
    """
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, date):
        return value

    if value is None or not isinstance(value, str):
        raise ParseError("Invalid date input: must be a non-empty string", field="date", value=value)

    # Patterns see a compact token; the permissive parse keeps inner spaces
    text = value.strip().strip("\"'").strip()
    cleaned = re.sub(r"[\"'\s]", "", value)
    if not cleaned:
        raise ParseError("Empty date string after cleaning", field="date", value=value)

    for pattern, (y_idx, m_idx, d_idx) in DATE_PATTERNS:
        match = pattern.match(cleaned)
        if match:
            parsed = _build_date(match.group(y_idx), match.group(m_idx), match.group(d_idx))
            if parsed:
                return parsed

    parsed = _generic_parse(text)
    if parsed:
        return parsed

    for candidate in (text.replace("/", "-"), text.replace(".", "-")):
        parsed = _generic_parse(candidate)
        if parsed:
            return parsed

    match = CONCATENATED_MMDDYYYY.match(cleaned)
    if match:
        parsed = _build_date(match.group(3), match.group(1), match.group(2))
        if parsed:
            return parsed

    raise ParseError(f"Unrecognized date format: {value}", field="date", value=value)


def normalize_date(value: Any) -> str:
    """Parse a raw date token and return it as YYYY-MM-DD."""
    return parse_date(value).isoformat()


def _build_date(year: str, month: str, day: str) -> Optional[date]:
    """Build a date only if the captured parts form a real calendar day."""
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def _generic_parse(text: str) -> Optional[date]:
    # Words like "today" parse successfully but are never statement dates
    if not any(ch.isdigit() for ch in text):
        return None
    # Numeric day/month order was already settled by DATE_PATTERNS
    if AMBIGUOUS_NUMERIC.match(text):
        return None
    try:
        parsed = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    if not _is_complete_date(text, parsed.year):
        return None
    return parsed.date()


def _is_complete_date(text: str, year: int) -> bool:
    """
    True if the token itself names the parsed year, a month and a day.

    The permissive parser fills in whatever is missing ("Jan 5" gets
    year 1, "2024" gets January 1st), so such results are rejected.
    """
    if not MIN_YEAR <= year <= MAX_YEAR:
        return False
    year_match = re.search(rf"(?<!\d){year}(?!\d)", text)
    if not year_match:
        return False
    rest = text[: year_match.start()] + text[year_match.end():]
    parts = len(re.findall(r"\d+", rest))
    if MONTH_NAME.search(rest):
        parts += 1
    return parts >= 2


def parse_amount(value: Any, currency_symbols: str = DEFAULT_CURRENCY_SYMBOLS) -> Decimal:
    """
    Parse a raw amount token into a signed Decimal.

    Negative when wrapped in parentheses, led by a minus sign, or marked CR.
    A DR marker is removed without changing the sign.

    Raises:
        ParseError: If the token has no usable numeric content
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if pd.isna(value):
            raise ParseError("Amount is missing", field="amount", value=value)
        return Decimal(str(value))

    if value is None or not isinstance(value, str) or not value.strip():
        raise ParseError("Invalid amount input: must be a non-empty string", field="amount", value=value)

    strip_chars = re.escape(currency_symbols) + r",\s"
    cleaned = re.sub(f"[{strip_chars}]", "", value.strip())
    cleaned = re.sub(r"^\+", "", cleaned)

    if not cleaned:
        raise ParseError("Empty amount string after cleaning", field="amount", value=value)

    is_negative = False
    if "(" in cleaned and ")" in cleaned:
        is_negative = True
        cleaned = re.sub(r"[()]", "", cleaned)
    elif cleaned.startswith("-"):
        is_negative = True
        cleaned = cleaned[1:]
    elif "cr" in cleaned.lower():
        is_negative = True
        cleaned = re.sub(r"cr", "", cleaned, flags=re.IGNORECASE)
    elif "dr" in cleaned.lower():
        cleaned = re.sub(r"dr", "", cleaned, flags=re.IGNORECASE)

    cleaned = re.sub(r"[^0-9.]", "", cleaned)
    if not cleaned:
        raise ParseError(f"No numeric content found: {value}", field="amount", value=value)

    # With several dots only the last one is a decimal point
    if cleaned.count(".") > 1:
        last = cleaned.rfind(".")
        cleaned = cleaned[:last].replace(".", "") + cleaned[last:]

    try:
        amount = Decimal(cleaned)
    except InvalidOperation as e:
        raise ParseError(f"Cannot parse as number: {value}", field="amount", value=value) from e

    if not amount.is_finite() or amount < 0:
        raise ParseError(f"Invalid amount magnitude: {value}", field="amount", value=value)

    return -amount if is_negative else amount
