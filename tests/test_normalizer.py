"""Tests for raw date and amount normalization."""

from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from receipt_recon.parsers.normalizer import normalize_date, parse_amount, parse_date
from receipt_recon.utils.exceptions import ParseError


class TestParseDate:
    """Tests for parse_date."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2024-01-15", date(2024, 1, 15)),
            ("01/15/2024", date(2024, 1, 15)),
            ("01-15-2024", date(2024, 1, 15)),
            ("1/5/2024", date(2024, 1, 5)),
            ("2024/01/15", date(2024, 1, 15)),
            ("15.01.2024", date(2024, 1, 15)),
            ("5.1.2024", date(2024, 1, 5)),
        ],
    )
    def test_known_formats(self, raw, expected):
        assert parse_date(raw) == expected

    def test_strips_quotes_and_whitespace(self):
        """Quoted cells from sloppy exports still parse."""
        assert parse_date('  "2024-01-15" ') == date(2024, 1, 15)

    def test_accepts_date_and_timestamp(self):
        assert parse_date(date(2024, 3, 1)) == date(2024, 3, 1)
        assert parse_date(pd.Timestamp("2024-03-01 10:30")) == date(2024, 3, 1)

    def test_rejects_impossible_calendar_day(self):
        with pytest.raises(ParseError) as exc_info:
            parse_date("2024-02-30")
        assert exc_info.value.field == "date"

    @pytest.mark.parametrize("raw", ["not-a-date", "", "   ", None, "today"])
    def test_rejects_garbage(self, raw):
        with pytest.raises(ParseError):
            parse_date(raw)

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Jan 15, 2024", date(2024, 1, 15)),
            ("15 January 2024", date(2024, 1, 15)),
            ("2024-01-15 10:30", date(2024, 1, 15)),
        ],
    )
    def test_written_out_dates_keep_their_year(self, raw, expected):
        assert parse_date(raw) == expected

    @pytest.mark.parametrize("raw", ["Jan 5", "March 3", "2024", "March 2024"])
    def test_rejects_partial_dates(self, raw):
        """Missing parts are never filled in with a guessed value."""
        with pytest.raises(ParseError):
            parse_date(raw)

    def test_rejects_day_first_slash_date(self):
        """13/01/2024 is not a valid month/day date and is not reinterpreted."""
        with pytest.raises(ParseError):
            parse_date("13/01/2024")

    def test_rejects_out_of_range_year(self):
        with pytest.raises(ParseError):
            parse_date("Jan 15, 1850")

    def test_normalize_date_returns_iso_string(self):
        assert normalize_date("15.01.2024") == "2024-01-15"


class TestParseAmount:
    """Tests for parse_amount."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("45.67", Decimal("45.67")),
            ("$1,234.56", Decimal("1234.56")),
            ("+12.00", Decimal("12.00")),
            ("-12.50", Decimal("-12.50")),
            ("(45.00)", Decimal("-45.00")),
            ("100.00 CR", Decimal("-100.00")),
            ("50.00 DR", Decimal("50.00")),
            ("£ 9.99", Decimal("9.99")),
            ("1.234.56", Decimal("1234.56")),
        ],
    )
    def test_formats(self, raw, expected):
        assert parse_amount(raw) == expected

    def test_numeric_input_is_passed_through(self):
        assert parse_amount(12.5) == Decimal("12.5")
        assert parse_amount(Decimal("3.10")) == Decimal("3.10")

    @pytest.mark.parametrize("raw", ["", "   ", "abc", "$", None])
    def test_rejects_non_numeric(self, raw):
        with pytest.raises(ParseError) as exc_info:
            parse_amount(raw)
        assert exc_info.value.field == "amount"

    def test_nan_is_rejected(self):
        with pytest.raises(ParseError):
            parse_amount(float("nan"))


@pytest.mark.parametrize(
    "fmt", ["%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d", "%d.%m.%Y"]
)
@pytest.mark.parametrize(
    "value", [date(2024, 1, 1), date(2024, 2, 29), date(2023, 4, 30), date(1999, 12, 31)]
)
def test_date_formats_round_trip(fmt, value):
    assert parse_date(value.strftime(fmt)) == value


def test_credit_marker_is_negative():
    assert parse_amount("123.45 CR") == Decimal("-123.45")
