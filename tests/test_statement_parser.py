"""Tests for bank statement table ingestion."""

from datetime import date
from decimal import Decimal

import pytest

from receipt_recon.models.transaction import TransactionType
from receipt_recon.parsers.statement_parser import StatementParser
from receipt_recon.utils.exceptions import ErrorKind, ParseError


@pytest.fixture
def parser(config) -> StatementParser:
    return StatementParser(config)


class TestDelimiterDetection:
    """Tests for guessing the column separator."""

    def test_comma(self, parser):
        detection = parser.detect_delimiter("Date,Description,Amount\n2024-01-15,Shop,-1.00\n")
        assert detection.delimiter == ","
        assert detection.column_count == 3
        assert detection.confidence == 75

    def test_semicolon(self, parser):
        detection = parser.detect_delimiter("Date;Description;Debit;Credit\n")
        assert detection.delimiter == ";"
        assert detection.name == "Semicolon"
        assert detection.confidence == 100

    def test_tab(self, parser):
        detection = parser.detect_delimiter("Date\tDescription\tAmount\n")
        assert detection.delimiter == "\t"

    def test_single_column_has_zero_confidence(self, parser):
        detection = parser.detect_delimiter("Date\n2024-01-15\n")
        assert detection.delimiter == ","
        assert detection.confidence == 0

    def test_tie_goes_to_earlier_candidate(self, parser):
        """Comma is checked before pipe, so equal splits keep the comma."""
        detection = parser.detect_delimiter("Date,Description|Amount\n")
        assert detection.delimiter == ","


class TestColumnMapping:
    """Tests for resolving canonical fields to table headers."""

    def test_keyword_detection(self, parser):
        headers = ["Transaction Date", "Details", "Money Out", "Money In", "Balance"]
        mapping = parser.build_column_mapping(headers)
        assert mapping == {
            "date": "Transaction Date",
            "description": "Details",
            "debit": "Money Out",
            "credit": "Money In",
            "balance": "Balance",
        }

    def test_header_is_claimed_once(self, parser):
        """A header taken by the date field is not reused for another field."""
        mapping = parser.build_column_mapping(["Posting Date", "Memo", "Value", "Ref"])
        assert mapping["date"] == "Posting Date"
        assert mapping["description"] == "Memo"
        assert mapping["amount"] == "Value"
        assert mapping["reference"] == "Ref"
        assert len(set(mapping.values())) == len(mapping)

    def test_earlier_keyword_beats_earlier_header(self, parser):
        """The "date" keyword outranks "posted", so the later "Value Date" header wins."""
        mapping = parser.build_column_mapping(["Posted", "Value Date", "Memo", "Amount"])
        assert mapping["date"] == "Value Date"
        assert mapping["description"] == "Memo"

    def test_custom_mapping_is_case_insensitive(self, parser):
        mapping = parser.build_column_mapping(
            ["When", "What", "How Much"],
            {"date": "when", "description": "WHAT", "amount": "how much"},
        )
        assert mapping == {"date": "When", "description": "What", "amount": "How Much"}

    def test_custom_mapping_miss_falls_back_to_detection(self, parser):
        mapping = parser.build_column_mapping(
            ["Date", "Description", "Amount"], {"date": "Booking Day"}
        )
        assert mapping["date"] == "Date"


class TestParse:
    """Tests for full table parsing."""

    def test_mixed_rows(self, parser, statement_csv):
        """One bad row is reported and the rest still parse."""
        result = parser.parse(statement_csv, statement_name="jan.csv")

        assert result.ok
        assert result.total_rows == 5
        assert result.successful_rows == 4
        assert len(result.records) == 4
        assert len(result.errors) == 1

        error = result.errors[0]
        assert error.row_number == 3
        assert error.kind == ErrorKind.PARSE_ERROR
        assert error.field == "date"
        assert str(error).startswith("Row 3:")

    def test_amount_signs(self, parser, statement_csv):
        records = parser.parse(statement_csv).records
        amounts = {r.description: r.amount for r in records}

        assert amounts["WALMART SUPERCENTER #1234"] == Decimal("-45.67")
        # Positive amount without income wording counts as spending
        assert amounts["Coffee Shop"] == Decimal("-4.50")
        assert amounts["SALARY DEPOSIT"] == Decimal("2500.00")
        assert amounts["Shell Gas Station"] == Decimal("-30.00")

    def test_records_carry_source_details(self, parser, statement_csv):
        record = parser.parse(statement_csv, statement_name="jan.csv").records[0]
        assert record.statement_file == "jan.csv"
        assert record.transaction_date == date(2024, 1, 15)
        assert record.source_row == 1
        assert record.transaction_type == TransactionType.DEBIT

    def test_debit_credit_columns(self, parser):
        raw = (
            "Date;Narrative;Debit;Credit;Balance\n"
            "15.01.2024;Tesco Stores;12.50;;987.50\n"
            "16.01.2024;Interest;;1.25;988.75\n"
            "17.01.2024;Nothing;0;0;988.75\n"
        )
        result = parser.parse(raw)

        assert result.delimiter.delimiter == ";"
        assert result.successful_rows == 2
        tesco, interest = result.records
        assert tesco.amount == Decimal("-12.50")
        assert tesco.balance == Decimal("987.50")
        assert interest.amount == Decimal("1.25")
        assert result.errors[0].row_number == 3
        assert result.errors[0].message == "No valid amount found"

    def test_explicit_delimiter_and_mapping(self, parser):
        raw = "When|What|How Much\n01/20/2024|Amazon Marketplace|-19.99\n"
        result = parser.parse(
            raw,
            column_mapping={"date": "When", "description": "What", "amount": "How Much"},
            delimiter="|",
        )
        assert result.delimiter is None
        assert result.records[0].description == "Amazon Marketplace"
        assert result.records[0].amount == Decimal("-19.99")

    def test_bytes_with_bom(self, parser):
        raw = "\ufeffDate,Description,Amount\n2024-01-15,Shop,-1.00\n".encode("utf-8")
        result = parser.parse(raw)
        assert result.column_mapping["date"] == "Date"
        assert result.successful_rows == 1

    def test_latin1_fallback(self, parser):
        raw = "Date,Description,Amount\n2024-01-15,Café René,-3.20\n".encode("latin-1")
        result = parser.parse(raw)
        assert result.records[0].description == "Café René"

    def test_quoted_description_with_delimiter(self, parser):
        raw = 'Date,Description,Amount\n2024-01-15,"ACME, INC",-10.00\n'
        assert parser.parse(raw).records[0].description == "ACME, INC"

    def test_missing_description_column(self, parser):
        result = parser.parse("Date,Amount\n2024-01-15,-5.00\n")
        assert not result.ok
        assert result.errors[0].message == "Missing required fields: date or description"

    def test_no_amount_column(self, parser):
        result = parser.parse("Date,Description\n2024-01-15,Shop\n")
        assert result.errors[0].message == "No amount field found"

    def test_empty_amount(self, parser):
        result = parser.parse("Date,Description,Amount\n2024-01-15,Shop,\n")
        assert result.errors[0].message == "Empty amount"

    def test_all_rows_failing_is_not_ok(self, parser):
        result = parser.parse("Date,Description,Amount\nbad,Shop,-1.00\nworse,Shop,-2.00\n")
        assert not result.ok
        assert result.successful_rows == 0
        assert [e.row_number for e in result.errors] == [1, 2]

    def test_empty_input_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse("   \n")

    def test_parse_file(self, parser, tmp_path, statement_csv):
        path = tmp_path / "february.csv"
        path.write_text(statement_csv, encoding="utf-8")
        result = parser.parse_file(path)
        assert result.records[0].statement_file == "february.csv"
