"""
Bank statement table parser.
Detects delimiter and column semantics in uploaded CSV-like tables and
converts rows to normalized bank records.
"""

from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union
import io
import logging
import re

import pandas as pd

from ..config import ReconConfig
from ..models.results import DelimiterDetection, IngestResult, RowError
from ..models.transaction import BankRecord, TransactionType
from ..utils.exceptions import ParseError
from .normalizer import parse_amount, parse_date

logger = logging.getLogger(__name__)

CANONICAL_FIELDS = (
    "date",
    "description",
    "debit",
    "credit",
    "balance",
    "amount",
    "account",
    "reference",
)


class StatementParser:
    """
    Parser for user-uploaded bank statement tables.

    Column order and naming are arbitrary; canonical fields are found from
    an explicit mapping first and keyword heuristics second.
    """

    def __init__(self, config: ReconConfig):
        """
        Initialize the parser with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config
        self.ingest_config = config.ingest
        self.income_pattern = re.compile(
            "|".join(re.escape(k) for k in self.ingest_config.income_keywords),
            re.IGNORECASE,
        )

    def parse_file(
        self,
        file_path: Path,
        column_mapping: Optional[dict[str, str]] = None,
        delimiter: Optional[str] = None,
    ) -> IngestResult:
        """
        Parse a statement file from disk.

        Args:
            file_path: Path to the statement table
            column_mapping: Optional canonical field -> header name mapping
            delimiter: Optional delimiter override

        Returns:
            Ingestion result for the file
        """
        logger.info(f"Parsing bank statement file: {file_path}")
        return self.parse(
            file_path.read_bytes(),
            column_mapping=column_mapping,
            delimiter=delimiter,
            statement_name=file_path.name,
        )

    def parse(
        self,
        raw: Union[bytes, str],
        column_mapping: Optional[dict[str, str]] = None,
        delimiter: Optional[str] = None,
        statement_name: str = "uploaded_statement.csv",
    ) -> IngestResult:
        """
        Parse raw table content into bank records.

        Rows that fail are reported with their 1-based data row number and
        skipped; processing continues with the next row.

        Args:
            raw: Table bytes or already decoded text
            column_mapping: Optional canonical field -> header name mapping
            delimiter: Optional delimiter override
            statement_name: Name recorded on every produced record

        Returns:
            Ingestion result with records, row errors and counts

        Raises:
            ParseError: If the table itself cannot be read
        """
        text = self._decode(raw)
        if not text.strip():
            raise ParseError("Statement table is empty", field="table")

        detection = None
        if not delimiter:
            detection = self.detect_delimiter(text)
            delimiter = detection.delimiter
            logger.debug(
                f"Detected {detection.name} delimiter "
                f"({detection.column_count} columns, confidence {detection.confidence})"
            )

        df = self._read_table(text, delimiter)
        headers = [str(h) for h in df.columns]
        mapping = self.build_column_mapping(headers, column_mapping)
        logger.debug(f"Column mapping: {mapping} (headers: {headers})")

        records: list[BankRecord] = []
        errors: list[RowError] = []

        rows = df.to_dict(orient="records")
        for row_number, row in enumerate(rows, start=1):
            try:
                records.append(self._normalize_row(row, row_number, mapping, statement_name))
            except ParseError as e:
                error = RowError(
                    row_number=row_number,
                    message=e.message,
                    kind=e.kind,
                    field=e.field,
                )
                errors.append(error)
                logger.warning(str(error))

        logger.info(
            f"Statement parsing completed: {len(records)}/{len(rows)} rows successful"
        )

        return IngestResult(
            records=records,
            errors=errors,
            total_rows=len(rows),
            successful_rows=len(records),
            delimiter=detection,
            column_mapping=mapping,
        )

    def detect_delimiter(self, text: str) -> DelimiterDetection:
        """
        Pick the delimiter that splits the header line into the most columns.

        Ties go to the earlier candidate in the configured order.
        """
        header_line = next((line for line in text.splitlines() if line.strip()), "")

        best: Optional[DelimiterDetection] = None
        for option in self.ingest_config.delimiters:
            column_count = len(header_line.split(option.char))
            if best is None or column_count > best.column_count:
                best = DelimiterDetection(
                    delimiter=option.char,
                    name=option.name,
                    column_count=column_count,
                    confidence=min(column_count * 25, 100) if column_count > 1 else 0,
                )

        if best is None:
            return DelimiterDetection(delimiter=",", name="Comma", column_count=1, confidence=0)
        return best

    def build_column_mapping(
        self,
        headers: list[str],
        custom_mapping: Optional[dict[str, str]] = None,
    ) -> dict[str, str]:
        """
        Map canonical field names to actual table headers.

        Explicit mappings are matched case-insensitively; anything left
        unresolved falls back to keyword detection. A header is never
        assigned to more than one field.
        """
        mapping: dict[str, str] = {}
        claimed: set[str] = set()
        lookup = {h.lower().strip(): h for h in headers}

        for field_name, header_name in (custom_mapping or {}).items():
            if field_name not in CANONICAL_FIELDS or not header_name:
                continue
            header = lookup.get(str(header_name).lower().strip())
            if header and header not in claimed:
                mapping[field_name] = header
                claimed.add(header)
            else:
                logger.warning(
                    f"Mapped column '{header_name}' for {field_name} not found, using auto-detection"
                )

        keywords = self.ingest_config.header_keywords
        for field_name in CANONICAL_FIELDS:
            if field_name in mapping:
                continue
            header = self._find_header(headers, keywords.get(field_name, []), claimed)
            if header:
                mapping[field_name] = header
                claimed.add(header)

        return mapping

    def _find_header(
        self, headers: list[str], keywords: list[str], claimed: set[str]
    ) -> Optional[str]:
        for keyword in keywords:
            keyword = keyword.lower()
            for header in headers:
                if header not in claimed and keyword in header.lower().strip():
                    return header
        return None

    def _normalize_row(
        self,
        row: dict[str, Any],
        row_number: int,
        mapping: dict[str, str],
        statement_name: str,
    ) -> BankRecord:
        """
        Convert one table row to a BankRecord.

        Raises:
            ParseError: If a required field is missing or unparseable
        """
        date_col = mapping.get("date")
        desc_col = mapping.get("description")
        if not date_col or not desc_col:
            raise ParseError(
                "Missing required fields: date or description",
                field="date" if not date_col else "description",
                row_number=row_number,
            )

        date_raw = self._cell(row, date_col)
        description = self._cell(row, desc_col)
        if not date_raw or not description:
            raise ParseError(
                "Empty date or description",
                field="date" if not date_raw else "description",
                row_number=row_number,
            )

        txn_date = parse_date(date_raw)
        magnitude, txn_type = self._resolve_amount(row, mapping, description)
        signed_amount = -magnitude if txn_type == TransactionType.DEBIT else magnitude

        balance: Optional[Decimal] = None
        balance_raw = self._cell(row, mapping.get("balance"))
        if balance_raw:
            try:
                balance = parse_amount(balance_raw, self.ingest_config.currency_symbols)
            except ParseError as e:
                raise ParseError(e.message, field="balance", value=balance_raw) from e

        return BankRecord(
            statement_file=statement_name,
            transaction_date=txn_date,
            description=description,
            amount=signed_amount,
            reference=self._cell(row, mapping.get("reference")) or None,
            account_number=self._cell(row, mapping.get("account")) or None,
            balance=balance,
            source_row=row_number,
        )

    def _resolve_amount(
        self, row: dict[str, Any], mapping: dict[str, str], description: str
    ) -> tuple[Decimal, TransactionType]:
        """Return the unsigned amount and direction for a row."""
        symbols = self.ingest_config.currency_symbols
        amount_raw = self._cell(row, mapping.get("amount"))
        debit_col = mapping.get("debit")
        credit_col = mapping.get("credit")

        if amount_raw:
            value = parse_amount(amount_raw, symbols)
            if value < 0:
                return abs(value), TransactionType.DEBIT
            if self.income_pattern.search(description):
                return value, TransactionType.CREDIT
            # Positive amounts without an income hint are treated as spending
            return value, TransactionType.DEBIT

        if debit_col or credit_col:
            debit_raw = self._cell(row, debit_col)
            credit_raw = self._cell(row, credit_col)
            debit_value = abs(parse_amount(debit_raw, symbols)) if debit_raw else Decimal("0")
            credit_value = abs(parse_amount(credit_raw, symbols)) if credit_raw else Decimal("0")

            if debit_value > 0:
                return debit_value, TransactionType.DEBIT
            if credit_value > 0:
                return credit_value, TransactionType.CREDIT
            raise ParseError("No valid amount found", field="amount")

        if mapping.get("amount"):
            raise ParseError("Empty amount", field="amount")
        raise ParseError("No amount field found", field="amount")

    def _read_table(self, text: str, delimiter: str) -> pd.DataFrame:
        """Read the table as strings, tolerating rows with extra fields."""
        try:
            header_count = len(
                pd.read_csv(io.StringIO(text), sep=delimiter, nrows=0, engine="python").columns
            )
            return pd.read_csv(
                io.StringIO(text),
                sep=delimiter,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                skipinitialspace=True,
                index_col=False,
                engine="python",
                on_bad_lines=lambda fields: fields[:header_count],
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
            logger.error(f"Failed to read statement table: {e}")
            raise ParseError(f"Failed to read statement table: {e}", field="table") from e

    def _decode(self, raw: Union[bytes, str]) -> str:
        if isinstance(raw, str):
            return raw
        try:
            return raw.decode(self.ingest_config.encoding)
        except UnicodeDecodeError:
            logger.warning(
                f"Statement is not valid {self.ingest_config.encoding}, "
                f"retrying as {self.ingest_config.fallback_encoding}"
            )
            return raw.decode(self.ingest_config.fallback_encoding)

    @staticmethod
    def _cell(row: dict[str, Any], column: Optional[str]) -> str:
        """Stripped cell text; empty string for missing columns or values."""
        if not column:
            return ""
        value = row.get(column)
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return ""
        return str(value).strip().strip('"').strip()
