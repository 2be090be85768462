"""Result objects returned by ingestion, matching and query operations."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from ..utils.exceptions import ErrorKind
from .transaction import BankRecord, MatchType, ReceiptRecord, ReconciliationMatch


@dataclass
class RowError:
    """A table row that could not be turned into a bank record."""

    row_number: int  # 1-based, header excluded
    message: str
    kind: ErrorKind = ErrorKind.PARSE_ERROR
    field: Optional[str] = None

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.message}"


@dataclass
class DelimiterDetection:
    """Outcome of guessing the column separator from the header line."""

    delimiter: str
    name: str
    column_count: int
    confidence: int  # 0-100


@dataclass
class IngestResult:
    """Bank records parsed from an uploaded table plus per-row errors."""

    records: list[BankRecord]
    errors: list[RowError]
    total_rows: int
    successful_rows: int
    delimiter: Optional[DelimiterDetection] = None
    column_mapping: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Ingestion only fails as a whole when no row could be parsed."""
        return self.successful_rows > 0


@dataclass
class MatchScore:
    """Confidence breakdown for one receipt / bank record pair."""

    amount_score: Decimal
    date_score: Decimal
    text_score: Decimal
    total: Decimal


@dataclass
class ReconciliationRunResult:
    """Summary of one automatic reconciliation run."""

    matches: list[ReconciliationMatch]
    unmatched_receipt_count: int
    unmatched_bank_count: int
    ineligible_receipt_count: int = 0
    preserved_manual_count: int = 0
    processing_time_seconds: float = 0.0

    @property
    def total_matches(self) -> int:
        return len(self.matches)


@dataclass
class MatchDetail:
    """A match joined with the records it pairs."""

    match: ReconciliationMatch
    receipt: ReceiptRecord
    bank_record: BankRecord

    @property
    def amount_difference(self) -> Optional[Decimal]:
        if self.receipt.total_amount is None:
            return None
        return abs(self.receipt.total_amount - abs(self.bank_record.amount))

    @property
    def date_difference_days(self) -> Optional[int]:
        if self.receipt.transaction_date is None:
            return None
        return abs((self.receipt.transaction_date - self.bank_record.transaction_date).days)


@dataclass
class ReconciliationSummary:
    """Counts describing the current reconciliation state."""

    total_receipts: int
    total_bank_transactions: int
    total_matches: int
    exact_matches: int
    probable_matches: int
    manual_matches: int
    receipt_only_count: int
    bank_only_count: int

    @property
    def reconciliation_rate(self) -> float:
        """Percentage of receipts that are matched."""
        if self.total_matches == 0 or self.total_receipts == 0:
            return 0.0
        return (self.total_matches / self.total_receipts) * 100


@dataclass
class ReconciliationState:
    """Everything a caller needs to display the reconciliation."""

    matches: list[MatchDetail]
    receipt_only: list[ReceiptRecord]
    bank_only: list[BankRecord]
    summary: ReconciliationSummary


@dataclass
class ReconciliationHistory:
    """One page of stored matches, newest first."""

    entries: list[MatchDetail]
    total: int
    page: int
    limit: int


@dataclass
class BankTransactionPage:
    """One page of stored bank records, newest date first."""

    transactions: list[BankRecord]
    total: int
    page: int
    limit: int


@dataclass
class BankStatistics:
    """Aggregate figures over all stored bank records."""

    total_transactions: int
    total_debits: Decimal
    total_credits: Decimal
    statement_files: int
    earliest_date: Optional[date] = None
    latest_date: Optional[date] = None

    @property
    def net_change(self) -> Decimal:
        return self.total_credits + self.total_debits


@dataclass
class OperationResult:
    """
    Success/failure signal for caller-initiated mutations.

    Truthy on success, so callers that only need a boolean can use it directly.
    """

    success: bool
    kind: Optional[ErrorKind] = None
    message: str = ""
    match: Optional[ReconciliationMatch] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str = "", match: Optional[ReconciliationMatch] = None) -> "OperationResult":
        return cls(success=True, message=message, match=match)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "OperationResult":
        return cls(success=False, kind=kind, message=message)


def count_by_type(matches: list[ReconciliationMatch], match_type: MatchType) -> int:
    return sum(1 for m in matches if m.match_type == match_type)
