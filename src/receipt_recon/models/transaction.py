"""Data models for receipts, bank records and reconciliation matches."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class TransactionType(Enum):
    """Transaction direction from the account holder's perspective."""

    CREDIT = "credit"  # Money in (deposits, refunds, salary)
    DEBIT = "debit"  # Money out (purchases, withdrawals, fees)


class MatchType(Enum):
    """Label attached to a reconciliation match."""

    EXACT = "exact"
    PROBABLE = "probable"
    POSSIBLE = "possible"
    UNCERTAIN = "uncertain"
    MANUAL = "manual"

    @classmethod
    def from_score(
        cls,
        score: Decimal,
        exact: float = 90,
        probable: float = 70,
        possible: float = 50,
    ) -> "MatchType":
        """Derive the label for an automatically computed confidence score."""
        if score >= Decimal(str(exact)):
            return cls.EXACT
        if score >= Decimal(str(probable)):
            return cls.PROBABLE
        if score >= Decimal(str(possible)):
            return cls.POSSIBLE
        return cls.UNCERTAIN


@dataclass
class ReceiptRecord:
    """
    A purchase receipt produced by the extraction pipeline.

    Amount and date are optional because extraction can fail to find them;
    such receipts are stored but never take part in automatic matching.
    """

    merchant_name: str
    transaction_date: Optional[date]
    total_amount: Optional[Decimal]

    id: Optional[int] = None

    # Source identifiers
    email_id: Optional[str] = None
    filename: Optional[str] = None

    created_at: Optional[datetime] = None

    @property
    def is_eligible(self) -> bool:
        """Whether the receipt carries the fields automatic matching needs."""
        return self.total_amount is not None and self.transaction_date is not None


@dataclass
class BankRecord:
    """
    A normalized bank statement row.

    The amount is signed: negative for money spent, positive for money received.
    """

    statement_file: str
    transaction_date: date
    description: str
    amount: Decimal

    id: Optional[int] = None

    reference: Optional[str] = None
    account_number: Optional[str] = None
    balance: Optional[Decimal] = None

    # 1-based data row in the uploaded table, kept for traceability
    source_row: Optional[int] = None

    created_at: Optional[datetime] = None

    @property
    def transaction_type(self) -> TransactionType:
        """Direction implied by the sign of the amount."""
        return TransactionType.DEBIT if self.amount < 0 else TransactionType.CREDIT

    @property
    def is_debit(self) -> bool:
        return self.amount < 0


@dataclass
class ReconciliationMatch:
    """Pairing of one receipt with one bank record."""

    receipt_id: int
    bank_transaction_id: int
    confidence: Decimal  # 0 to 100
    match_type: MatchType

    id: Optional[int] = None
    is_manual: bool = False
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
