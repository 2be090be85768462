"""Data models for reconciliation."""

from .transaction import (
    BankRecord,
    MatchType,
    ReceiptRecord,
    ReconciliationMatch,
    TransactionType,
)
from .results import (
    BankStatistics,
    BankTransactionPage,
    DelimiterDetection,
    IngestResult,
    MatchDetail,
    MatchScore,
    OperationResult,
    ReconciliationHistory,
    ReconciliationRunResult,
    ReconciliationState,
    ReconciliationSummary,
    RowError,
)

__all__ = [
    "BankRecord",
    "MatchType",
    "ReceiptRecord",
    "ReconciliationMatch",
    "TransactionType",
    "BankStatistics",
    "BankTransactionPage",
    "DelimiterDetection",
    "IngestResult",
    "MatchDetail",
    "MatchScore",
    "OperationResult",
    "ReconciliationHistory",
    "ReconciliationRunResult",
    "ReconciliationState",
    "ReconciliationSummary",
    "RowError",
]
