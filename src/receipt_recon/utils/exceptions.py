"""Custom exceptions and error kinds for the reconciliation application."""

from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    """Classification of expected failures reported to callers."""

    PARSE_ERROR = "parse_error"
    INELIGIBLE_RECORD = "ineligible_record"
    DUPLICATE_MATCH = "duplicate_match"
    PERSISTENCE_FAILURE = "persistence_failure"


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    kind: Optional[ErrorKind] = None


class ParseError(ReconciliationError):
    """A raw date, amount or table row could not be normalized."""

    kind = ErrorKind.PARSE_ERROR

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        row_number: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value
        self.row_number = row_number


class IneligibleRecordError(ReconciliationError):
    """Record is missing data required for matching."""

    kind = ErrorKind.INELIGIBLE_RECORD


class DuplicateMatchError(ReconciliationError):
    """Receipt or bank record is already part of a match."""

    kind = ErrorKind.DUPLICATE_MATCH

    def __init__(self, message: str, receipt_id: Any = None, bank_id: Any = None):
        super().__init__(message)
        self.receipt_id = receipt_id
        self.bank_id = bank_id


class PersistenceError(ReconciliationError):
    """Storage backend failed to read or write."""

    kind = ErrorKind.PERSISTENCE_FAILURE


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    pass
