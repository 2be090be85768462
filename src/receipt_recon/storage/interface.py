"""
Abstract persistence interface for reconciliation data.

Receipts are read-only to the reconciliation core, bank records are
written once at ingestion, and matches are the only mutable table.
Implementations are injected into the components that need them.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from ..models.transaction import (
    BankRecord,
    MatchType,
    ReceiptRecord,
    ReconciliationMatch,
)
from ..utils.exceptions import PersistenceError

# Storage layer errors are persistence failures from the caller's view
StorageError = PersistenceError


class ReconciliationStore(ABC):
    """Durable storage for receipts, bank records and matches."""

    @abstractmethod
    def add_receipts(self, receipts: Iterable[ReceiptRecord]) -> list[ReceiptRecord]:
        """
        Insert receipts and return them with assigned ids.

        Raises:
            StorageError: If the insert fails
        """

    @abstractmethod
    def add_bank_records(self, records: Iterable[BankRecord]) -> list[BankRecord]:
        """
        Insert bank records and return them with assigned ids.

        Raises:
            StorageError: If the insert fails
        """

    @abstractmethod
    def get_receipt(self, receipt_id: int) -> Optional[ReceiptRecord]:
        """Return a receipt by id, or None."""

    @abstractmethod
    def get_bank_record(self, bank_id: int) -> Optional[BankRecord]:
        """Return a bank record by id, or None."""

    @abstractmethod
    def list_receipts(self) -> list[ReceiptRecord]:
        """All receipts in insertion order."""

    @abstractmethod
    def list_bank_records(self) -> list[BankRecord]:
        """All bank records in insertion order."""

    @abstractmethod
    def list_eligible_receipts(self) -> list[ReceiptRecord]:
        """Receipts with amount and date present, newest date first, then by id."""

    @abstractmethod
    def list_debit_bank_records(self) -> list[BankRecord]:
        """Bank records with a negative amount, newest date first, then by id."""

    @abstractmethod
    def list_matches(self, is_manual: Optional[bool] = None) -> list[ReconciliationMatch]:
        """All matches, optionally filtered on the manual flag, ordered by id."""

    @abstractmethod
    def find_matches_involving(
        self, receipt_id: int, bank_id: int
    ) -> list[ReconciliationMatch]:
        """Matches that reference the receipt or the bank record."""

    @abstractmethod
    def add_match(self, match: ReconciliationMatch) -> ReconciliationMatch:
        """
        Insert one match and return it with its id.

        Raises:
            StorageError: If the insert fails or breaks uniqueness
        """

    @abstractmethod
    def delete_match(self, match_id: int) -> bool:
        """Delete a match by id. Returns True if a row was removed."""

    @abstractmethod
    def replace_automatic_matches(
        self, matches: Iterable[ReconciliationMatch]
    ) -> list[ReconciliationMatch]:
        """
        Atomically delete every non-manual match and insert the given ones.

        Readers never observe the cleared-but-not-replaced state; on failure
        the previous automatic matches remain.

        Raises:
            StorageError: If the replacement does not commit
        """

    @abstractmethod
    def query_matches(
        self,
        match_type: Optional[MatchType] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[ReconciliationMatch], int]:
        """
        Filtered matches, newest first, with the unpaginated total.
        """

    @abstractmethod
    def query_bank_records(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        description: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[BankRecord], int]:
        """
        Filtered bank records, newest date first, with the unpaginated total.

        Date and amount bounds are inclusive; description is a
        case-insensitive substring.
        """

    def close(self) -> None:
        """Release backend resources."""
