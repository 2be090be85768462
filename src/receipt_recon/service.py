"""
Caller-facing reconciliation service.

Wires the statement parser, orchestrator and manual match registry to one
injected store and exposes the operations used by the CLI or any other
transport.
"""

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, Union
import logging
import threading

from .config import ReconConfig
from .matching.engine import ReconciliationEngine
from .matching.registry import ManualMatchRegistry
from .models.results import (
    BankStatistics,
    BankTransactionPage,
    IngestResult,
    MatchDetail,
    OperationResult,
    ReconciliationHistory,
    ReconciliationRunResult,
    ReconciliationState,
    ReconciliationSummary,
    count_by_type,
)
from .models.transaction import (
    BankRecord,
    MatchType,
    ReceiptRecord,
    ReconciliationMatch,
)
from .parsers.statement_parser import StatementParser
from .storage.interface import ReconciliationStore
from .storage.sql import SQLAlchemyStore
from .utils.exceptions import ReconciliationError

logger = logging.getLogger(__name__)


class ReconciliationService:
    """
    Facade over ingestion, matching and match bookkeeping.

    Orchestrator runs and manual match changes are serialized with one
    lock, so a manual match can never be created for a record an
    in-flight run is about to auto-match. Read-only queries do not lock.
    """

    def __init__(self, store: ReconciliationStore, config: Optional[ReconConfig] = None):
        self.config = config or ReconConfig()
        self.store = store
        self.parser = StatementParser(self.config)
        self.engine = ReconciliationEngine(store, self.config)
        self.registry = ManualMatchRegistry(store)
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: ReconConfig) -> "ReconciliationService":
        """Build a service on the database configured in config.storage."""
        store = SQLAlchemyStore(config.storage.database_url, echo=config.storage.echo)
        return cls(store, config)

    def ingest(
        self,
        raw: Union[bytes, str],
        column_mapping: Optional[dict[str, str]] = None,
        delimiter: Optional[str] = None,
        statement_name: str = "uploaded_statement.csv",
        reconcile: bool = False,
    ) -> IngestResult:
        """
        Parse a bank statement table and store the parsed records.

        Nothing is stored when no row parses. With reconcile=True an
        automatic run follows; its failure is logged, not raised.

        Raises:
            ParseError: If the table itself cannot be read
            PersistenceError: If storing the records fails
        """
        result = self.parser.parse(
            raw,
            column_mapping=column_mapping,
            delimiter=delimiter,
            statement_name=statement_name,
        )

        if not result.ok:
            logger.error(
                f"No valid transactions found in {statement_name} "
                f"({len(result.errors)} row errors)"
            )
            return result

        with self._lock:
            result.records = self.store.add_bank_records(result.records)
        logger.info(f"Stored {len(result.records)} bank transactions from {statement_name}")

        if reconcile:
            try:
                run = self.run_reconciliation()
                logger.info(f"Reconciliation completed: {run.total_matches} matches found")
            except ReconciliationError as e:
                logger.error(f"Reconciliation after ingest failed: {e}")

        return result

    def ingest_file(
        self,
        file_path: Path,
        column_mapping: Optional[dict[str, str]] = None,
        delimiter: Optional[str] = None,
        reconcile: bool = False,
    ) -> IngestResult:
        """Ingest a statement file from disk, named after the file."""
        return self.ingest(
            file_path.read_bytes(),
            column_mapping=column_mapping,
            delimiter=delimiter,
            statement_name=file_path.name,
            reconcile=reconcile,
        )

    def add_receipts(self, receipts: Iterable[ReceiptRecord]) -> list[ReceiptRecord]:
        """Store receipts handed over by the extraction pipeline."""
        stored = self.store.add_receipts(receipts)
        logger.info(f"Stored {len(stored)} receipts")
        return stored

    def run_reconciliation(self) -> ReconciliationRunResult:
        """Recompute automatic matches; manual matches are preserved."""
        with self._lock:
            return self.engine.reconcile()

    def create_manual_match(
        self, receipt_id: int, bank_id: int, notes: Optional[str] = None
    ) -> OperationResult:
        with self._lock:
            return self.registry.create(receipt_id, bank_id, notes)

    def remove_match(self, match_id: int) -> OperationResult:
        with self._lock:
            return self.registry.remove(match_id)

    def get_reconciliation_state(self) -> ReconciliationState:
        """
        Current matches with their records, plus unmatched receipts and debits.

        Matches are ordered by confidence, highest first, then by receipt
        date, newest first.
        """
        matches = self.store.list_matches()
        receipts = {r.id: r for r in self.store.list_receipts()}
        bank_records = {b.id: b for b in self.store.list_bank_records()}

        details = self._join(matches, receipts, bank_records)
        details.sort(
            key=lambda d: (
                d.match.confidence,
                d.receipt.transaction_date.toordinal() if d.receipt.transaction_date else 0,
            ),
            reverse=True,
        )

        matched_receipts = {m.receipt_id for m in matches}
        matched_bank = {m.bank_transaction_id for m in matches}
        receipt_only = [
            r for r in self.store.list_eligible_receipts() if r.id not in matched_receipts
        ]
        bank_only = [
            b for b in self.store.list_debit_bank_records() if b.id not in matched_bank
        ]

        matched = [d.match for d in details]
        summary = ReconciliationSummary(
            total_receipts=len(receipt_only) + len(details),
            total_bank_transactions=len(bank_only) + len(details),
            total_matches=len(details),
            exact_matches=count_by_type(matched, MatchType.EXACT),
            probable_matches=count_by_type(matched, MatchType.PROBABLE),
            manual_matches=sum(1 for m in matched if m.is_manual),
            receipt_only_count=len(receipt_only),
            bank_only_count=len(bank_only),
        )

        return ReconciliationState(
            matches=details,
            receipt_only=receipt_only,
            bank_only=bank_only,
            summary=summary,
        )

    def get_reconciliation_history(
        self,
        match_type: Optional[MatchType] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 50,
    ) -> ReconciliationHistory:
        """One page of matches, newest first, with optional filters."""
        page = max(page, 1)
        matches, total = self.store.query_matches(
            match_type=match_type,
            created_from=created_from,
            created_to=created_to,
            limit=limit,
            offset=(page - 1) * limit,
        )
        receipts = {r.id: r for r in self.store.list_receipts()}
        bank_records = {b.id: b for b in self.store.list_bank_records()}

        return ReconciliationHistory(
            entries=self._join(matches, receipts, bank_records),
            total=total,
            page=page,
            limit=limit,
        )

    def get_bank_transactions(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        description: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> BankTransactionPage:
        """One page of stored bank records, newest date first, with optional filters."""
        page = max(page, 1)
        transactions, total = self.store.query_bank_records(
            date_from=date_from,
            date_to=date_to,
            min_amount=min_amount,
            max_amount=max_amount,
            description=description,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return BankTransactionPage(transactions=transactions, total=total, page=page, limit=limit)

    def get_bank_statistics(self) -> BankStatistics:
        """Totals over every stored bank record."""
        records = self.store.list_bank_records()
        dates = [r.transaction_date for r in records]

        return BankStatistics(
            total_transactions=len(records),
            total_debits=sum((r.amount for r in records if r.amount < 0), Decimal("0")),
            total_credits=sum((r.amount for r in records if r.amount > 0), Decimal("0")),
            statement_files=len({r.statement_file for r in records}),
            earliest_date=min(dates) if dates else None,
            latest_date=max(dates) if dates else None,
        )

    def close(self) -> None:
        self.store.close()

    @staticmethod
    def _join(
        matches: list[ReconciliationMatch],
        receipts: dict[int, ReceiptRecord],
        bank_records: dict[int, BankRecord],
    ) -> list[MatchDetail]:
        details: list[MatchDetail] = []
        for match in matches:
            receipt = receipts.get(match.receipt_id)
            bank_record = bank_records.get(match.bank_transaction_id)
            if receipt is None or bank_record is None:
                logger.warning(f"Match {match.id} references a missing record, skipping")
                continue
            details.append(MatchDetail(match=match, receipt=receipt, bank_record=bank_record))
        return details
