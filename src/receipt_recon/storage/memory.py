"""In-memory store, used for tests and one-off command line runs."""

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from itertools import count
from typing import Iterable, Optional
import threading

from ..models.transaction import (
    BankRecord,
    MatchType,
    ReceiptRecord,
    ReconciliationMatch,
)
from .interface import ReconciliationStore, StorageError


class InMemoryStore(ReconciliationStore):
    """
    Dict-backed implementation of ReconciliationStore.

    Records are copied on the way in and out so callers cannot mutate
    stored state behind the store's back.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._receipts: dict[int, ReceiptRecord] = {}
        self._bank_records: dict[int, BankRecord] = {}
        self._matches: dict[int, ReconciliationMatch] = {}
        self._receipt_ids = count(1)
        self._bank_ids = count(1)
        self._match_ids = count(1)

    def add_receipts(self, receipts: Iterable[ReceiptRecord]) -> list[ReceiptRecord]:
        stored: list[ReceiptRecord] = []
        with self._lock:
            for receipt in receipts:
                record = replace(
                    receipt,
                    id=next(self._receipt_ids),
                    created_at=receipt.created_at or datetime.now(),
                )
                self._receipts[record.id] = record
                stored.append(replace(record))
        return stored

    def add_bank_records(self, records: Iterable[BankRecord]) -> list[BankRecord]:
        stored: list[BankRecord] = []
        with self._lock:
            for bank_record in records:
                record = replace(
                    bank_record,
                    id=next(self._bank_ids),
                    created_at=bank_record.created_at or datetime.now(),
                )
                self._bank_records[record.id] = record
                stored.append(replace(record))
        return stored

    def get_receipt(self, receipt_id: int) -> Optional[ReceiptRecord]:
        with self._lock:
            receipt = self._receipts.get(receipt_id)
            return replace(receipt) if receipt else None

    def get_bank_record(self, bank_id: int) -> Optional[BankRecord]:
        with self._lock:
            record = self._bank_records.get(bank_id)
            return replace(record) if record else None

    def list_receipts(self) -> list[ReceiptRecord]:
        with self._lock:
            return [replace(r) for r in self._receipts.values()]

    def list_bank_records(self) -> list[BankRecord]:
        with self._lock:
            return [replace(r) for r in self._bank_records.values()]

    def list_eligible_receipts(self) -> list[ReceiptRecord]:
        with self._lock:
            eligible = [replace(r) for r in self._receipts.values() if r.is_eligible]
        return sorted(eligible, key=lambda r: (-r.transaction_date.toordinal(), r.id))

    def list_debit_bank_records(self) -> list[BankRecord]:
        with self._lock:
            debits = [replace(r) for r in self._bank_records.values() if r.amount < 0]
        return sorted(debits, key=lambda r: (-r.transaction_date.toordinal(), r.id))

    def list_matches(self, is_manual: Optional[bool] = None) -> list[ReconciliationMatch]:
        with self._lock:
            return [
                replace(m)
                for m in sorted(self._matches.values(), key=lambda m: m.id)
                if is_manual is None or m.is_manual == is_manual
            ]

    def find_matches_involving(
        self, receipt_id: int, bank_id: int
    ) -> list[ReconciliationMatch]:
        with self._lock:
            return [
                replace(m)
                for m in self._matches.values()
                if m.receipt_id == receipt_id or m.bank_transaction_id == bank_id
            ]

    def add_match(self, match: ReconciliationMatch) -> ReconciliationMatch:
        with self._lock:
            self._check_unique([match], self._matches.values())
            stored = replace(match, id=next(self._match_ids))
            self._matches[stored.id] = stored
            return replace(stored)

    def delete_match(self, match_id: int) -> bool:
        with self._lock:
            return self._matches.pop(match_id, None) is not None

    def replace_automatic_matches(
        self, matches: Iterable[ReconciliationMatch]
    ) -> list[ReconciliationMatch]:
        new_matches = list(matches)
        with self._lock:
            kept = {mid: m for mid, m in self._matches.items() if m.is_manual}
            self._check_unique(new_matches, kept.values())

            stored: list[ReconciliationMatch] = []
            for match in new_matches:
                record = replace(match, id=next(self._match_ids))
                kept[record.id] = record
                stored.append(replace(record))

            # Swap in one step so no reader sees a half-replaced table
            self._matches = kept
        return stored

    def query_matches(
        self,
        match_type: Optional[MatchType] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[ReconciliationMatch], int]:
        with self._lock:
            selected = [
                replace(m)
                for m in self._matches.values()
                if (match_type is None or m.match_type == match_type)
                and (created_from is None or m.created_at >= created_from)
                and (created_to is None or m.created_at <= created_to)
            ]
        selected.sort(key=lambda m: (m.created_at, m.id), reverse=True)
        total = len(selected)
        end = None if limit is None else offset + limit
        return selected[offset:end], total

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
        needle = description.lower() if description else None
        with self._lock:
            selected = [
                replace(r)
                for r in self._bank_records.values()
                if (date_from is None or r.transaction_date >= date_from)
                and (date_to is None or r.transaction_date <= date_to)
                and (min_amount is None or r.amount >= min_amount)
                and (max_amount is None or r.amount <= max_amount)
                and (needle is None or needle in r.description.lower())
            ]
        selected.sort(key=lambda r: (-r.transaction_date.toordinal(), -r.id))
        total = len(selected)
        end = None if limit is None else offset + limit
        return selected[offset:end], total

    @staticmethod
    def _check_unique(
        new_matches: list[ReconciliationMatch],
        existing: Iterable[ReconciliationMatch],
    ) -> None:
        receipt_ids: set[int] = set()
        bank_ids: set[int] = set()
        for match in existing:
            receipt_ids.add(match.receipt_id)
            bank_ids.add(match.bank_transaction_id)

        for match in new_matches:
            if match.receipt_id in receipt_ids or match.bank_transaction_id in bank_ids:
                raise StorageError(
                    f"Receipt {match.receipt_id} or bank transaction "
                    f"{match.bank_transaction_id} is already matched"
                )
            receipt_ids.add(match.receipt_id)
            bank_ids.add(match.bank_transaction_id)
