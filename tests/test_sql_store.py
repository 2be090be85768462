"""Tests for the SQLAlchemy-backed store."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from receipt_recon.models.transaction import MatchType, ReconciliationMatch
from receipt_recon.storage.interface import StorageError
from receipt_recon.storage.sql import SQLAlchemyStore

from .factories import make_bank, make_receipt


def _match(receipt_id, bank_id, manual=False, match_type=MatchType.EXACT, created_at=None):
    return ReconciliationMatch(
        receipt_id=receipt_id,
        bank_transaction_id=bank_id,
        confidence=Decimal("100") if manual else Decimal("91.50"),
        match_type=MatchType.MANUAL if manual else match_type,
        is_manual=manual,
        created_at=created_at or datetime.now(),
    )


@pytest.fixture
def seeded(sql_store):
    receipts = sql_store.add_receipts(
        [
            make_receipt("Walmart", "45.67", date(2024, 1, 15), email_id="msg-1"),
            make_receipt("Target", "12.00", date(2024, 1, 16)),
            make_receipt("No Date", "3.00", None),
        ]
    )
    banks = sql_store.add_bank_records(
        [
            make_bank(reference="TX1", balance=Decimal("954.33"), source_row=1),
            make_bank("TARGET", "-12.00", date(2024, 1, 16)),
            make_bank("SALARY", "2500.00", date(2024, 1, 17)),
        ]
    )
    return sql_store, receipts, banks


class TestRecords:
    def test_round_trip(self, seeded):
        store, receipts, banks = seeded

        receipt = store.get_receipt(receipts[0].id)
        assert receipt.merchant_name == "Walmart"
        assert receipt.total_amount == Decimal("45.67")
        assert receipt.email_id == "msg-1"
        assert receipt.created_at is not None

        bank = store.get_bank_record(banks[0].id)
        assert bank.amount == Decimal("-45.67")
        assert bank.balance == Decimal("954.33")
        assert bank.reference == "TX1"
        assert bank.source_row == 1

    def test_missing_ids(self, sql_store):
        assert sql_store.get_receipt(42) is None
        assert sql_store.get_bank_record(42) is None

    def test_eligible_receipts_are_newest_first(self, seeded):
        store, receipts, _ = seeded
        eligible = store.list_eligible_receipts()
        assert [r.merchant_name for r in eligible] == ["Target", "Walmart"]

    def test_debits_only(self, seeded):
        store, _, _ = seeded
        debits = store.list_debit_bank_records()
        assert [b.description for b in debits] == ["TARGET", "WALMART SUPERCENTER #1234"]


class TestMatches:
    def test_unique_receipt_is_enforced(self, seeded):
        store, receipts, banks = seeded
        store.add_match(_match(receipts[0].id, banks[0].id))

        with pytest.raises(StorageError):
            store.add_match(_match(receipts[0].id, banks[1].id))

        assert len(store.list_matches()) == 1

    def test_replace_keeps_manual_matches(self, seeded):
        store, receipts, banks = seeded
        manual = store.add_match(_match(receipts[0].id, banks[0].id, manual=True))
        store.add_match(_match(receipts[1].id, banks[1].id))

        stored = store.replace_automatic_matches([])

        assert stored == []
        assert [m.id for m in store.list_matches()] == [manual.id]

    def test_replace_is_all_or_nothing(self, seeded):
        store, receipts, banks = seeded
        store.add_match(_match(receipts[0].id, banks[0].id, manual=True))
        auto = store.add_match(_match(receipts[1].id, banks[1].id))

        with pytest.raises(StorageError):
            # Collides with the manual match on the receipt
            store.replace_automatic_matches([_match(receipts[0].id, banks[1].id)])

        assert auto.id in [m.id for m in store.list_matches(is_manual=False)]

    def test_find_matches_involving(self, seeded):
        store, receipts, banks = seeded
        store.add_match(_match(receipts[0].id, banks[0].id))

        assert len(store.find_matches_involving(receipts[0].id, banks[1].id)) == 1
        assert len(store.find_matches_involving(receipts[1].id, banks[0].id)) == 1
        assert store.find_matches_involving(receipts[1].id, banks[1].id) == []

    def test_delete_match(self, seeded):
        store, receipts, banks = seeded
        match = store.add_match(_match(receipts[0].id, banks[0].id))

        assert store.delete_match(match.id)
        assert not store.delete_match(match.id)

    def test_query_filters_and_pagination(self, seeded):
        store, receipts, banks = seeded
        now = datetime.now()
        old = store.add_match(
            _match(receipts[0].id, banks[0].id, created_at=now - timedelta(days=10))
        )
        new = store.add_match(
            _match(receipts[1].id, banks[1].id, match_type=MatchType.PROBABLE, created_at=now)
        )

        page, total = store.query_matches(limit=1)
        assert total == 2
        assert [m.id for m in page] == [new.id]

        page, total = store.query_matches(limit=1, offset=1)
        assert [m.id for m in page] == [old.id]

        page, total = store.query_matches(match_type=MatchType.EXACT)
        assert total == 1
        assert page[0].id == old.id

        page, total = store.query_matches(created_from=now - timedelta(days=1))
        assert [m.id for m in page] == [new.id]


def test_file_database_persists_between_stores(tmp_path):
    url = f"sqlite:///{tmp_path / 'recon.db'}"
    first = SQLAlchemyStore(url)
    first.add_receipts([make_receipt()])
    first.close()

    second = SQLAlchemyStore(url)
    try:
        assert [r.merchant_name for r in second.list_receipts()] == ["Walmart"]
    finally:
        second.close()
