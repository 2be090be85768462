"""
SQLAlchemy-backed store.

Tables:
- receipt_ledger: extracted receipts (written by the intake boundary only)
- bank_transactions: ingested statement rows
- reconciliation_matches: automatic and manual matches; receipt_id and
  bank_transaction_id are each unique so a record is matched at most once
"""

from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Iterator, Optional
import logging

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    delete,
    func,
    or_,
    select,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..models.transaction import (
    BankRecord,
    MatchType,
    ReceiptRecord,
    ReconciliationMatch,
)
from .interface import ReconciliationStore, StorageError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class ReceiptRow(Base):
    __tablename__ = "receipt_ledger"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email_id = Column(String(255), nullable=True)
    filename = Column(String(255), nullable=True)
    merchant_name = Column(Text, nullable=False, default="")
    transaction_date = Column(Date, nullable=True, index=True)
    total_amount = Column(Numeric(18, 4), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class BankTransactionRow(Base):
    __tablename__ = "bank_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    statement_file = Column(String(255), nullable=False)
    transaction_date = Column(Date, nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(18, 4), nullable=False)
    reference = Column(String(255), nullable=True)
    account_number = Column(String(64), nullable=True)
    balance = Column(Numeric(18, 4), nullable=True)
    transaction_type = Column(String(16), nullable=False)
    source_row = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        Index("idx_bank_date", "transaction_date"),
        Index("idx_bank_amount", "amount"),
    )


class MatchRow(Base):
    __tablename__ = "reconciliation_matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    receipt_id = Column(Integer, ForeignKey("receipt_ledger.id"), nullable=False, unique=True)
    bank_transaction_id = Column(
        Integer, ForeignKey("bank_transactions.id"), nullable=False, unique=True
    )
    match_confidence = Column(Numeric(6, 2), nullable=False)
    match_type = Column(String(16), nullable=False)
    is_manual = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class SQLAlchemyStore(ReconciliationStore):
    """ReconciliationStore on any SQLAlchemy-supported database."""

    def __init__(self, database_url: str = "sqlite:///receipt_recon.db", echo: bool = False):
        """
        Connect to the database and create missing tables.

        Args:
            database_url: SQLAlchemy database URL
            echo: Log emitted SQL
        """
        url = make_url(database_url)
        engine_kwargs: dict = {"echo": echo}
        if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        try:
            self.engine = create_engine(url, **engine_kwargs)
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to initialize database: {e}") from e

        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.debug(f"Connected to database: {url.render_as_string(hide_password=True)}")

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        """Session wrapped in a transaction; commits on success, rolls back on error."""
        try:
            with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Database operation failed: {e}")
            raise StorageError(f"Database operation failed: {e}") from e

    def add_receipts(self, receipts: Iterable[ReceiptRecord]) -> list[ReceiptRecord]:
        with self._transaction() as session:
            rows = [
                ReceiptRow(
                    email_id=r.email_id,
                    filename=r.filename,
                    merchant_name=r.merchant_name or "",
                    transaction_date=r.transaction_date,
                    total_amount=r.total_amount,
                    created_at=r.created_at or datetime.now(),
                )
                for r in receipts
            ]
            session.add_all(rows)
            session.flush()
            return [_to_receipt(row) for row in rows]

    def add_bank_records(self, records: Iterable[BankRecord]) -> list[BankRecord]:
        with self._transaction() as session:
            rows = [
                BankTransactionRow(
                    statement_file=r.statement_file,
                    transaction_date=r.transaction_date,
                    description=r.description,
                    amount=r.amount,
                    reference=r.reference,
                    account_number=r.account_number,
                    balance=r.balance,
                    transaction_type=r.transaction_type.value,
                    source_row=r.source_row,
                    created_at=r.created_at or datetime.now(),
                )
                for r in records
            ]
            session.add_all(rows)
            session.flush()
            return [_to_bank_record(row) for row in rows]

    def get_receipt(self, receipt_id: int) -> Optional[ReceiptRecord]:
        with self._transaction() as session:
            row = session.get(ReceiptRow, receipt_id)
            return _to_receipt(row) if row else None

    def get_bank_record(self, bank_id: int) -> Optional[BankRecord]:
        with self._transaction() as session:
            row = session.get(BankTransactionRow, bank_id)
            return _to_bank_record(row) if row else None

    def list_receipts(self) -> list[ReceiptRecord]:
        with self._transaction() as session:
            rows = session.scalars(select(ReceiptRow).order_by(ReceiptRow.id))
            return [_to_receipt(row) for row in rows]

    def list_bank_records(self) -> list[BankRecord]:
        with self._transaction() as session:
            rows = session.scalars(select(BankTransactionRow).order_by(BankTransactionRow.id))
            return [_to_bank_record(row) for row in rows]

    def list_eligible_receipts(self) -> list[ReceiptRecord]:
        stmt = (
            select(ReceiptRow)
            .where(ReceiptRow.total_amount.is_not(None))
            .where(ReceiptRow.transaction_date.is_not(None))
            .order_by(ReceiptRow.transaction_date.desc(), ReceiptRow.id)
        )
        with self._transaction() as session:
            return [_to_receipt(row) for row in session.scalars(stmt)]

    def list_debit_bank_records(self) -> list[BankRecord]:
        stmt = (
            select(BankTransactionRow)
            .where(BankTransactionRow.amount < 0)
            .order_by(BankTransactionRow.transaction_date.desc(), BankTransactionRow.id)
        )
        with self._transaction() as session:
            return [_to_bank_record(row) for row in session.scalars(stmt)]

    def list_matches(self, is_manual: Optional[bool] = None) -> list[ReconciliationMatch]:
        stmt = select(MatchRow).order_by(MatchRow.id)
        if is_manual is not None:
            stmt = stmt.where(MatchRow.is_manual.is_(is_manual))
        with self._transaction() as session:
            return [_to_match(row) for row in session.scalars(stmt)]

    def find_matches_involving(
        self, receipt_id: int, bank_id: int
    ) -> list[ReconciliationMatch]:
        stmt = select(MatchRow).where(
            or_(MatchRow.receipt_id == receipt_id, MatchRow.bank_transaction_id == bank_id)
        )
        with self._transaction() as session:
            return [_to_match(row) for row in session.scalars(stmt)]

    def add_match(self, match: ReconciliationMatch) -> ReconciliationMatch:
        with self._transaction() as session:
            row = _to_match_row(match)
            session.add(row)
            session.flush()
            return _to_match(row)

    def delete_match(self, match_id: int) -> bool:
        with self._transaction() as session:
            result = session.execute(delete(MatchRow).where(MatchRow.id == match_id))
            return result.rowcount > 0

    def replace_automatic_matches(
        self, matches: Iterable[ReconciliationMatch]
    ) -> list[ReconciliationMatch]:
        with self._transaction() as session:
            session.execute(delete(MatchRow).where(MatchRow.is_manual.is_(False)))
            rows = [_to_match_row(m) for m in matches]
            session.add_all(rows)
            session.flush()
            return [_to_match(row) for row in rows]

    def query_matches(
        self,
        match_type: Optional[MatchType] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[ReconciliationMatch], int]:
        conditions = []
        if match_type is not None:
            conditions.append(MatchRow.match_type == match_type.value)
        if created_from is not None:
            conditions.append(MatchRow.created_at >= created_from)
        if created_to is not None:
            conditions.append(MatchRow.created_at <= created_to)

        stmt = (
            select(MatchRow)
            .where(*conditions)
            .order_by(MatchRow.created_at.desc(), MatchRow.id.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        count_stmt = select(func.count()).select_from(MatchRow).where(*conditions)

        with self._transaction() as session:
            total = session.scalar(count_stmt) or 0
            return [_to_match(row) for row in session.scalars(stmt)], total

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
        conditions = []
        if date_from is not None:
            conditions.append(BankTransactionRow.transaction_date >= date_from)
        if date_to is not None:
            conditions.append(BankTransactionRow.transaction_date <= date_to)
        if min_amount is not None:
            conditions.append(BankTransactionRow.amount >= min_amount)
        if max_amount is not None:
            conditions.append(BankTransactionRow.amount <= max_amount)
        if description:
            conditions.append(
                BankTransactionRow.description.icontains(description, autoescape=True)
            )

        stmt = (
            select(BankTransactionRow)
            .where(*conditions)
            .order_by(BankTransactionRow.transaction_date.desc(), BankTransactionRow.id.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        count_stmt = select(func.count()).select_from(BankTransactionRow).where(*conditions)

        with self._transaction() as session:
            total = session.scalar(count_stmt) or 0
            return [_to_bank_record(row) for row in session.scalars(stmt)], total

    def close(self) -> None:
        self.engine.dispose()


def _to_receipt(row: ReceiptRow) -> ReceiptRecord:
    return ReceiptRecord(
        id=row.id,
        merchant_name=row.merchant_name or "",
        transaction_date=row.transaction_date,
        total_amount=row.total_amount,
        email_id=row.email_id,
        filename=row.filename,
        created_at=row.created_at,
    )


def _to_bank_record(row: BankTransactionRow) -> BankRecord:
    return BankRecord(
        id=row.id,
        statement_file=row.statement_file,
        transaction_date=row.transaction_date,
        description=row.description,
        amount=row.amount,
        reference=row.reference,
        account_number=row.account_number,
        balance=row.balance,
        source_row=row.source_row,
        created_at=row.created_at,
    )


def _to_match(row: MatchRow) -> ReconciliationMatch:
    return ReconciliationMatch(
        id=row.id,
        receipt_id=row.receipt_id,
        bank_transaction_id=row.bank_transaction_id,
        confidence=row.match_confidence,
        match_type=MatchType(row.match_type),
        is_manual=bool(row.is_manual),
        notes=row.notes,
        created_at=row.created_at,
    )


def _to_match_row(match: ReconciliationMatch) -> MatchRow:
    return MatchRow(
        receipt_id=match.receipt_id,
        bank_transaction_id=match.bank_transaction_id,
        match_confidence=match.confidence,
        match_type=match.match_type.value,
        is_manual=match.is_manual,
        notes=match.notes,
        created_at=match.created_at,
    )
