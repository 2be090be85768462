"""Record builders with sensible defaults for tests."""

from datetime import date
from decimal import Decimal
from typing import Optional

from receipt_recon.models.transaction import BankRecord, ReceiptRecord


def make_receipt(
    merchant: str = "Walmart",
    amount: Optional[str] = "45.67",
    txn_date: Optional[date] = date(2024, 1, 15),
    **kwargs,
) -> ReceiptRecord:
    return ReceiptRecord(
        merchant_name=merchant,
        transaction_date=txn_date,
        total_amount=Decimal(amount) if amount is not None else None,
        **kwargs,
    )


def make_bank(
    description: str = "WALMART SUPERCENTER #1234",
    amount: str = "-45.67",
    txn_date: date = date(2024, 1, 15),
    statement_file: str = "statement.csv",
    **kwargs,
) -> BankRecord:
    return BankRecord(
        statement_file=statement_file,
        transaction_date=txn_date,
        description=description,
        amount=Decimal(amount),
        **kwargs,
    )
