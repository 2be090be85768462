"""Parsers for bank statement tables, receipt exports and raw field values."""

from .normalizer import normalize_date, parse_amount, parse_date
from .receipt_loader import load_receipts
from .statement_parser import StatementParser

__all__ = [
    "StatementParser",
    "load_receipts",
    "normalize_date",
    "parse_amount",
    "parse_date",
]
