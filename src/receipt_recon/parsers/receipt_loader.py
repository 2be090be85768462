"""
Loader for receipts exported by the extraction pipeline.

Accepts CSV or JSON (a list of objects) with merchant_name,
transaction_date and total_amount columns plus optional email_id and
filename. Missing or unreadable dates and amounts are kept as None, which
makes the receipt ineligible for matching rather than rejected.
"""

from pathlib import Path
from typing import Any, Optional
import json
import logging

import pandas as pd

from ..models.transaction import ReceiptRecord
from ..utils.exceptions import ParseError
from .normalizer import parse_amount, parse_date

logger = logging.getLogger(__name__)


def load_receipts(file_path: Path) -> list[ReceiptRecord]:
    """
    Read receipts from a CSV or JSON file.

    Raises:
        ParseError: If the file cannot be read
    """
    try:
        if file_path.suffix.lower() == ".json":
            with open(file_path, "r", encoding="utf-8") as f:
                rows = json.load(f)
            if not isinstance(rows, list):
                raise ParseError("Receipt JSON must be a list of objects", field="table")
        else:
            df = pd.read_csv(file_path, dtype=str, keep_default_na=False)
            rows = df.to_dict(orient="records")
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise ParseError(f"Failed to read receipts from {file_path}: {e}", field="table") from e

    receipts = [_to_receipt(row, i) for i, row in enumerate(rows, start=1)]
    logger.info(f"Loaded {len(receipts)} receipts from {file_path}")
    return receipts


def _to_receipt(row: dict[str, Any], row_number: int) -> ReceiptRecord:
    return ReceiptRecord(
        merchant_name=str(row.get("merchant_name") or "").strip(),
        transaction_date=_optional(parse_date, row.get("transaction_date"), row_number),
        total_amount=_optional(parse_amount, row.get("total_amount"), row_number),
        email_id=_text(row.get("email_id")),
        filename=_text(row.get("filename")),
    )


def _optional(parser, value: Any, row_number: int) -> Optional[Any]:
    if value is None or value == "":
        return None
    try:
        return parser(value)
    except ParseError as e:
        logger.warning(f"Receipt {row_number}: {e.message}, leaving {e.field} empty")
        return None


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)
