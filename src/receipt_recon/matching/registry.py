"""Manual match bookkeeping."""

from decimal import Decimal
from typing import Optional
import logging

from ..models.results import OperationResult
from ..models.transaction import MatchType, ReconciliationMatch
from ..storage.interface import ReconciliationStore, StorageError
from ..utils.exceptions import DuplicateMatchError, ErrorKind, IneligibleRecordError

logger = logging.getLogger(__name__)

MANUAL_CONFIDENCE = Decimal("100")


class ManualMatchRegistry:
    """
    Creates and removes user-initiated matches.

    Expected validation failures come back as failed OperationResults;
    nothing here raises for a duplicate attempt.
    """

    def __init__(self, store: ReconciliationStore):
        self.store = store

    def create(
        self, receipt_id: int, bank_id: int, notes: Optional[str] = None
    ) -> OperationResult:
        """
        Pair a receipt with a bank record.

        Rejected when either record is unknown or already part of any
        match, automatic or manual.
        """
        try:
            self._validate(receipt_id, bank_id)
            match = self.store.add_match(
                ReconciliationMatch(
                    receipt_id=receipt_id,
                    bank_transaction_id=bank_id,
                    confidence=MANUAL_CONFIDENCE,
                    match_type=MatchType.MANUAL,
                    is_manual=True,
                    notes=notes,
                )
            )
        except (IneligibleRecordError, DuplicateMatchError) as e:
            logger.warning(f"Manual match rejected: {e}")
            return OperationResult.failure(e.kind, str(e))
        except StorageError as e:
            logger.error(f"Error creating manual match: {e}")
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILURE, str(e))

        logger.info(
            f"Manual match {match.id} created: receipt {receipt_id} <-> bank transaction {bank_id}"
        )
        return OperationResult.ok("Manual match created successfully", match=match)

    def remove(self, match_id: int) -> OperationResult:
        """Delete a match by id, automatic or manual."""
        try:
            removed = self.store.delete_match(match_id)
        except StorageError as e:
            logger.error(f"Error removing match: {e}")
            return OperationResult.failure(ErrorKind.PERSISTENCE_FAILURE, str(e))

        if not removed:
            return OperationResult(success=False, message=f"Match {match_id} not found")

        logger.info(f"Match {match_id} removed")
        return OperationResult.ok("Match removed successfully")

    def _validate(self, receipt_id: int, bank_id: int) -> None:
        """
        Raises:
            IneligibleRecordError: If either record does not exist
            DuplicateMatchError: If either record is already matched
        """
        if self.store.get_receipt(receipt_id) is None:
            raise IneligibleRecordError(f"Receipt {receipt_id} does not exist")
        if self.store.get_bank_record(bank_id) is None:
            raise IneligibleRecordError(f"Bank transaction {bank_id} does not exist")

        if self.store.find_matches_involving(receipt_id, bank_id):
            raise DuplicateMatchError(
                "One of the transactions is already matched",
                receipt_id=receipt_id,
                bank_id=bank_id,
            )
