"""
Reconciliation orchestrator.

One run: load eligible receipts and debit bank records, assign matches
greedily, then atomically swap the automatic matches in storage.

The assignment is a single pass over receipts in date-descending order;
each receipt takes its best remaining bank record if the score reaches
the threshold. This is not a globally optimal assignment: an early
receipt can take a bank record that a later receipt would have matched
better, leaving that later receipt unmatched.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
import logging

from ..config import ReconConfig
from ..models.results import MatchScore, ReconciliationRunResult
from ..models.transaction import BankRecord, ReceiptRecord, ReconciliationMatch
from ..storage.interface import ReconciliationStore
from .scorer import MatchScorer

logger = logging.getLogger(__name__)

CONFIDENCE_QUANTUM = Decimal("0.01")


class RunPhase(Enum):
    """Stages of a reconciliation run, in order."""

    START = "start"
    LOAD_CANDIDATES = "load_candidates"
    GREEDY_ASSIGN = "greedy_assign"
    REPLACE_MATCHES = "replace_matches"
    DONE = "done"


class ReconciliationEngine:
    """
    Runs automatic matching between receipts and bank records.

    Manual matches are never touched; their receipts and bank records are
    excluded from automatic assignment.
    """

    def __init__(
        self,
        store: ReconciliationStore,
        config: ReconConfig,
        scorer: Optional[MatchScorer] = None,
    ):
        """
        Initialize the reconciliation engine.

        Args:
            store: Persistence backend
            config: Application configuration
            scorer: Match scorer; built from config when omitted
        """
        self.store = store
        self.config = config
        self.scorer = scorer or MatchScorer(config.matching)
        self.threshold = Decimal(str(config.matching.auto_match_threshold))
        self.phase = RunPhase.START

    def reconcile(self) -> ReconciliationRunResult:
        """
        Recompute all automatic matches.

        Nothing is cleared until the new match set is ready, and clearing
        plus inserting happen in one storage transaction, so a failed run
        leaves the previous matches in place and can simply be retried.

        Returns:
            Summary of the run

        Raises:
            PersistenceError: If loading or replacing matches fails
        """
        start_time = datetime.now()
        self.phase = RunPhase.START

        self._enter(RunPhase.LOAD_CANDIDATES)
        manual_matches = self.store.list_matches(is_manual=True)
        receipts = self.store.list_eligible_receipts()
        bank_records = self.store.list_debit_bank_records()
        ineligible_count = len(self.store.list_receipts()) - len(receipts)

        logger.info(
            f"Starting reconciliation: {len(receipts)} receipts, "
            f"{len(bank_records)} bank debits, {len(manual_matches)} manual matches kept"
        )

        consumed_receipts = {m.receipt_id for m in manual_matches}
        consumed_bank = {m.bank_transaction_id for m in manual_matches}

        self._enter(RunPhase.GREEDY_ASSIGN)
        new_matches = self._assign(receipts, bank_records, consumed_receipts, consumed_bank)

        self._enter(RunPhase.REPLACE_MATCHES)
        stored = self.store.replace_automatic_matches(new_matches)

        self._enter(RunPhase.DONE)
        unmatched_receipts = sum(1 for r in receipts if r.id not in consumed_receipts)
        unmatched_bank = sum(1 for b in bank_records if b.id not in consumed_bank)

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Reconciliation complete in {elapsed:.2f}s: {len(stored)} matches, "
            f"{unmatched_receipts} receipt-only, {unmatched_bank} bank-only"
        )

        return ReconciliationRunResult(
            matches=stored,
            unmatched_receipt_count=unmatched_receipts,
            unmatched_bank_count=unmatched_bank,
            ineligible_receipt_count=ineligible_count,
            preserved_manual_count=len(manual_matches),
            processing_time_seconds=elapsed,
        )

    def _enter(self, phase: RunPhase) -> None:
        self.phase = phase
        logger.debug(f"Reconciliation phase: {phase.value}")

    def _assign(
        self,
        receipts: list[ReceiptRecord],
        bank_records: list[BankRecord],
        consumed_receipts: set[int],
        consumed_bank: set[int],
    ) -> list[ReconciliationMatch]:
        """
        Greedy assignment; updates the consumed sets in place.

        Args:
            receipts: Eligible receipts in processing order
            bank_records: Debit bank records in candidate order
            consumed_receipts: Receipt ids that may not be matched
            consumed_bank: Bank record ids that may not be matched

        Returns:
            New automatic matches
        """
        matches: list[ReconciliationMatch] = []

        for receipt in receipts:
            if receipt.id in consumed_receipts:
                continue

            best = self.find_best_match(receipt, bank_records, consumed_bank)
            if best is None:
                continue

            bank_record, score = best
            if score.total < self.threshold:
                logger.debug(
                    f"Receipt {receipt.id}: best candidate {bank_record.id} scored "
                    f"{score.total:.2f}, below threshold"
                )
                continue

            matches.append(
                ReconciliationMatch(
                    receipt_id=receipt.id,
                    bank_transaction_id=bank_record.id,
                    confidence=score.total.quantize(CONFIDENCE_QUANTUM, rounding=ROUND_HALF_UP),
                    match_type=self.scorer.classify(score.total),
                    is_manual=False,
                )
            )
            consumed_receipts.add(receipt.id)
            consumed_bank.add(bank_record.id)
            logger.debug(
                f"Receipt {receipt.id} matched bank transaction {bank_record.id} "
                f"({score.total:.2f})"
            )

        return matches

    def find_best_match(
        self,
        receipt: ReceiptRecord,
        bank_records: list[BankRecord],
        exclude_ids: set[int],
    ) -> Optional[tuple[BankRecord, MatchScore]]:
        """
        Highest scoring bank record not in exclude_ids.

        The first candidate wins ties; candidates scoring zero are ignored.
        """
        best: Optional[tuple[BankRecord, MatchScore]] = None
        best_total = Decimal("0")

        for bank_record in bank_records:
            if bank_record.id in exclude_ids:
                continue

            score = self.scorer.score(receipt, bank_record)
            if score.total > best_total:
                best_total = score.total
                best = (bank_record, score)

        return best
