"""
Confidence scoring between a receipt and a bank record.

The score is a weighted sum of three independent signals: amount
closeness, date proximity and merchant/description text similarity.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
import re

from ..config import MatchingConfig
from ..models.results import MatchScore
from ..models.transaction import BankRecord, MatchType, ReceiptRecord

HUNDRED = Decimal("100")
ZERO = Decimal("0")


def normalize_text(text: Optional[str]) -> str:
    """Lower-case and drop everything that is not a letter, digit or space."""
    if not text:
        return ""
    return re.sub(r"[^\w\s]|_", "", text.lower()).strip()


class MatchScorer:
    """Computes a 0-100 confidence score for one receipt / bank record pair."""

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()
        weights = self.config.weights
        self.amount_weight = Decimal(str(weights.amount))
        self.date_weight = Decimal(str(weights.date))
        self.text_weight = Decimal(str(weights.text))
        self.date_steps = [
            (step.max_days, Decimal(str(step.score))) for step in self.config.date_steps
        ]
        self.containment_score = Decimal(str(self.config.text_containment_score))
        self.partial_cap = Decimal(str(self.config.text_partial_cap))

    def score(self, receipt: ReceiptRecord, bank_record: BankRecord) -> MatchScore:
        """
        Score a receipt against a bank record.

        Receipts without amount or date get zero for that signal; callers
        are expected to filter ineligible receipts beforehand.
        """
        amount_score = ZERO
        if receipt.total_amount is not None:
            amount_score = self.amount_similarity(receipt.total_amount, bank_record.amount)

        date_score = ZERO
        if receipt.transaction_date is not None:
            date_score = self.date_similarity(
                receipt.transaction_date, bank_record.transaction_date
            )

        text_score = self.text_similarity(receipt.merchant_name, bank_record.description)

        total = (
            amount_score * self.amount_weight
            + date_score * self.date_weight
            + text_score * self.text_weight
        )

        return MatchScore(
            amount_score=amount_score,
            date_score=date_score,
            text_score=text_score,
            total=min(HUNDRED, total),
        )

    def amount_similarity(self, receipt_amount: Decimal, bank_amount: Decimal) -> Decimal:
        """100 for identical magnitudes, minus the relative difference in percent."""
        receipt_amount = abs(receipt_amount)
        bank_amount = abs(bank_amount)
        if receipt_amount == 0:
            return HUNDRED if bank_amount == 0 else ZERO

        difference = abs(receipt_amount - bank_amount)
        return max(ZERO, HUNDRED - difference / receipt_amount * HUNDRED)

    def date_similarity(self, receipt_date: date, bank_date: date) -> Decimal:
        """Step function over the absolute day difference."""
        days = abs((receipt_date - bank_date).days)
        for max_days, step_score in self.date_steps:
            if days <= max_days:
                return step_score
        return ZERO

    def text_similarity(self, merchant: Optional[str], description: Optional[str]) -> Decimal:
        """
        Compare merchant name and bank description.

        Exact match scores 100, containment in either direction scores the
        containment score, otherwise the share of significant merchant
        words found in the description, capped.
        """
        m1 = normalize_text(merchant)
        m2 = normalize_text(description)
        if not m1 or not m2:
            return ZERO

        if m1 == m2:
            return HUNDRED
        if m1 in m2 or m2 in m1:
            return self.containment_score

        receipt_words = m1.split()
        bank_words = m2.split()
        min_length = self.config.min_token_length

        matched = 0
        for word in receipt_words:
            if len(word) >= min_length and any(
                other in word or word in other for other in bank_words
            ):
                matched += 1

        percent = Decimal(matched) / Decimal(max(len(receipt_words), 1)) * HUNDRED
        return min(self.partial_cap, percent)

    def classify(self, score: Decimal) -> MatchType:
        """Label for an automatically computed score."""
        bands = self.config.match_type_bands
        return MatchType.from_score(
            score, exact=bands.exact, probable=bands.probable, possible=bands.possible
        )
