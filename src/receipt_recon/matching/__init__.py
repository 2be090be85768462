"""Match scoring, orchestration and manual match bookkeeping."""

from .engine import ReconciliationEngine, RunPhase
from .registry import ManualMatchRegistry
from .scorer import MatchScorer, normalize_text

__all__ = [
    "ReconciliationEngine",
    "RunPhase",
    "ManualMatchRegistry",
    "MatchScorer",
    "normalize_text",
]
