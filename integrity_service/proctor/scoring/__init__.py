"""Scoring modules"""

from .ledger import ScoringLedger, ScoreChange

__all__ = ["ScoringLedger", "ScoreChange"]
