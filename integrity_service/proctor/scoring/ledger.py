"""
Scoring Ledger - Local integrity score with remote reconciliation

The local score reacts immediately to every emitted violation. The remote
store keeps its own copy that may lag behind; reconciliation only ever moves
the local score down, so a stale poll can never undo a deduction the user
has already seen.
"""

import logging
import math
import numbers
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List

from ..errors import InvalidRemoteScoreError
from ..events.models import Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreChange:
    """One applied deduction"""
    previous: int
    deduction: int
    score: int
    reason: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous": self.previous,
            "deduction": self.deduction,
            "score": self.score,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat()
        }


class ScoringLedger:
    """
    Integrity score ledger shared by the face and object pipelines.

    Every mutation goes through one lock, so concurrent deductions from
    both pipelines are never lost.
    """

    MAX_SCORE = 100
    MIN_SCORE = 0

    DEDUCTIONS: Dict[Severity, int] = {
        Severity.LOW: 2,
        Severity.MEDIUM: 5,
        Severity.HIGH: 10
    }

    DEFAULT_HISTORY_LIMIT = 10

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT):
        """
        Args:
            history_limit: Number of recent ScoreChange entries kept for display
        """
        self._lock = threading.Lock()
        self._score = self.MAX_SCORE
        self._history: Deque[ScoreChange] = deque(maxlen=history_limit)
        self._total_deducted = 0

    @property
    def score(self) -> int:
        with self._lock:
            return self._score

    @property
    def is_untouched(self) -> bool:
        with self._lock:
            return self._score == self.MAX_SCORE

    @property
    def history(self) -> List[ScoreChange]:
        with self._lock:
            return list(self._history)

    @property
    def total_deducted(self) -> int:
        with self._lock:
            return self._total_deducted

    def deduction_for(self, severity: Severity) -> int:
        return self.DEDUCTIONS[Severity(severity)]

    def apply_deduction(self, severity: Severity, reason: str = "") -> ScoreChange:
        """
        Deduct points for a violation.

        Args:
            severity: Violation severity
            reason: Human-readable reason kept in the score history

        Returns:
            ScoreChange describing the update (score floored at 0)
        """
        deduction = self.deduction_for(severity)

        with self._lock:
            previous = self._score
            self._score = max(self.MIN_SCORE, previous - deduction)
            self._total_deducted += previous - self._score
            change = ScoreChange(
                previous=previous,
                deduction=deduction,
                score=self._score,
                reason=reason
            )
            self._history.append(change)

        logger.debug(f"Score update: {previous} - {deduction} = {change.score}")
        return change

    def reconcile(self, remote_score: Any) -> int:
        """
        Reconcile with a remote-reported score.

        The remote value is adopted only when it is lower than the local
        score, or when the local score has not moved from its initial value.

        Args:
            remote_score: Score reported by the remote store

        Returns:
            The local score after reconciliation

        Raises:
            InvalidRemoteScoreError: remote_score is not a number in [0, 100]
        """
        value = self._validate_remote(remote_score)

        with self._lock:
            if value < self._score or self._score == self.MAX_SCORE:
                if value != self._score:
                    logger.info(f"Syncing score: local={self._score}, remote={value}")
                self._score = value
            return self._score

    def would_adopt(self, remote_score: Any) -> bool:
        """Whether reconcile() would change the local score"""
        value = self._validate_remote(remote_score)
        with self._lock:
            return value != self._score and (
                value < self._score or self._score == self.MAX_SCORE
            )

    def _validate_remote(self, remote_score: Any) -> int:
        if isinstance(remote_score, bool) or not isinstance(remote_score, numbers.Real):
            raise InvalidRemoteScoreError(f"Remote score must be a number, got {remote_score!r}")
        if math.isnan(remote_score):
            raise InvalidRemoteScoreError("Remote score is NaN")
        if not self.MIN_SCORE <= remote_score <= self.MAX_SCORE:
            raise InvalidRemoteScoreError(
                f"Remote score {remote_score} outside [{self.MIN_SCORE}, {self.MAX_SCORE}]"
            )
        return int(round(remote_score))

    def verdict(self) -> str:
        """
        Summarize the current score.

        Returns:
            'excellent' (>= 80), 'good' (>= 60) or 'poor'
        """
        score = self.score
        if score >= 80:
            return "excellent"
        elif score >= 60:
            return "good"
        else:
            return "poor"

    def reset(self):
        """Restore the initial score; only valid at session start"""
        with self._lock:
            self._score = self.MAX_SCORE
            self._history.clear()
            self._total_deducted = 0
