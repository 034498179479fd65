"""
Condition State Machines - Track how long a monitored condition has persisted

Each tracker moves between three phases:

    INACTIVE --(true)--> PENDING --(elapsed >= threshold, emitted)--> FIRED
        ^                   |  ^                                        |
        +------(false)------+  +---(continuous kinds re-arm on fire)    |
        +--------------------------------(false)------------------------+

`observe()` only reports whether the condition qualifies. The caller decides
whether the candidate is actually emitted (grace window, throttle) and then
calls `mark_fired()`. A qualified candidate that is not emitted keeps its
onset, so it fires on the first tick the gates open.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ConditionPhase(str, Enum):
    INACTIVE = "inactive"
    PENDING = "pending"
    FIRED = "fired"


@dataclass
class ConditionState:
    """Mutable per-kind bookkeeping"""
    key: str
    threshold: float
    continuous: bool = True
    phase: ConditionPhase = ConditionPhase.INACTIVE
    onset: Optional[float] = None
    active_since: Optional[float] = None
    last_fired: Optional[float] = None
    fire_count: int = 0


class ConditionTracker:
    """
    Temporal state machine for a single monitored condition.

    Args:
        key: Condition key (violation kind, or kind:label for objects)
        threshold: Seconds the condition must hold before qualifying
        continuous: Re-arm after firing instead of waiting for the
                    condition to clear
    """

    def __init__(self, key: str, threshold: float, continuous: bool = True):
        self.state = ConditionState(key=key, threshold=threshold, continuous=continuous)

    @property
    def key(self) -> str:
        return self.state.key

    @property
    def phase(self) -> ConditionPhase:
        return self.state.phase

    @property
    def onset(self) -> Optional[float]:
        return self.state.onset

    @property
    def active_since(self) -> Optional[float]:
        """Start of the current unbroken run; unlike onset, not moved by re-arming"""
        return self.state.active_since

    def observe(self, active: bool, now: float) -> bool:
        """
        Feed one observation of the condition.

        Args:
            active: Whether the condition holds on this tick
            now: Current monotonic time in seconds

        Returns:
            True if the condition has persisted for at least the threshold
            and is waiting to be fired
        """
        state = self.state

        if not active:
            if state.phase is not ConditionPhase.INACTIVE:
                logger.debug(f"Condition {state.key} cleared")
            state.phase = ConditionPhase.INACTIVE
            state.onset = None
            state.active_since = None
            return False

        if state.phase is ConditionPhase.INACTIVE:
            state.phase = ConditionPhase.PENDING
            state.onset = now
            state.active_since = now
            logger.debug(f"Condition {state.key} started at {now:.3f}")

        if state.phase is ConditionPhase.FIRED:
            return False

        return now - state.onset >= state.threshold

    def mark_fired(self, now: float):
        """Record that the qualified candidate was emitted"""
        state = self.state
        state.last_fired = now
        state.fire_count += 1

        if state.continuous:
            state.onset = now
            state.phase = ConditionPhase.PENDING
        else:
            state.phase = ConditionPhase.FIRED

    def reset(self):
        """Return to INACTIVE and forget all timing"""
        self.state.phase = ConditionPhase.INACTIVE
        self.state.onset = None
        self.state.active_since = None
        self.state.last_fired = None
        self.state.fire_count = 0
