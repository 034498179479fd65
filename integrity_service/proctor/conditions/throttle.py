"""
Event Throttle - Minimum re-fire interval per violation key
"""

import logging
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class EventThrottle:
    """
    Rate-limits violations independently of the state machines.

    Keys are violation kinds for face-derived conditions and
    `object_detected:<label>` for objects, so each label has its own cadence.

    Args:
        interval_for: Callable returning the refire interval (seconds) for a key
    """

    def __init__(self, interval_for: Callable[[str], float]):
        self._interval_for = interval_for
        self._last_fired: Dict[str, float] = {}

    def peek(self, key: str, now: float) -> bool:
        """Check whether `key` may fire at `now` without recording anything"""
        last = self._last_fired.get(key)
        if last is None:
            return True
        return now - last >= self._interval_for(key)

    def allow(self, key: str, now: float) -> bool:
        """
        Decide whether `key` may fire at `now`; records the firing on allow.

        Returns:
            True if the key has never fired or its interval has elapsed
        """
        if not self.peek(key, now):
            logger.debug(f"Throttled {key} at {now:.3f}")
            return False

        self._last_fired[key] = now
        return True

    def last_fired(self, key: str) -> Optional[float]:
        return self._last_fired.get(key)

    def reset(self):
        self._last_fired.clear()
