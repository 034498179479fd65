"""Temporal condition tracking and throttling"""

from .policies import (
    ConditionPolicy,
    DEFAULT_POLICIES,
    MONITORED_OBJECTS,
    OBJECT_SEVERITIES,
    build_policies,
)
from .state_machine import ConditionTracker, ConditionPhase, ConditionState
from .throttle import EventThrottle

__all__ = [
    "ConditionPolicy",
    "DEFAULT_POLICIES",
    "MONITORED_OBJECTS",
    "OBJECT_SEVERITIES",
    "build_policies",
    "ConditionTracker",
    "ConditionPhase",
    "ConditionState",
    "EventThrottle",
]
