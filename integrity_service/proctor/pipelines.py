"""
Detection Pipelines - Turn signal snapshots into violations

The face pipeline runs at camera rate; the object pipeline runs every few
seconds. Each owns its trackers and throttle. Both share one ScoringLedger
and one EventEmitter.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional

from .conditions.policies import FACE_KINDS, ConditionPolicy, object_severity
from .conditions.state_machine import ConditionTracker
from .conditions.throttle import EventThrottle
from .events.emitter import EventEmitter
from .events.models import Severity, ViolationEvent, ViolationType
from .scoring.ledger import ScoringLedger
from .signals.normalizer import SignalSnapshot
from .utils.logging import log_violation

logger = logging.getLogger(__name__)

Gate = Callable[[float], bool]
Stamp = Callable[[float], datetime]


def _wall_clock(now: float) -> datetime:
    return datetime.now(timezone.utc)


class _Pipeline:
    """Shared firing path: grace gate, throttle, ledger, emitter"""

    name = "pipeline"

    def __init__(
        self,
        session_id: str,
        ledger: ScoringLedger,
        emitter: EventEmitter,
        gate: Gate,
        throttle: EventThrottle,
        stamp: Optional[Stamp] = None
    ):
        self.session_id = session_id
        self.ledger = ledger
        self.emitter = emitter
        self.gate = gate
        self.throttle = throttle
        self.stamp = stamp or _wall_clock
        self._lock = threading.Lock()
        self.tick_count = 0
        self.skipped_count = 0

    def _try_fire(
        self,
        tracker: ConditionTracker,
        now: float,
        build_event: Callable[[datetime], ViolationEvent]
    ) -> Optional[ViolationEvent]:
        if not self.gate(now):
            return None
        if not self.throttle.allow(tracker.key, now):
            return None

        event = build_event(self.stamp(now))
        change = self.ledger.apply_deduction(event.severity, reason=event.description)
        tracker.mark_fired(now)
        log_violation(self.session_id, event.type.value, event.severity.value, change.score)
        self.emitter.emit(event)
        return event

    def process(self, snapshot: SignalSnapshot, now: float) -> List[ViolationEvent]:
        """
        Advance every tracker by one tick.

        Args:
            snapshot: Normalized signals for this tick
            now: Monotonic time in seconds

        Returns:
            Violations emitted on this tick
        """
        with self._lock:
            if snapshot.skipped:
                self.skipped_count += 1
                return []
            self.tick_count += 1
            return self._process(snapshot, now)

    def _process(self, snapshot: SignalSnapshot, now: float) -> List[ViolationEvent]:
        raise NotImplementedError

    def reset(self):
        raise NotImplementedError


class FacePipeline(_Pipeline):
    """
    Face-derived conditions.

    - no_face: no face in frame
    - multiple_faces: more than one face
    - focus_lost: the single face is turned away
    - drowsiness: the single face has its eyes closed
    """

    name = "face"

    def __init__(
        self,
        session_id: str,
        policies: Mapping[ViolationType, ConditionPolicy],
        ledger: ScoringLedger,
        emitter: EventEmitter,
        gate: Gate,
        stamp: Optional[Stamp] = None
    ):
        self.policies = {kind: policies[kind] for kind in FACE_KINDS}
        throttle = EventThrottle(lambda key: self.policies[ViolationType(key)].refire_interval)
        super().__init__(session_id, ledger, emitter, gate, throttle, stamp)

        self.trackers: Dict[ViolationType, ConditionTracker] = {
            kind: ConditionTracker(kind.value, policy.threshold, policy.continuous)
            for kind, policy in self.policies.items()
        }

    @staticmethod
    def conditions(snapshot: SignalSnapshot) -> Dict[ViolationType, bool]:
        """Map a snapshot to the truth value of each face condition"""
        single = snapshot.face_count == 1
        return {
            ViolationType.NO_FACE: snapshot.face_count == 0,
            ViolationType.MULTIPLE_FACES: snapshot.face_count > 1,
            ViolationType.FOCUS_LOST: single and snapshot.is_looking_away,
            ViolationType.DROWSINESS: single and snapshot.eyes_closed,
        }

    def _process(self, snapshot: SignalSnapshot, now: float) -> List[ViolationEvent]:
        emitted = []

        for kind, active in self.conditions(snapshot).items():
            tracker = self.trackers[kind]
            if not tracker.observe(active, now):
                continue

            elapsed = now - tracker.active_since
            event = self._try_fire(
                tracker,
                now,
                lambda timestamp: ViolationEvent(
                    type=kind,
                    description=self._describe(kind, snapshot, elapsed),
                    severity=self.policies[kind].severity,
                    timestamp=timestamp
                )
            )
            if event is not None:
                emitted.append(event)

        return emitted

    @staticmethod
    def _describe(kind: ViolationType, snapshot: SignalSnapshot, elapsed: float) -> str:
        if kind is ViolationType.NO_FACE:
            return f"No face detected for {elapsed:.0f}s"
        if kind is ViolationType.MULTIPLE_FACES:
            return f"Multiple faces detected ({snapshot.face_count})"
        if kind is ViolationType.FOCUS_LOST:
            return f"Candidate looking away from screen for {elapsed:.0f}s"
        return f"Eyes closed for {elapsed:.0f}s - possible drowsiness"

    def reset(self):
        with self._lock:
            for tracker in self.trackers.values():
                tracker.reset()
            self.throttle.reset()


class ObjectPipeline(_Pipeline):
    """
    Object-derived conditions, one tracker per monitored label.

    Detections below `min_confidence` or outside the monitored label set are
    ignored. Trackers are created on first sighting of a label.
    """

    name = "object"

    KEY_PREFIX = ViolationType.OBJECT_DETECTED.value

    def __init__(
        self,
        session_id: str,
        policy: ConditionPolicy,
        severities: Mapping[str, Severity],
        ledger: ScoringLedger,
        emitter: EventEmitter,
        gate: Gate,
        min_confidence: float = 0.6,
        stamp: Optional[Stamp] = None
    ):
        self.policy = policy
        self.severities = {label.lower(): severity for label, severity in severities.items()}
        self.min_confidence = min_confidence
        throttle = EventThrottle(lambda key: self.policy.refire_interval)
        super().__init__(session_id, ledger, emitter, gate, throttle, stamp)

        self.trackers: Dict[str, ConditionTracker] = {}

    @property
    def monitored_labels(self):
        return frozenset(self.severities)

    def key_for(self, label: str) -> str:
        return f"{self.KEY_PREFIX}:{label}"

    def suspicious(self, snapshot: SignalSnapshot) -> Dict[str, float]:
        """
        Filter detections down to monitored labels above the confidence floor.

        Returns:
            Label -> highest confidence seen this tick, in first-seen order
        """
        found: Dict[str, float] = {}
        for detection in snapshot.objects:
            if detection.label not in self.severities:
                continue
            if detection.confidence <= self.min_confidence:
                continue
            found[detection.label] = max(found.get(detection.label, 0.0), detection.confidence)
        return found

    def _tracker(self, label: str) -> ConditionTracker:
        tracker = self.trackers.get(label)
        if tracker is None:
            tracker = ConditionTracker(self.key_for(label), self.policy.threshold, self.policy.continuous)
            self.trackers[label] = tracker
            logger.debug(f"Tracking new object label: {label}")
        return tracker

    def _process(self, snapshot: SignalSnapshot, now: float) -> List[ViolationEvent]:
        present = self.suspicious(snapshot)
        emitted = []

        for label in present:
            self._tracker(label)

        for label, tracker in self.trackers.items():
            if not tracker.observe(label in present, now):
                continue

            confidence = present[label]
            event = self._try_fire(
                tracker,
                now,
                lambda timestamp: ViolationEvent(
                    type=ViolationType.OBJECT_DETECTED,
                    description=f"{label} detected in frame ({round(confidence * 100)}% confidence)",
                    severity=object_severity(label, self.severities),
                    timestamp=timestamp,
                    label=label
                )
            )
            if event is not None:
                emitted.append(event)

        return emitted

    def reset(self):
        with self._lock:
            self.trackers.clear()
            self.throttle.reset()
