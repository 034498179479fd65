"""
Monitoring Session - Manages a single integrity monitoring session
"""

import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..config import Settings, settings as default_settings
from .conditions.policies import (
    OBJECT_SEVERITIES,
    build_policies,
    parse_severity,
)
from .errors import ConfigurationError, InvalidRemoteScoreError
from .events.emitter import EventEmitter, Observer
from .events.models import ViolationEvent, ViolationType
from .pipelines import FacePipeline, ObjectPipeline
from .scoring.ledger import ScoringLedger
from .signals.normalizer import SignalNormalizer, SignalSnapshot
from .utils.logging import log_score_sync, log_session_end, log_session_start

logger = logging.getLogger(__name__)


class MonitoringSession:
    """
    Manages a single monitoring session.

    Wires the normalizer, both detection pipelines, the shared scoring
    ledger and the event emitter, and owns the grace window.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        sink: Optional[Any] = None,
        config: Optional[Settings] = None,
        policies: Optional[Mapping[str, Mapping[str, Any]]] = None,
        object_severities: Optional[Mapping[str, Any]] = None,
        grace_period: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        normalizer: Optional[SignalNormalizer] = None
    ):
        """
        Initialize a new monitoring session.

        Args:
            session_id: Remote session ID (auto-generated if not provided)
            sink: Remote event sink with `async send_event(session_id, event)`
            config: Settings instance (module settings if not provided)
            policies: Per-kind overrides, e.g. {"focus_lost": {"threshold": 1.5}}
            object_severities: Monitored object labels -> severity name;
                               replaces the default label table
            grace_period: Seconds after start before violations are emitted
            clock: Monotonic time source in seconds
            normalizer: Custom SignalNormalizer

        Raises:
            ConfigurationError: unknown violation kind or severity
        """
        self.config = config or default_settings
        self.id = session_id or f"INT_{uuid.uuid4().hex[:6].upper()}"
        self.clock = clock

        self.policies = build_policies(
            policies,
            face_refire=self.config.FACE_REFIRE_SECONDS,
            object_refire=self.config.OBJECT_REFIRE_SECONDS
        )
        severities = self._build_object_severities(object_severities)

        self.grace_period = float(
            self.config.GRACE_PERIOD_SECONDS if grace_period is None else grace_period
        )
        if self.grace_period < 0:
            raise ConfigurationError(f"Negative grace period: {self.grace_period}")

        self.started_at = datetime.now(timezone.utc)
        self.start_instant = clock()
        self.activation_instant = self.start_instant + self.grace_period
        self._open = True

        self.normalizer = normalizer or SignalNormalizer()
        self.ledger = ScoringLedger(history_limit=self.config.SCORE_HISTORY_LIMIT)
        self.emitter = EventEmitter(
            self.id,
            sink=sink,
            recent_limit=self.config.RECENT_EVENTS_LIMIT,
            max_workers=self.config.SINK_WORKERS
        )

        self.face_pipeline = FacePipeline(
            self.id, self.policies, self.ledger, self.emitter, self.is_active,
            stamp=self.event_time
        )
        self.object_pipeline = ObjectPipeline(
            self.id,
            self.policies[ViolationType.OBJECT_DETECTED],
            severities,
            self.ledger,
            self.emitter,
            self.is_active,
            min_confidence=self.config.OBJECT_MIN_CONFIDENCE,
            stamp=self.event_time
        )

        log_session_start(self.id, self.grace_period)

    @staticmethod
    def _build_object_severities(overrides: Optional[Mapping[str, Any]]):
        if overrides is None:
            return dict(OBJECT_SEVERITIES)
        severities = {}
        for label, severity in overrides.items():
            if not isinstance(label, str) or not label.strip():
                raise ConfigurationError(f"Invalid object label: {label!r}")
            severities[label.strip().lower()] = parse_severity(severity)
        return severities

    # ------------------------------------------------------------------
    # Grace window
    # ------------------------------------------------------------------

    def _now(self, now: Optional[float]) -> float:
        return self.clock() if now is None else now

    def is_active(self, now: Optional[float] = None) -> bool:
        """Whether violations may be emitted at `now`"""
        return self._open and self._now(now) >= self.activation_instant

    def seconds_until_active(self, now: Optional[float] = None) -> float:
        return max(0.0, self.activation_instant - self._now(now))

    @property
    def is_open(self) -> bool:
        return self._open

    def event_time(self, now: float) -> datetime:
        """Wall-clock time of a tick instant, anchored at session start"""
        return self.started_at + timedelta(seconds=now - self.start_instant)

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def process_face_frame(self, raw: Any, now: Optional[float] = None) -> List[ViolationEvent]:
        """
        Process one face-tracker frame.

        Args:
            raw: Raw face-tracker output or a SignalSnapshot
            now: Monotonic time of the frame (clock() if not provided)

        Returns:
            Violations emitted on this tick
        """
        if not self._open:
            return []
        snapshot = raw if isinstance(raw, SignalSnapshot) else self.normalizer.normalize_face(raw)
        return self.face_pipeline.process(snapshot, self._now(now))

    def process_object_frame(self, raw: Any, now: Optional[float] = None) -> List[ViolationEvent]:
        """
        Process one object-classifier pass.

        Args:
            raw: Raw predictions or a SignalSnapshot
            now: Monotonic time of the pass (clock() if not provided)

        Returns:
            Violations emitted on this tick
        """
        if not self._open:
            return []
        snapshot = raw if isinstance(raw, SignalSnapshot) else self.normalizer.normalize_objects(raw)
        return self.object_pipeline.process(snapshot, self._now(now))

    # ------------------------------------------------------------------
    # Score
    # ------------------------------------------------------------------

    @property
    def score(self) -> int:
        return self.ledger.score

    def sync_remote_status(self, status: Any) -> int:
        """
        Reconcile the local score with a remote status response.

        Args:
            status: Status body containing `integrityScore`, or a bare score

        Returns:
            Local score after reconciliation (unchanged on invalid input)
        """
        remote = status.get("integrityScore") if isinstance(status, Mapping) else status
        local = self.ledger.score

        try:
            adopted = self.ledger.would_adopt(remote)
            score = self.ledger.reconcile(remote)
        except InvalidRemoteScoreError as e:
            logger.warning(f"Ignoring remote score for session {self.id}: {e}")
            return local

        log_score_sync(self.id, local, remote, adopted)
        return score

    def add_observer(self, observer: Observer):
        """Register a callback invoked synchronously for each violation"""
        self.emitter.add_observer(observer)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def summary(self, now: Optional[float] = None) -> Dict[str, Any]:
        """
        Current session summary.

        Returns:
            Dict with score, verdict, per-type event counts, recent events
            and score history
        """
        events = self.emitter.events
        return {
            "session_id": self.id,
            "is_open": self._open,
            "detection_active": self.is_active(now),
            "seconds_until_active": round(self.seconds_until_active(now), 2),
            "integrity_score": self.ledger.score,
            "verdict": self.ledger.verdict(),
            "total_events": len(events),
            "event_stats": self.emitter.counts_by_type(),
            "recent_events": [event.to_dict() for event in self.emitter.recent_events],
            "score_history": [change.to_dict() for change in self.ledger.history],
            "face_ticks": self.face_pipeline.tick_count,
            "object_ticks": self.object_pipeline.tick_count,
            "skipped_ticks": self.face_pipeline.skipped_count + self.object_pipeline.skipped_count,
            "duration_seconds": round(self._now(now) - self.start_instant, 2),
            "started_at": self.started_at.isoformat()
        }

    def close(self) -> Dict[str, Any]:
        """
        Stop both pipelines and discard condition state.

        Returns:
            Final session summary
        """
        if not self._open:
            return self.summary()

        result = self.summary()
        self._open = False
        self.face_pipeline.reset()
        self.object_pipeline.reset()
        self.emitter.close()

        result["is_open"] = False
        result["detection_active"] = False
        log_session_end(self.id, result["integrity_score"], result["total_events"])
        logger.info(f"Session {self.id} closed: score={result['integrity_score']}")

        return result
