"""
Tests for condition trackers, the event throttle and policy building
"""

import pytest

from integrity_service.proctor.conditions import (
    ConditionPhase,
    ConditionTracker,
    EventThrottle,
)
from integrity_service.proctor.conditions.policies import (
    DEFAULT_POLICIES,
    build_policies,
    object_severity,
    parse_kind,
    parse_severity,
)
from integrity_service.proctor.errors import ConfigurationError
from integrity_service.proctor.events.models import Severity, ViolationType


class TestConditionTracker:
    """Tests for the per-condition state machine"""

    def test_starts_inactive(self):
        tracker = ConditionTracker("no_face", threshold=3.0)

        assert tracker.phase is ConditionPhase.INACTIVE
        assert tracker.onset is None

    def test_first_true_observation_records_onset(self):
        tracker = ConditionTracker("no_face", threshold=3.0)

        assert tracker.observe(True, 1.0) is False
        assert tracker.phase is ConditionPhase.PENDING
        assert tracker.onset == 1.0

    def test_qualifies_after_threshold(self):
        tracker = ConditionTracker("no_face", threshold=3.0)

        tracker.observe(True, 0.0)

        assert tracker.observe(True, 2.9) is False
        assert tracker.observe(True, 3.0) is True

    def test_zero_threshold_qualifies_immediately(self):
        tracker = ConditionTracker("multiple_faces", threshold=0.0)

        assert tracker.observe(True, 4.2) is True

    def test_false_observation_clears(self):
        tracker = ConditionTracker("focus_lost", threshold=2.0)
        tracker.observe(True, 0.0)

        assert tracker.observe(False, 1.5) is False
        assert tracker.phase is ConditionPhase.INACTIVE
        assert tracker.onset is None

        # Onset restarts from the next true observation
        tracker.observe(True, 1.6)
        assert tracker.observe(True, 3.0) is False
        assert tracker.observe(True, 3.6) is True

    def test_unfired_candidate_keeps_onset(self):
        tracker = ConditionTracker("no_face", threshold=3.0)
        tracker.observe(True, 0.0)

        assert tracker.observe(True, 3.0) is True
        assert tracker.observe(True, 4.0) is True
        assert tracker.onset == 0.0

    def test_continuous_rearms_on_fire(self):
        tracker = ConditionTracker("focus_lost", threshold=2.0, continuous=True)
        tracker.observe(True, 0.0)
        tracker.observe(True, 2.0)

        tracker.mark_fired(2.0)

        assert tracker.phase is ConditionPhase.PENDING
        assert tracker.onset == 2.0
        assert tracker.state.fire_count == 1
        assert tracker.observe(True, 3.0) is False
        assert tracker.observe(True, 4.0) is True

    def test_rearm_keeps_start_of_run(self):
        tracker = ConditionTracker("focus_lost", threshold=2.0)
        tracker.observe(True, 0.0)
        tracker.mark_fired(2.0)

        assert tracker.onset == 2.0
        assert tracker.active_since == 0.0

        tracker.observe(False, 3.0)
        assert tracker.active_since is None

    def test_one_shot_waits_for_clear(self):
        tracker = ConditionTracker("multiple_faces", threshold=0.0, continuous=False)
        tracker.observe(True, 0.0)
        tracker.mark_fired(0.0)

        assert tracker.phase is ConditionPhase.FIRED
        assert tracker.observe(True, 10.0) is False

        tracker.observe(False, 11.0)
        assert tracker.observe(True, 12.0) is True

    def test_reset(self):
        tracker = ConditionTracker("no_face", threshold=1.0)
        tracker.observe(True, 0.0)
        tracker.mark_fired(1.0)

        tracker.reset()

        assert tracker.phase is ConditionPhase.INACTIVE
        assert tracker.state.last_fired is None
        assert tracker.state.fire_count == 0


class TestEventThrottle:
    """Tests for the per-key refire interval"""

    def test_first_firing_allowed(self):
        throttle = EventThrottle(lambda key: 5.0)

        assert throttle.allow("no_face", 0.0) is True
        assert throttle.last_fired("no_face") == 0.0

    def test_blocks_within_interval(self):
        throttle = EventThrottle(lambda key: 5.0)
        throttle.allow("no_face", 0.0)

        assert throttle.allow("no_face", 4.99) is False
        assert throttle.allow("no_face", 5.0) is True
        assert throttle.last_fired("no_face") == 5.0

    def test_rejection_is_not_recorded(self):
        throttle = EventThrottle(lambda key: 5.0)
        throttle.allow("no_face", 0.0)

        throttle.allow("no_face", 3.0)

        assert throttle.last_fired("no_face") == 0.0

    def test_keys_are_independent(self):
        intervals = {"object_detected:cell phone": 8.0, "object_detected:book": 8.0}
        throttle = EventThrottle(intervals.__getitem__)

        assert throttle.allow("object_detected:cell phone", 0.0) is True
        assert throttle.allow("object_detected:book", 1.0) is True
        assert throttle.allow("object_detected:cell phone", 2.0) is False

    def test_peek_does_not_record(self):
        throttle = EventThrottle(lambda key: 5.0)

        assert throttle.peek("drowsiness", 0.0) is True
        assert throttle.last_fired("drowsiness") is None

    def test_reset(self):
        throttle = EventThrottle(lambda key: 5.0)
        throttle.allow("no_face", 0.0)

        throttle.reset()

        assert throttle.allow("no_face", 1.0) is True


class TestPolicies:
    """Tests for policy defaults and overrides"""

    def test_defaults(self):
        policies = build_policies()

        assert policies[ViolationType.NO_FACE].threshold == 3.0
        assert policies[ViolationType.NO_FACE].severity is Severity.HIGH
        assert policies[ViolationType.MULTIPLE_FACES].threshold == 0.0
        assert policies[ViolationType.FOCUS_LOST].threshold == 2.0
        assert policies[ViolationType.FOCUS_LOST].severity is Severity.MEDIUM
        assert policies[ViolationType.DROWSINESS].threshold == 3.0
        assert policies[ViolationType.OBJECT_DETECTED].refire_interval == 8.0
        assert all(policy.continuous for policy in policies.values())

    def test_refire_overrides(self):
        policies = build_policies(face_refire=2.0, object_refire=10.0)

        assert policies[ViolationType.NO_FACE].refire_interval == 2.0
        assert policies[ViolationType.DROWSINESS].refire_interval == 2.0
        assert policies[ViolationType.OBJECT_DETECTED].refire_interval == 10.0

    def test_per_kind_override(self):
        policies = build_policies({
            "focus_lost": {"threshold": "1.5", "severity": "HIGH", "continuous": False}
        })

        policy = policies[ViolationType.FOCUS_LOST]
        assert policy.threshold == 1.5
        assert policy.severity is Severity.HIGH
        assert policy.continuous is False

    def test_defaults_not_mutated(self):
        build_policies({"no_face": {"threshold": 9.0}})

        assert DEFAULT_POLICIES[ViolationType.NO_FACE].threshold == 3.0

    @pytest.mark.parametrize("overrides", [
        {"talking": {"threshold": 1.0}},
        {"no_face": {"severity": "critical"}},
        {"no_face": {"cooldown": 1.0}},
        {"no_face": {"threshold": "soon"}},
        {"no_face": {"refire_interval": -1.0}},
        {"no_face": {"threshold": "nan"}},
        {"focus_lost": {"threshold": float("inf")}},
        {"drowsiness": {"refire_interval": "-inf"}},
        {"multiple_faces": {"continuous": "false"}},
        {"multiple_faces": {"continuous": 0}},
    ])
    def test_invalid_overrides(self, overrides):
        with pytest.raises(ConfigurationError):
            build_policies(overrides)

    def test_parse_helpers(self):
        assert parse_kind("NO_FACE") is ViolationType.NO_FACE
        assert parse_severity(Severity.LOW) is Severity.LOW

        with pytest.raises(ConfigurationError):
            parse_severity("extreme")

    def test_object_severity(self):
        assert object_severity("cell phone") is Severity.HIGH
        assert object_severity("Book") is Severity.MEDIUM
        assert object_severity("cup") is Severity.LOW
        assert object_severity("umbrella") is Severity.LOW
        assert object_severity("book", {"book": Severity.HIGH}) is Severity.HIGH
