"""
Pytest Configuration for Integrity Service Tests
"""
import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from integrity_service.config import Settings  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingSink:
    """Remote sink that records every delivered event"""

    def __init__(self):
        self.delivered = []

    async def send_event(self, session_id, event):
        self.delivered.append((session_id, event))


def make_landmarks(look_away: bool = False, eyes_closed: bool = False) -> np.ndarray:
    """
    Build a 468-point normalized face mesh.

    Eyes open with a 0.04 lid gap and the nose centred between the eye
    corners unless asked otherwise.
    """
    points = np.full((468, 3), 0.5)

    points[133] = [0.45, 0.40, 0.0]
    points[263] = [0.55, 0.40, 0.0]
    points[1] = [0.50, 0.45, 0.0]

    gap = 0.005 if eyes_closed else 0.04
    points[159] = [0.44, 0.40 - gap / 2, 0.0]
    points[145] = [0.44, 0.40 + gap / 2, 0.0]
    points[386] = [0.56, 0.40 - gap / 2, 0.0]
    points[374] = [0.56, 0.40 + gap / 2, 0.0]

    if look_away:
        points[1] = [0.65, 0.45, 0.0]

    return points


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def config():
    """Settings with defaults, independent of the environment"""
    return Settings(
        GRACE_PERIOD_SECONDS=0.0,
        FACE_REFIRE_SECONDS=5.0,
        OBJECT_REFIRE_SECONDS=8.0,
        OBJECT_MIN_CONFIDENCE=0.6,
        RECENT_EVENTS_LIMIT=5,
        SCORE_HISTORY_LIMIT=10,
        _env_file=None
    )


@pytest.fixture
def session_factory(clock, config):
    """Create MonitoringSession instances on the fake clock"""
    from integrity_service.proctor.session import MonitoringSession

    created = []

    def factory(**kwargs):
        kwargs.setdefault("session_id", "test-session")
        kwargs.setdefault("config", config)
        kwargs.setdefault("clock", clock)
        session = MonitoringSession(**kwargs)
        created.append(session)
        return session

    yield factory

    for session in created:
        session.close()
