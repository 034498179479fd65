"""
Violation Event Models
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional


class ViolationType(str, Enum):
    """Kinds of violation reported to observers and the remote store"""
    FOCUS_LOST = "focus_lost"
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    OBJECT_DETECTED = "object_detected"
    DROWSINESS = "drowsiness"


class Severity(str, Enum):
    """Violation severity; drives the point deduction"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ViolationEvent:
    """
    A discrete violation derived from a persisting condition.

    Immutable once created. `label` is only set for object detections.
    """
    type: ViolationType
    description: str
    severity: Severity
    timestamp: datetime = field(default_factory=_utcnow)
    label: Optional[str] = None

    def to_payload(self) -> Dict[str, str]:
        """Body sent to the remote event endpoint"""
        return {
            "type": self.type.value,
            "description": self.description,
            "severity": self.severity.value,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_payload()
        data["timestamp"] = self.timestamp.isoformat()
        if self.label is not None:
            data["label"] = self.label
        return data
