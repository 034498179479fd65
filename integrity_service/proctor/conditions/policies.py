"""
Condition Policies - Per-kind timing and severity configuration
"""

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, FrozenSet, Mapping, Optional

from ..errors import ConfigurationError
from ..events.models import Severity, ViolationType


@dataclass(frozen=True)
class ConditionPolicy:
    """
    Timing policy for one monitored condition kind.

    Attributes:
        kind: Violation type produced when the condition fires
        threshold: Seconds the condition must persist before qualifying
                   (0 means every tick with the condition true qualifies)
        severity: Severity of the produced violation
        refire_interval: Minimum seconds between two emitted violations
        continuous: Re-arm on firing (True) or stay fired until the
                    condition clears (False)
    """
    kind: ViolationType
    threshold: float
    severity: Severity
    refire_interval: float
    continuous: bool = True


DEFAULT_POLICIES: Dict[ViolationType, ConditionPolicy] = {
    ViolationType.NO_FACE: ConditionPolicy(
        ViolationType.NO_FACE, threshold=3.0, severity=Severity.HIGH, refire_interval=5.0
    ),
    ViolationType.MULTIPLE_FACES: ConditionPolicy(
        ViolationType.MULTIPLE_FACES, threshold=0.0, severity=Severity.HIGH, refire_interval=5.0
    ),
    ViolationType.FOCUS_LOST: ConditionPolicy(
        ViolationType.FOCUS_LOST, threshold=2.0, severity=Severity.MEDIUM, refire_interval=5.0
    ),
    ViolationType.DROWSINESS: ConditionPolicy(
        ViolationType.DROWSINESS, threshold=3.0, severity=Severity.MEDIUM, refire_interval=5.0
    ),
    # Severity of object violations comes from the label table below
    ViolationType.OBJECT_DETECTED: ConditionPolicy(
        ViolationType.OBJECT_DETECTED, threshold=0.0, severity=Severity.LOW, refire_interval=8.0
    ),
}

FACE_KINDS = (
    ViolationType.NO_FACE,
    ViolationType.MULTIPLE_FACES,
    ViolationType.FOCUS_LOST,
    ViolationType.DROWSINESS,
)

# COCO labels treated as suspicious. Several low-risk entries are common
# misclassifications of phones, tablets and notebooks.
OBJECT_SEVERITIES: Dict[str, Severity] = {
    "cell phone": Severity.HIGH,
    "laptop": Severity.HIGH,
    "keyboard": Severity.HIGH,
    "mouse": Severity.HIGH,
    "tablet": Severity.HIGH,
    "tv": Severity.HIGH,
    "microwave": Severity.HIGH,
    "book": Severity.MEDIUM,
    "remote": Severity.MEDIUM,
    "scissors": Severity.MEDIUM,
    "clock": Severity.MEDIUM,
    "teddy bear": Severity.LOW,
    "vase": Severity.LOW,
    "bottle": Severity.LOW,
    "cup": Severity.LOW,
    "toaster": Severity.LOW,
}

MONITORED_OBJECTS: FrozenSet[str] = frozenset(OBJECT_SEVERITIES)

_POLICY_FIELDS = ("threshold", "severity", "refire_interval", "continuous")


def parse_severity(value: Any) -> Severity:
    """Convert a severity name to Severity, failing loudly on unknown names"""
    if isinstance(value, Severity):
        return value
    try:
        return Severity(str(value).lower())
    except ValueError:
        raise ConfigurationError(f"Unknown severity: {value!r}") from None


def parse_kind(value: Any) -> ViolationType:
    """Convert a violation kind name to ViolationType"""
    if isinstance(value, ViolationType):
        return value
    try:
        return ViolationType(str(value).lower())
    except ValueError:
        raise ConfigurationError(f"Unknown violation kind: {value!r}") from None


def build_policies(
    overrides: Optional[Mapping[Any, Mapping[str, Any]]] = None,
    face_refire: Optional[float] = None,
    object_refire: Optional[float] = None
) -> Dict[ViolationType, ConditionPolicy]:
    """
    Build the policy table from defaults plus overrides.

    Args:
        overrides: Mapping of kind name -> {threshold, severity,
                   refire_interval, continuous}
        face_refire: Refire interval applied to every face-derived kind
        object_refire: Refire interval applied per object label

    Returns:
        Dict of ViolationType -> ConditionPolicy

    Raises:
        ConfigurationError: unknown kind, severity or field, non-boolean
            continuous flag, or negative or non-finite timing
    """
    policies = dict(DEFAULT_POLICIES)

    if face_refire is not None:
        for kind in FACE_KINDS:
            policies[kind] = replace(policies[kind], refire_interval=float(face_refire))
    if object_refire is not None:
        kind = ViolationType.OBJECT_DETECTED
        policies[kind] = replace(policies[kind], refire_interval=float(object_refire))

    for name, values in (overrides or {}).items():
        kind = parse_kind(name)
        unknown = set(values) - set(_POLICY_FIELDS)
        if unknown:
            raise ConfigurationError(f"Unknown policy fields for {kind.value}: {sorted(unknown)}")

        changes = dict(values)
        if "severity" in changes:
            changes["severity"] = parse_severity(changes["severity"])
        for timing in ("threshold", "refire_interval"):
            if timing in changes:
                try:
                    changes[timing] = float(changes[timing])
                except (TypeError, ValueError):
                    raise ConfigurationError(
                        f"Invalid {timing} for {kind.value}: {changes[timing]!r}"
                    ) from None
        if "continuous" in changes and not isinstance(changes["continuous"], bool):
            raise ConfigurationError(
                f"Invalid continuous flag for {kind.value}: {changes['continuous']!r}"
            )

        policies[kind] = replace(policies[kind], **changes)

    for policy in policies.values():
        for timing in (policy.threshold, policy.refire_interval):
            if not math.isfinite(timing) or timing < 0:
                raise ConfigurationError(
                    f"Timings for {policy.kind.value} must be finite and non-negative, got {timing}"
                )

    return policies


def object_severity(label: str, table: Optional[Mapping[str, Severity]] = None) -> Severity:
    """Severity for a monitored object label (low when unlisted)"""
    table = OBJECT_SEVERITIES if table is None else table
    return table.get(label.lower(), Severity.LOW)
