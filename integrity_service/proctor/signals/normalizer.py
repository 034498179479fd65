"""
Signal Normalizer - Adapts raw front-end output into per-tick signal snapshots

Two front-ends feed the engine:
- a face-landmark tracker (about 30 frames/s) reporting how many faces it
  sees, optionally with normalized face-mesh landmarks for each face
- an object classifier (about one pass every 3 s) reporting labelled boxes

A frame that cannot be read produces the default snapshot with
`skipped=True` instead of raising.
"""

import logging
import numbers
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple

import numpy as np

from ..utils.logging import log_skipped_tick

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectDetection:
    """One labelled detection from the object classifier"""
    label: str
    confidence: float
    bbox: Optional[Tuple[float, float, float, float]] = None


@dataclass(frozen=True)
class SignalSnapshot:
    """Normalized signals for a single processing tick"""
    face_count: int = 0
    is_looking_away: bool = False
    eyes_closed: bool = False
    objects: Tuple[ObjectDetection, ...] = ()
    skipped: bool = False


SKIPPED_SNAPSHOT = SignalSnapshot(skipped=True)


class MalformedFrameError(ValueError):
    """Internal signal that a raw frame could not be normalized"""


class SignalNormalizer:
    """
    Converts raw perceptual output into SignalSnapshot instances.

    Face-mesh landmark indices (MediaPipe 468-point topology):
    - nose tip: 1
    - left eye inner corner: 133, right eye outer corner: 263
    - left eye lids: 159 (top) / 145 (bottom)
    - right eye lids: 386 (top) / 374 (bottom)
    """

    NOSE_TIP = 1
    LEFT_EYE_INNER = 133
    RIGHT_EYE_OUTER = 263
    LEFT_EYE_TOP = 159
    LEFT_EYE_BOTTOM = 145
    RIGHT_EYE_TOP = 386
    RIGHT_EYE_BOTTOM = 374

    MIN_LANDMARKS = 388

    # Mean lid gap below which eyes count as closed
    DEFAULT_EYE_CLOSED_THRESHOLD = 0.02

    # Nose offset from the eye-line centre beyond which the head is turned away
    DEFAULT_LOOK_AWAY_THRESHOLD = 0.1

    def __init__(
        self,
        eye_closed_threshold: float = DEFAULT_EYE_CLOSED_THRESHOLD,
        look_away_threshold: float = DEFAULT_LOOK_AWAY_THRESHOLD
    ):
        self.eye_closed_threshold = eye_closed_threshold
        self.look_away_threshold = look_away_threshold

    # ------------------------------------------------------------------
    # Face pipeline
    # ------------------------------------------------------------------

    def normalize_face(self, raw: Any) -> SignalSnapshot:
        """
        Normalize one face-tracker frame.

        Args:
            raw: Mapping with either precomputed flags
                 (`face_count`, `is_looking_away`, `eyes_closed`) or a list of
                 per-face landmarks under `faces` / `multi_face_landmarks`

        Returns:
            SignalSnapshot (skipped=True when the frame is malformed)
        """
        try:
            return self._normalize_face(raw)
        except MalformedFrameError as e:
            log_skipped_tick("face", str(e))
            return SKIPPED_SNAPSHOT

    def _normalize_face(self, raw: Any) -> SignalSnapshot:
        if not isinstance(raw, Mapping):
            raise MalformedFrameError(f"expected mapping, got {type(raw).__name__}")

        faces = raw.get("faces", raw.get("multi_face_landmarks"))
        if faces is not None:
            return self._from_landmarks(faces)

        count = raw.get("face_count", raw.get("faces_detected"))
        face_count = self._as_count(count)

        return SignalSnapshot(
            face_count=face_count,
            is_looking_away=self._as_flag(raw.get("is_looking_away", False)),
            eyes_closed=self._as_flag(raw.get("eyes_closed", False))
        )

    def _from_landmarks(self, faces: Any) -> SignalSnapshot:
        if isinstance(faces, (str, bytes)) or not isinstance(faces, Iterable):
            raise MalformedFrameError("faces must be a sequence of landmark sets")

        faces = list(faces)
        face_count = len(faces)

        # Gaze and eye state are only meaningful for a single candidate
        if face_count != 1:
            return SignalSnapshot(face_count=face_count)

        is_looking_away, eyes_closed = self.analyze_landmarks(faces[0])
        return SignalSnapshot(
            face_count=1,
            is_looking_away=is_looking_away,
            eyes_closed=eyes_closed
        )

    def analyze_landmarks(self, landmarks: Any) -> Tuple[bool, bool]:
        """
        Derive looking-away and eyes-closed flags from one face's landmarks.

        Args:
            landmarks: Sequence of normalized (x, y[, z]) points, or mappings
                       with `x` and `y` keys

        Returns:
            (is_looking_away, eyes_closed)
        """
        points = self._as_points(landmarks)

        left_gap = abs(points[self.LEFT_EYE_TOP, 1] - points[self.LEFT_EYE_BOTTOM, 1])
        right_gap = abs(points[self.RIGHT_EYE_TOP, 1] - points[self.RIGHT_EYE_BOTTOM, 1])
        eye_openness = (left_gap + right_gap) / 2
        eyes_closed = bool(eye_openness < self.eye_closed_threshold)

        eye_centre = (points[self.LEFT_EYE_INNER] + points[self.RIGHT_EYE_OUTER]) / 2
        offset = np.abs(points[self.NOSE_TIP] - eye_centre)
        is_looking_away = bool(
            offset[0] > self.look_away_threshold or offset[1] > self.look_away_threshold
        )

        return is_looking_away, eyes_closed

    def _as_points(self, landmarks: Any) -> np.ndarray:
        try:
            if len(landmarks) and isinstance(landmarks[0], Mapping):
                rows = [(p["x"], p["y"]) for p in landmarks]
            else:
                rows = [tuple(p)[:2] for p in landmarks]
            points = np.asarray(rows, dtype=float)
        except (TypeError, KeyError, ValueError) as e:
            raise MalformedFrameError(f"unreadable landmarks: {e}") from e

        if points.ndim != 2 or points.shape[0] < self.MIN_LANDMARKS or points.shape[1] < 2:
            raise MalformedFrameError(f"expected >= {self.MIN_LANDMARKS} landmarks")
        if not np.all(np.isfinite(points)):
            raise MalformedFrameError("non-finite landmark coordinates")

        return points

    # ------------------------------------------------------------------
    # Object pipeline
    # ------------------------------------------------------------------

    def normalize_objects(self, raw: Any) -> SignalSnapshot:
        """
        Normalize one object-classifier pass.

        Args:
            raw: Sequence of predictions; each an ObjectDetection or a mapping
                 with `label`/`class`, `confidence`/`score` and optional `bbox`.
                 A mapping with an `objects` key is also accepted.

        Returns:
            SignalSnapshot carrying the detections in input order
        """
        try:
            return SignalSnapshot(objects=self._normalize_objects(raw))
        except MalformedFrameError as e:
            log_skipped_tick("object", str(e))
            return SKIPPED_SNAPSHOT

    def _normalize_objects(self, raw: Any) -> Tuple[ObjectDetection, ...]:
        if isinstance(raw, Mapping):
            raw = raw.get("objects")
        if raw is None or isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
            raise MalformedFrameError("expected a sequence of predictions")

        return tuple(self._as_detection(item) for item in raw)

    def _as_detection(self, item: Any) -> ObjectDetection:
        if isinstance(item, ObjectDetection):
            label, confidence, bbox = item.label, item.confidence, item.bbox
        elif isinstance(item, Mapping):
            label = item.get("label", item.get("class"))
            confidence = item.get("confidence", item.get("score"))
            bbox = item.get("bbox")
        else:
            raise MalformedFrameError(f"unreadable prediction {item!r}")

        if not isinstance(label, str) or not label.strip():
            raise MalformedFrameError("prediction without a label")
        if isinstance(confidence, bool) or not isinstance(confidence, numbers.Real):
            raise MalformedFrameError(f"non-numeric confidence for {label}")
        if not 0.0 <= confidence <= 1.0:
            raise MalformedFrameError(f"confidence {confidence} out of range for {label}")

        if bbox is not None:
            try:
                bbox = tuple(float(v) for v in bbox)
            except (TypeError, ValueError):
                bbox = None

        return ObjectDetection(
            label=label.strip().lower(),
            confidence=float(confidence),
            bbox=bbox
        )

    # ------------------------------------------------------------------

    @staticmethod
    def _as_count(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise MalformedFrameError(f"invalid face count {value!r}")
        if value < 0:
            raise MalformedFrameError(f"negative face count {value}")
        return int(value)

    @staticmethod
    def _as_flag(value: Any) -> bool:
        if isinstance(value, (bool, np.bool_)):
            return bool(value)
        raise MalformedFrameError(f"invalid flag {value!r}")
