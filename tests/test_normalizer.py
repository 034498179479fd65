"""
Tests for the Signal Normalizer
"""

import numpy as np

from integrity_service.proctor.signals.normalizer import (
    ObjectDetection,
    SignalNormalizer,
    SignalSnapshot,
)

from conftest import make_landmarks


class TestFaceFlags:
    """Frames that already carry computed flags"""

    def test_precomputed_flags(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_face({
            "face_count": 1,
            "is_looking_away": True,
            "eyes_closed": False
        })

        assert snapshot == SignalSnapshot(face_count=1, is_looking_away=True, eyes_closed=False)
        assert snapshot.skipped is False

    def test_faces_detected_alias(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_face({"faces_detected": 2})

        assert snapshot.face_count == 2
        assert snapshot.is_looking_away is False

    def test_missing_frame_is_skipped(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_face(None)

        assert snapshot.skipped is True
        assert snapshot.face_count == 0
        assert snapshot.objects == ()

    def test_malformed_values_are_skipped(self):
        normalizer = SignalNormalizer()

        assert normalizer.normalize_face({"face_count": -1}).skipped
        assert normalizer.normalize_face({"face_count": "one"}).skipped
        assert normalizer.normalize_face({"face_count": True}).skipped
        assert normalizer.normalize_face({"face_count": 1, "eyes_closed": "yes"}).skipped
        assert normalizer.normalize_face({}).skipped


class TestFaceLandmarks:
    """Frames carrying raw face-mesh landmarks"""

    def test_attentive_face(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_face({"faces": [make_landmarks()]})

        assert snapshot.face_count == 1
        assert snapshot.is_looking_away is False
        assert snapshot.eyes_closed is False

    def test_looking_away(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_face({"faces": [make_landmarks(look_away=True)]})

        assert snapshot.is_looking_away is True
        assert snapshot.eyes_closed is False

    def test_eyes_closed(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_face({"multi_face_landmarks": [make_landmarks(eyes_closed=True)]})

        assert snapshot.eyes_closed is True

    def test_mapping_landmarks(self):
        normalizer = SignalNormalizer()
        points = [{"x": float(x), "y": float(y), "z": 0.0} for x, y, _ in make_landmarks(eyes_closed=True)]

        snapshot = normalizer.normalize_face({"faces": [points]})

        assert snapshot.eyes_closed is True

    def test_flags_ignored_with_multiple_faces(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_face({
            "faces": [make_landmarks(look_away=True), make_landmarks(eyes_closed=True)]
        })

        assert snapshot.face_count == 2
        assert snapshot.is_looking_away is False
        assert snapshot.eyes_closed is False

    def test_no_faces(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_face({"faces": []})

        assert snapshot.face_count == 0
        assert snapshot.skipped is False

    def test_too_few_landmarks_is_skipped(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_face({"faces": [np.zeros((68, 2))]})

        assert snapshot.skipped is True

    def test_non_finite_landmarks_are_skipped(self):
        normalizer = SignalNormalizer()
        points = make_landmarks()
        points[1] = [np.nan, 0.5, 0.0]

        snapshot = normalizer.normalize_face({"faces": [points]})

        assert snapshot.skipped is True


class TestObjects:
    """Object classifier output"""

    def test_predictions_keep_order(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_objects([
            {"class": "Cell Phone", "score": 0.9, "bbox": [1, 2, 3, 4]},
            {"label": "book", "confidence": 0.7},
        ])

        assert snapshot.objects == (
            ObjectDetection("cell phone", 0.9, (1.0, 2.0, 3.0, 4.0)),
            ObjectDetection("book", 0.7),
        )

    def test_objects_key(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_objects({"objects": [ObjectDetection("cup", 0.8)]})

        assert snapshot.objects[0].label == "cup"

    def test_empty_pass(self):
        normalizer = SignalNormalizer()

        snapshot = normalizer.normalize_objects([])

        assert snapshot.objects == ()
        assert snapshot.skipped is False

    def test_malformed_predictions_are_skipped(self):
        normalizer = SignalNormalizer()

        assert normalizer.normalize_objects(None).skipped
        assert normalizer.normalize_objects("cell phone").skipped
        assert normalizer.normalize_objects([{"class": "book", "score": 1.5}]).skipped
        assert normalizer.normalize_objects([{"class": "book", "score": "high"}]).skipped
        assert normalizer.normalize_objects([{"score": 0.9}]).skipped
        assert normalizer.normalize_objects([42]).skipped
