"""Signal normalization"""

from .normalizer import SignalNormalizer, SignalSnapshot, ObjectDetection

__all__ = ["SignalNormalizer", "SignalSnapshot", "ObjectDetection"]
