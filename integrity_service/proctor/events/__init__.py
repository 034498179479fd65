"""Violation events and delivery"""

from .models import ViolationEvent, ViolationType, Severity
from .emitter import EventEmitter

__all__ = ["ViolationEvent", "ViolationType", "Severity", "EventEmitter"]
