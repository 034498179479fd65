"""
Integrity Monitoring Module

Converts perceptual signals into rate-limited violation events:
- Face absence
- Multiple faces
- Looking away from the screen
- Eyes closed (drowsiness)
- Suspicious objects

Maintains an Integrity Score (0-100) for each session.
"""

from .session import MonitoringSession
from .api import router

__all__ = ["MonitoringSession", "router"]
