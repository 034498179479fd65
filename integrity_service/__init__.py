"""
Integrity Monitoring Service

Turns face, gaze, eye-closure and object signals into rate-limited
violation events and keeps a per-session integrity score.
"""

__version__ = "1.0.0"
