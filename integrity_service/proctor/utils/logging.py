"""
Integrity Logger - Logs monitoring events, violations and sync results
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def log_integrity_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log an integrity monitoring event.

    Args:
        session_id: Monitoring session ID
        event_type: Type of event (session_start, violation, score_sync, etc.)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[INTEGRITY] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_start(session_id: str, grace_period: float):
    """Log session start event"""
    log_integrity_event(
        session_id=session_id,
        event_type="session_start",
        details={"grace_period": grace_period}
    )


def log_session_end(session_id: str, integrity_score: int, total_events: int):
    """Log session end event"""
    log_integrity_event(
        session_id=session_id,
        event_type="session_end",
        details={
            "integrity_score": integrity_score,
            "total_events": total_events
        }
    )


def log_violation(session_id: str, violation_type: str, severity: str, score: int):
    """Log an emitted violation and the resulting local score"""
    log_integrity_event(
        session_id=session_id,
        event_type="violation",
        details={
            "type": violation_type,
            "severity": severity,
            "score": score
        },
        level="warning"
    )


def log_skipped_tick(pipeline: str, reason: str):
    """Log a frame that could not be normalized"""
    logger.debug(f"[INTEGRITY] skipped tick pipeline={pipeline} reason={reason}")


def log_delivery_failure(session_id: str, violation_type: str, error: Exception):
    """Log a remote delivery that was dropped"""
    log_integrity_event(
        session_id=session_id,
        event_type="delivery_failed",
        details={
            "type": violation_type,
            "error": type(error).__name__,
            "message": error
        },
        level="warning"
    )


def log_score_sync(session_id: str, local_score: int, remote_score: int, adopted: bool):
    """Log a reconciliation against the remote score"""
    log_integrity_event(
        session_id=session_id,
        event_type="score_sync",
        details={
            "local": local_score,
            "remote": remote_score,
            "adopted": adopted
        },
        level="info" if adopted else "debug"
    )
