"""
Integrity API - FastAPI endpoints for integrity monitoring

Endpoints:
- POST /api/integrity/start - Start a monitoring session
- POST /api/integrity/face-signals - Submit one face-tracker frame
- POST /api/integrity/object-signals - Submit one object-classifier pass
- POST /api/integrity/remote-status - Feed a remote status body into reconciliation
- POST /api/integrity/stop - Stop session and get the final summary
- GET /api/integrity/status/{session_id} - Get session status
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..config import settings
from .errors import ConfigurationError, RemoteDeliveryError
from .remote import ReportClient, StatusPoller
from .session import MonitoringSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/integrity", tags=["Integrity"])

# In-memory session storage
_sessions: Dict[str, MonitoringSession] = {}
_pollers: Dict[str, StatusPoller] = {}

# Per-session time base, fixed by the first signal request: "client" or "server"
_time_bases: Dict[str, str] = {}


# ============== Request/Response Models ==============

class StartSessionRequest(BaseModel):
    """Request to start a monitoring session"""
    session_id: Optional[str] = Field(None, description="Remote session ID")
    grace_period: Optional[float] = Field(None, ge=0, description="Seconds before detection activates")
    policies: Optional[Dict[str, Dict[str, Any]]] = Field(None, description="Per-kind policy overrides")
    object_severities: Optional[Dict[str, str]] = Field(None, description="Monitored labels -> severity")
    remote_delivery: bool = Field(True, description="Forward violations to the report API")


class StartSessionResponse(BaseModel):
    """Response after starting a session"""
    session_id: str
    status: str
    seconds_until_active: float
    message: str


class ObjectPrediction(BaseModel):
    """One object-classifier prediction"""
    label: str
    confidence: float
    bbox: Optional[List[float]] = None


class FaceSignalsRequest(BaseModel):
    """Face-tracker output for one frame"""
    session_id: str
    face_count: Optional[int] = None
    is_looking_away: bool = False
    eyes_closed: bool = False
    faces: Optional[List[List[List[float]]]] = Field(None, description="Per-face normalized landmarks")
    timestamp: Optional[float] = Field(None, ge=0, description="Frame timestamp (seconds since session start)")


class ObjectSignalsRequest(BaseModel):
    """Object-classifier output for one pass"""
    session_id: str
    objects: List[ObjectPrediction] = Field(default_factory=list)
    timestamp: Optional[float] = Field(None, ge=0, description="Pass timestamp (seconds since session start)")


class SignalsResponse(BaseModel):
    """Violations produced by one tick"""
    events: List[Dict[str, Any]]
    current_score: int
    detection_active: bool


class RemoteStatusRequest(BaseModel):
    """Remote status body as returned by GET /session/{id}/status"""
    session_id: str
    integrityScore: Any = None


class RemoteStatusResponse(BaseModel):
    current_score: int


class StopSessionRequest(BaseModel):
    """Request to stop a monitoring session"""
    session_id: str


class SessionStatusResponse(BaseModel):
    """Current session status"""
    session_id: str
    is_open: bool
    detection_active: bool
    seconds_until_active: float
    integrity_score: int
    verdict: str
    total_events: int
    event_stats: Dict[str, int]
    recent_events: List[Dict[str, Any]]
    score_history: List[Dict[str, Any]]
    duration_seconds: float


# ============== Helpers ==============

def _get_session(session_id: str, require_open: bool = True) -> MonitoringSession:
    session = _sessions.get(session_id)

    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    if require_open and not session.is_open:
        raise HTTPException(status_code=400, detail="Session is not active")

    return session


def _session_time(session: MonitoringSession, timestamp: Optional[float]) -> Optional[float]:
    """
    Convert a client timestamp (seconds since start) to the session clock.

    A session uses one time base throughout: either every signal request
    carries a timestamp or none does. Mixing them is rejected with 400.
    """
    base = "server" if timestamp is None else "client"
    expected = _time_bases.setdefault(session.id, base)
    if base != expected:
        raise HTTPException(
            status_code=400,
            detail=f"Session uses {expected} timestamps; do not mix with {base} timestamps"
        )

    if timestamp is None:
        return None
    return session.start_instant + timestamp


# ============== API Endpoints ==============

@router.post("/start", response_model=StartSessionResponse)
async def start_session(request: StartSessionRequest):
    """
    Start a new monitoring session.

    Detection activates once the grace period has elapsed.
    """
    if request.session_id and request.session_id in _sessions:
        raise HTTPException(status_code=409, detail="Session already exists")

    sink = None
    if request.remote_delivery:
        sink = ReportClient(settings.REPORT_API_URL, timeout=settings.REMOTE_TIMEOUT_SECONDS)

    try:
        session = MonitoringSession(
            session_id=request.session_id,
            sink=sink,
            policies=request.policies,
            object_severities=request.object_severities,
            grace_period=request.grace_period
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    _sessions[session.id] = session

    if sink is not None:
        poller = StatusPoller(session, sink, interval=settings.STATUS_POLL_SECONDS)
        poller.start()
        _pollers[session.id] = poller

    logger.info(f"Started monitoring session: {session.id}")

    return StartSessionResponse(
        session_id=session.id,
        status="active",
        seconds_until_active=session.seconds_until_active(),
        message="Monitoring session started successfully"
    )


@router.post("/face-signals", response_model=SignalsResponse)
async def submit_face_signals(request: FaceSignalsRequest):
    """Process one face-tracker frame."""
    session = _get_session(request.session_id)

    raw = request.model_dump(exclude={"session_id", "timestamp"}, exclude_none=True)
    now = _session_time(session, request.timestamp)
    events = session.process_face_frame(raw, now=now)

    return SignalsResponse(
        events=[event.to_dict() for event in events],
        current_score=session.score,
        detection_active=session.is_active(now)
    )


@router.post("/object-signals", response_model=SignalsResponse)
async def submit_object_signals(request: ObjectSignalsRequest):
    """Process one object-classifier pass."""
    session = _get_session(request.session_id)

    raw = [prediction.model_dump() for prediction in request.objects]
    now = _session_time(session, request.timestamp)
    events = session.process_object_frame(raw, now=now)

    return SignalsResponse(
        events=[event.to_dict() for event in events],
        current_score=session.score,
        detection_active=session.is_active(now)
    )


@router.post("/remote-status", response_model=RemoteStatusResponse)
async def reconcile_remote_status(request: RemoteStatusRequest):
    """
    Reconcile the local score with a polled remote status.

    Invalid remote scores are ignored and the local score is returned.
    """
    session = _get_session(request.session_id)
    score = session.sync_remote_status({"integrityScore": request.integrityScore})
    return RemoteStatusResponse(current_score=score)


@router.post("/stop", response_model=SessionStatusResponse)
async def stop_session(request: StopSessionRequest):
    """
    Stop a monitoring session and return the final summary.
    """
    session = _get_session(request.session_id, require_open=False)
    result = session.close()
    _sessions.pop(request.session_id, None)
    _time_bases.pop(request.session_id, None)

    poller = _pollers.pop(request.session_id, None)
    if poller is not None:
        poller.stop()
        try:
            await poller.client.end_session(session.id)
        except RemoteDeliveryError as e:
            logger.warning(f"Could not end remote session {session.id}: {e}")

    return SessionStatusResponse(**result)


@router.get("/status/{session_id}", response_model=SessionStatusResponse)
async def get_session_status(session_id: str):
    """
    Get current status of a monitoring session.
    """
    session = _get_session(session_id, require_open=False)
    return SessionStatusResponse(**session.summary())


# ============== Health Check ==============

@router.get("/health")
async def health_check():
    """Health check for the integrity module"""
    return {
        "status": "healthy",
        "active_sessions": len(_sessions),
        "module": "integrity"
    }
