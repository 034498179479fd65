"""
Integrity Service Configuration Settings

All timing values are in seconds.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration for the integrity monitoring service."""

    # API Settings
    APP_NAME: str = "Integrity Monitoring Service"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Remote report/persistence API
    REPORT_API_URL: str = "http://localhost:5000/api"
    REMOTE_TIMEOUT_SECONDS: float = 2.0
    STATUS_POLL_SECONDS: float = 5.0
    SINK_WORKERS: int = 2

    # Detection timing
    GRACE_PERIOD_SECONDS: float = 5.0
    FACE_REFIRE_SECONDS: float = 5.0
    OBJECT_REFIRE_SECONDS: float = 8.0
    OBJECT_MIN_CONFIDENCE: float = 0.6

    # Local display buffers
    RECENT_EVENTS_LIMIT: int = 5
    SCORE_HISTORY_LIMIT: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
