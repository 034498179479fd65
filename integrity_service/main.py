"""
Integrity Monitoring Service - FastAPI Application
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .proctor.api import router as integrity_router
from .utils.logging_config import setup_logging

setup_logging(level=settings.LOG_LEVEL)

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Signal-to-violation engine and integrity score ledger",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with timing."""
    start = time.time()
    response = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)

    if request.url.path not in ["/health", "/favicon.ico"]:
        logger.debug(f"{request.method} {request.url.path} -> {response.status_code} in {duration_ms}ms")

    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(integrity_router)


@app.get("/health")
async def health():
    return {"status": "healthy", "service": settings.APP_NAME}
