"""
StudyShare Backend — Health Check Routes
==========================================

What:  Liveness message at / and a dependency health check at /health.
Who:   Docker health checks, load balancers, monitoring.

Status levels:
    healthy:   database and storage both operational (HTTP 200)
    degraded:  storage unavailable, database fine (HTTP 200, flag for monitoring)
    unhealthy: database unreachable (HTTP 503, stop routing traffic)
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from studyshare import __version__
from studyshare.schemas.common import HealthResponse, MessageResponse
from studyshare.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/", response_model=MessageResponse, summary="API liveness message")
async def root() -> MessageResponse:
    return MessageResponse(message="StudyShare API is running")


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check():
    """
    Probe the database (SELECT 1) and the storage backend.

    Both checks are cheap enough to run every few seconds.
    """
    db_status = "connected"
    storage_status = "available"
    overall = "healthy"

    try:
        from studyshare.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    if not await storage_service.health_check():
        storage_status = "unavailable"
        overall = "degraded" if overall != "unhealthy" else overall
        logger.warning("Health check: storage backend %s unavailable", storage_service.backend.name)

    response = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=response.model_dump())
    return response
