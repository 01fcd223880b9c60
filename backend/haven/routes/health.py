"""
Handcrafted Haven Backend — Health Check Route
==============================================

What:  Health check endpoint for monitoring and load balancer probes.
Why:   Load balancers route away from instances that cannot serve requests.
How:   Checks the two hard dependencies, the database and image storage.
Who:   Docker health checks, load balancers, monitoring.

Status levels:
    - healthy:   database reachable, storage writable (HTTP 200)
    - degraded:  storage not writable; browsing works, uploads fail (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time
import uuid

from fastapi import APIRouter, Response
from sqlalchemy import text

from haven import __version__
from haven.database import engine
from haven.schemas.common import HealthResponse
from haven.services.file_service import file_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


def _storage_writable() -> bool:
    probe = file_service.storage_root / f".health-{uuid.uuid4().hex}"
    try:
        probe.write_bytes(b"ok")
        probe.unlink()
        return True
    except OSError as e:
        logger.warning("Health check: storage not writable: %s", e)
        return False


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Reports database connectivity and whether uploaded images can be written.",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    storage_status = "writable"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", e)

    if not _storage_writable():
        storage_status = "unavailable"
        if overall == "healthy":
            overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
