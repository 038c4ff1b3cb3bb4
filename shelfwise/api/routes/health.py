"""Health Probes - liveness and readiness for the container platform.

Invariants:
    - Liveness never touches the database: 200 whenever the process serves requests
    - Readiness is 503 until db_manager exists and answers SELECT 1
    - Neither probe requires caller identity headers
"""

from fastapi import APIRouter, Response, status

from shelfwise.infrastructure import database

SERVICE_NAME = "shelfwise-api"
SERVICE_VERSION = "1.0.0"

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/")
async def liveness():
    return {"status": "healthy", "service": SERVICE_NAME, "version": SERVICE_VERSION}


@router.get("/ready")
async def readiness(response: Response):
    # Looked up per call: the lifespan (or a test) replaces database.db_manager.
    manager = database.db_manager
    database_ok = manager is not None and await manager.health_check()
    if not database_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "checks": {"database": "unavailable"}}
    return {"status": "ready", "checks": {"database": "healthy"}}
