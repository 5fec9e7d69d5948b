"""Liveness and readiness probes (mounted without the API prefix)"""

import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.config import settings
from app.db import Database, get_database

router = APIRouter(prefix="/health", tags=["Health"])

_started_at = time.time()


@router.get("")
async def health(db: Database = Depends(get_database)):
    db_ok = await db.ping()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": settings.app_name,
        "environment": settings.environment,
        "uptime_seconds": round(time.time() - _started_at, 1),
        "database": "connected" if db_ok else "unavailable",
    }


@router.get("/live")
async def live():
    return {"status": "alive"}


@router.get("/ready")
async def ready(db: Database = Depends(get_database)):
    if not await db.ping():
        return JSONResponse(status_code=503, content={"status": "not ready", "database": "unavailable"})
    return {"status": "ready"}
