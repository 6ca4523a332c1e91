from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from datetime import datetime, timezone
from deps import get_redis, get_db
from redis.asyncio import Redis
from pymongo.database import Database
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"], prefix="/api/v1")

async def _check(name: str, ping) -> dict:
    try:
        await ping()
        return {"status": "connected", "error": None}
    except Exception as e:
        logger.warning(f"{name} health check failed: {str(e)}")
        return {"status": "disconnected", "error": "Health check failed"}

@router.get("/health", summary="Health Check", description="Check MongoDB and Redis connectivity")
async def health_check(r: Redis = Depends(get_redis), db: Database = Depends(get_db)):
    services = {
        "mongodb": await _check("MongoDB", lambda: run_in_threadpool(db.command, "ping")),
        "redis": await _check("Redis", r.ping),
    }
    up = [s for s in services.values() if s["status"] == "connected"]
    if len(up) == len(services):
        overall_status = "healthy"
    elif up:
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    response = {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": services,
    }
    if overall_status == "unhealthy":
        raise HTTPException(status_code=503, detail=response)
    return response
