"""
Health check endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns overall system health status.
    """
    health_status = {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "unknown",
        "oversell_policy": settings.OVERSELL_POLICY,
        "missing_balance_policy": settings.MISSING_BALANCE_POLICY,
    }

    # Check database connection
    try:
        from database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["database"] = "Connected"
    except Exception as e:
        health_status["database"] = f"down: {str(e)}"
        health_status["status"] = "degraded"
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@router.get("/health/live")
async def liveness_check():
    """Liveness probe."""
    return {"alive": True}
