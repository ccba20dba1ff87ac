"""
Health check endpoints
"""

from typing import Any
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from salon_waitlist.core.database import get_session
from salon_waitlist.config import settings
from salon_waitlist.schemas.response import HealthResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/live", response_model=HealthResponse)
async def liveness() -> Any:
    """
    Kubernetes liveness probe
    """
    return HealthResponse(status="alive", version=settings.APP_VERSION)


@router.get("/ready", response_model=HealthResponse)
async def readiness(db: AsyncSession = Depends(get_session)) -> Any:
    """
    Kubernetes readiness probe - checks the database
    """
    checks = {"database": False, "api": True}

    try:
        result = await db.execute(text("SELECT 1"))
        checks["database"] = result.scalar() == 1
    except SQLAlchemyError as e:
        logger.error(f"Readiness database check failed: {e}")

    health = HealthResponse(
        status="ready" if all(checks.values()) else "not ready",
        checks=checks,
        version=settings.APP_VERSION,
    )
    if not all(checks.values()):
        return JSONResponse(status_code=503, content=health.model_dump(mode="json"))
    return health
