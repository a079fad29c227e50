"""
Health check endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from slabline.db import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """Returns 200 while the process is serving requests."""
    return {"status": "healthy", "service": "slabline"}


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """
    Readiness check with database connectivity.

    Returns 503 when the database cannot be reached, so the load balancer
    stops routing report requests here.
    """
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Readiness check failed: {e}")
        await db.rollback()
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "database": "unreachable"},
        )

    return {"status": "ready", "database": "connected"}


@router.get("/live")
async def liveness_check():
    """Liveness probe for the container orchestrator."""
    return {"status": "alive"}
