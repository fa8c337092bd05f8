import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from bunjang_bridge.dependencies import get_db
from bunjang_bridge.services.job_queue import peek_queue_count

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Database connectivity and queue depth"""
    try:
        await db.execute(text("SELECT 1"))
        queued = await peek_queue_count(db)
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {"status": "unhealthy", "database": "error", "error": str(e)}
    return {"status": "healthy", "database": "connected", "queued_jobs": queued}
