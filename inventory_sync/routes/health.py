from fastapi import APIRouter
from sqlalchemy import text

from inventory_sync import __version__
from inventory_sync.database import get_session
from inventory_sync.scheduler import get_scheduler_status

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": "Zoho Inventory Sync", "version": __version__}


@router.get("/health/db")
async def database_health():
    """Check database connectivity"""
    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": "error",
            "error": str(e)
        }


@router.get("/health/scheduler")
async def scheduler_health():
    return await get_scheduler_status()
