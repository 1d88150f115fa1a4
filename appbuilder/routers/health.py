"""Health check router."""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from appbuilder import __version__
from appbuilder.database import get_db

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def root():
    """Liveness string."""
    return "Web-to-App Builder Backend Running!"


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Check API and database health."""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "database": db_status,
        "version": __version__,
    }
