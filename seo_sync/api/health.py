"""
Health check endpoints
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from seo_sync import __version__
from seo_sync.config import get_settings
from seo_sync.models.base import SessionLocal
from seo_sync.utils.helpers import utcnow
from seo_sync.utils.logger import log

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    database = "ok"
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        log.error(f"Health check database error: {e}")
        database = "unavailable"
    finally:
        db.close()

    return JSONResponse(
        status_code=200 if database == "ok" else 503,
        content={
            "status": "healthy" if database == "ok" else "degraded",
            "database": database,
            "environment": settings.environment,
            "timestamp": utcnow().isoformat(),
            "version": __version__,
        },
    )
