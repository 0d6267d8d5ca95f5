"""Health check endpoint."""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from edify.database import engine
from edify.config import get_settings
from edify.version import APP_VERSION
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "Database connection failed"})

    return {"status": "ok", "database": "connected"}


@router.get("/status")
async def service_status():
    """Version and safety configuration for display on the frontend."""
    settings = get_settings()
    return {
        "version": APP_VERSION,
        "environment": settings.environment,
        "generation_model": settings.ai_generation_model,
        "classifier_model": settings.ai_classifier_model,
        "content_block_min_severity": settings.content_block_min_severity,
    }
