"""
Health check and status endpoints
"""
from fastapi import APIRouter, Depends
from datetime import datetime

from app.config import get_settings
from app.utils.response_cache import ResponseCache, get_response_cache
from app import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status(cache: ResponseCache = Depends(get_response_cache)):
    """Get system status"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "features": {
            "llm_insights": bool(settings.enable_llm_insights and settings.anthropic_api_key),
            "llm_model": settings.llm_model,
            "llm_timeout_seconds": settings.llm_timeout_seconds,
        },
        "cache_entries": len(cache),
        "timestamp": datetime.utcnow().isoformat()
    }
