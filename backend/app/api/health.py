# app/api/health.py
from datetime import datetime
from fastapi import APIRouter
from app.config import settings
from app.api.dependencies import download_store, stats_cache

router = APIRouter()

@router.get("/api/health")
async def health_check():
    """Detailed health check"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "environment": settings.environment,
        "downloads_enabled": download_store.enabled,
        "pending_downloads": len(download_store),
        "stats_cache_entries": len(stats_cache),
    }
