# app/api/dependencies.py
from fastapi import Header, HTTPException
from app.services.cache import create_stats_cache
from app.services.downloads import create_download_store
from app.config import settings

# Initialize services
stats_cache = create_stats_cache()

download_store = create_download_store()

def require_admin_key(
    x_admin_key: str = Header(None, description="Admin API key for authentication")
):
    """Guard for cache management endpoints (X-Admin-Key header)."""
    if x_admin_key != settings.admin_api_key:
        raise HTTPException(
            status_code=403,
            detail="Unauthorized - Invalid or missing admin API key"
        )
