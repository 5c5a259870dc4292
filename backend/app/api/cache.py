# app/api/cache.py
from fastapi import APIRouter, Depends
from app.api.dependencies import require_admin_key, stats_cache

router = APIRouter(
    prefix="/api/institutions/stats/cache",
    tags=["cache"],
    dependencies=[Depends(require_admin_key)],
)

@router.get("")
async def list_cache():
    """List all cached statistics entries"""
    return stats_cache.list_entries()

@router.delete("")
async def clear_cache():
    """Clear all cached statistics"""
    removed = stats_cache.invalidate()
    return {"success": True, "message": "Cache cleared", "removed": removed}

@router.delete("/{institution_id}")
async def invalidate_institution(institution_id: str):
    """Drop one institution's cached statistics"""
    removed = stats_cache.invalidate(institution_id)
    return {"success": True, "institution_id": institution_id, "removed": removed}
