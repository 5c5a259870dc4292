from fastapi import APIRouter
from app.api import health, institution_export, cache, metrics


api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(institution_export.router)
api_router.include_router(cache.router)
api_router.include_router(metrics.router)  # /metrics for Prometheus

__all__ = ["api_router"]
