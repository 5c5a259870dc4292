# app/api/metrics.py
from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", summary="Prometheus scrape endpoint for export metrics")
def export_metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
