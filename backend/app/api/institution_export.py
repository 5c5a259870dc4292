# app/api/institution_export.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException, Query, Response

from app.api.dependencies import download_store, stats_cache
from app.models import ExportRequest, ExportSummary, PublishedDownload, SummaryRequest, ValidationResponse
from app.services.downloads import PublishingSink
from app.services.exporters import (
    ExportError,
    ExportErrorCode,
    export_institutions,
    get_export_summary,
    validate_export_options,
)
from app.services.exporters.validator import SUPPORTED_FORMATS
from app.utils.file_utils import content_disposition
from app.utils.id_generator import generate_short_id
from app.utils.logging import logger
from app.utils.metrics import EXPORT_REQUESTS

router = APIRouter(prefix="/api/institutions/export", tags=["export"])

ERROR_STATUS = {
    ExportErrorCode.DATA_ERROR: 400,
    ExportErrorCode.PERMISSION_ERROR: 403,
    ExportErrorCode.DOWNLOAD_ERROR: 502,
    ExportErrorCode.GENERATION_ERROR: 500,
}


def _http_error(e: ExportError) -> HTTPException:
    return HTTPException(status_code=ERROR_STATUS[e.code], detail=e.to_dict())


def _merge_stats(req: ExportRequest) -> Optional[Dict[str, Any]]:
    """Request stats win; gaps are filled from the stats cache, fresh stats are cached."""
    if not req.options.include_stats:
        return req.stats
    received = dict(req.stats or {})
    if received:
        stats_cache.set_many(received)
    missing = [inst.id for inst in req.institutions if inst.id not in received]
    cached = stats_cache.get_many(missing)
    if not received and not cached:
        return None
    return {**cached, **received}


@router.post("")
async def export(
    req: ExportRequest,
    delivery: str = Query("stream", pattern="^(stream|url)$", description="stream | url (transient download URL)"),
):
    """Generate an institution export and stream it or publish it under a transient URL."""
    export_id = generate_short_id()
    fmt_label = req.options.format if req.options.format in SUPPORTED_FORMATS else "unknown"
    EXPORT_REQUESTS.labels(format=fmt_label, delivery=delivery).inc()
    logger.info("Export requested", extra={
        "export_id": export_id,
        "export_format": req.options.format,
        "records": len(req.institutions),
        "delivery": delivery,
    })

    sink = PublishingSink(download_store) if delivery == "url" else None
    try:
        artifact = await export_institutions(req.institutions, req.options, _merge_stats(req), sink=sink)
    except ExportError as e:
        logger.warning("Export rejected", extra={"export_id": export_id, "code": e.code.value})
        raise _http_error(e)
    except Exception:
        logger.exception("Export failed", extra={"export_id": export_id})
        raise HTTPException(status_code=500, detail={
            "code": ExportErrorCode.GENERATION_ERROR.value,
            "message": "Error inesperado durante la exportación",
        })

    if sink is not None:
        return PublishedDownload(
            filename=artifact.filename,
            content_type=artifact.content_type,
            size_bytes=artifact.size_bytes,
            url=sink.url,
            expires_in_seconds=download_store.release_after,
        )

    return Response(
        content=artifact.content,
        media_type=artifact.content_type,
        headers={"Content-Disposition": content_disposition(artifact.filename)},
    )


@router.post("/validate", response_model=ValidationResponse)
async def validate(options: Dict[str, Any] = Body(...)):
    """Check export options without generating anything."""
    errors = validate_export_options(options)
    return ValidationResponse(valid=not errors, errors=errors)


@router.post("/summary", response_model=ExportSummary)
async def summary(req: SummaryRequest):
    """Preview what an export would contain."""
    try:
        return get_export_summary(req.institutions, req.options)
    except ExportError as e:
        raise _http_error(e)


@router.get("/downloads/{token}")
async def download(token: str):
    """Serve a published artifact; it is released shortly after the first request."""
    artifact = download_store.start_download(token)
    if artifact is None:
        raise HTTPException(status_code=404, detail="Download not found or expired")
    return Response(
        content=artifact.content,
        media_type=artifact.content_type,
        headers={"Content-Disposition": content_disposition(artifact.filename)},
    )
