"""Institution export orchestration.

Entry point for every export: validate options, project records, dispatch to the
renderer for the requested format and normalise failures so that callers only
ever see a classified ExportError (or an ExportResult carrying one).

Usage:
from app.services.exporters import export_institutions
artifact = await export_institutions(records, {"format": "excel", "includeStats": True}, stats)
content, filename, content_type = artifact
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence, Union

from app.config import settings
from app.models import ExportOptions, ExportSummary
from app.utils.logging import logger
from app.utils.metrics import (
    EXPORT_BYTES_TOTAL,
    EXPORT_DEGRADED_ROWS,
    EXPORT_FAILURES,
    EXPORT_GENERATION_SECONDS,
)
from .base_exporter import MSG_EMPTY, BaseExporter, ExportConfig
from .errors import (
    ExportArtifact,
    ExportError,
    ExportErrorCode,
    ExportResult,
    data_error,
    generation_error,
)
from .pdf_exporter import PdfExportConfig, PdfExporter
from .projector import build_report_metadata, describe_date_range, project_records
from .spreadsheet_exporter import SpreadsheetExporter
from .validator import MSG_OPTIONS_INVALID, coerce_options, validate_export_options

OptionsInput = Union[ExportOptions, Mapping[str, Any]]

FORMAT_LABELS = {"excel": "Excel (.xlsx)", "pdf": "PDF (.pdf)"}


class DownloadSink(Protocol):
    """Anything that can take a finished artifact and start its download."""

    def deliver(self, artifact: ExportArtifact) -> Any:
        ...


def default_spreadsheet_config() -> ExportConfig:
    return ExportConfig(
        max_rows=settings.export_excel_max_rows,
        max_file_size_mb=settings.export_excel_max_file_size_mb,
        timeout_seconds=settings.export_excel_timeout_seconds,
    )


def default_pdf_config() -> PdfExportConfig:
    return PdfExportConfig(
        max_rows=settings.export_pdf_max_rows,
        max_file_size_mb=settings.export_pdf_max_file_size_mb,
        timeout_seconds=settings.export_pdf_timeout_seconds,
        page_format=settings.export_pdf_page_format,
        orientation=settings.export_pdf_orientation,
        include_header=settings.export_pdf_include_header,
        include_footer=settings.export_pdf_include_footer,
    )


def _exporter_for(
    export_format: Optional[str],
    spreadsheet_config: Optional[ExportConfig],
    pdf_config: Optional[PdfExportConfig],
) -> BaseExporter:
    if export_format == "excel":
        return SpreadsheetExporter(spreadsheet_config or default_spreadsheet_config())
    if export_format == "pdf":
        return PdfExporter(pdf_config or default_pdf_config())
    raise data_error(f"Formato de exportación no soportado: {export_format}")


def _deliver(sink: DownloadSink, artifact: ExportArtifact) -> None:
    try:
        sink.deliver(artifact)
    except ExportError:
        raise
    except PermissionError as e:
        raise ExportError(
            ExportErrorCode.PERMISSION_ERROR,
            "El entorno no permite la descarga de archivos",
            cause=e,
        )
    except Exception as e:
        raise ExportError(
            ExportErrorCode.DOWNLOAD_ERROR,
            "Error al iniciar la descarga del archivo",
            details={"filename": artifact.filename},
            cause=e,
        )


async def export_institutions(
    records: Sequence[Any],
    options: OptionsInput,
    stats: Optional[Mapping[str, Any]] = None,
    *,
    spreadsheet_config: Optional[ExportConfig] = None,
    pdf_config: Optional[PdfExportConfig] = None,
    sink: Optional[DownloadSink] = None,
    now: Optional[datetime] = None,
) -> ExportArtifact:
    """Build the export artifact and, when a sink is given, hand it over for download.

    Raises:
        ExportError: always classified; unexpected failures become GENERATION_ERROR
    """
    errors = validate_export_options(options, now=now)
    if errors:
        raise data_error("; ".join(errors), details={"errors": errors})

    opts = coerce_options(options)
    start = time.perf_counter()
    try:
        if not records:
            raise data_error(MSG_EMPTY)
        exporter = _exporter_for(opts.format, spreadsheet_config, pdf_config)
        projection = project_records(records, stats, opts.include_stats)
        if projection.row_errors:
            EXPORT_DEGRADED_ROWS.inc(len(projection.row_errors))
        metadata = build_report_metadata(records, opts, now=now)
        artifact = await exporter.render(projection, metadata, opts)
    except ExportError as e:
        EXPORT_FAILURES.labels(code=e.code.value).inc()
        logger.warning("Institution export failed", extra={
            "export_format": opts.format,
            "code": e.code.value,
            "error": e.message,
        })
        raise
    except Exception as e:
        EXPORT_FAILURES.labels(code=ExportErrorCode.GENERATION_ERROR.value).inc()
        logger.exception("Unexpected error during institution export", extra={"export_format": opts.format})
        raise generation_error(
            "Error inesperado durante la exportación",
            details={"error": str(e), "type": type(e).__name__},
            cause=e,
        )

    EXPORT_GENERATION_SECONDS.labels(format=opts.format).observe(time.perf_counter() - start)
    EXPORT_BYTES_TOTAL.inc(artifact.size_bytes)
    logger.info("Institution export generated", extra={
        "export_format": opts.format,
        "export_filename": artifact.filename,
        "records": len(records),
        "degraded_rows": len(projection.row_errors),
    })

    if sink is not None:
        try:
            _deliver(sink, artifact)
        except ExportError as e:
            EXPORT_FAILURES.labels(code=e.code.value).inc()
            raise
    return artifact


async def try_export_institutions(
    records: Sequence[Any],
    options: OptionsInput,
    stats: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> ExportResult:
    """Same as export_institutions, returning the outcome instead of raising it."""
    try:
        return ExportResult.ok(await export_institutions(records, options, stats, **kwargs))
    except ExportError as e:
        return ExportResult.fail(e)


def estimate_file_size(institution_count: int, options: OptionsInput) -> str:
    """Rough size preview: ~200 B per record, +50 B with stats, doubled for PDF."""
    opts = coerce_options(options)
    base_size = institution_count * 200
    if opts.include_stats:
        base_size += institution_count * 50
    if opts.format == "pdf":
        base_size *= 2

    if base_size < 1024:
        return f"{base_size} B"
    if base_size < 1024 * 1024:
        return f"{int(base_size / 1024 + 0.5)} KB"
    return f"{int(base_size / (1024 * 1024) + 0.5)} MB"


def get_export_summary(records: Sequence[Any], options: OptionsInput) -> ExportSummary:
    """Pure preview of what an export would produce; no rendering, no I/O."""
    try:
        opts = coerce_options(options)
    except Exception as e:
        raise data_error(MSG_OPTIONS_INVALID, details={"error": str(e)})

    return ExportSummary(
        total_institutions=len(records),
        format=FORMAT_LABELS.get(opts.format or "", opts.format or ""),
        include_stats=opts.include_stats,
        date_range=describe_date_range(opts),
        estimated_size=estimate_file_size(len(records), opts),
    )
