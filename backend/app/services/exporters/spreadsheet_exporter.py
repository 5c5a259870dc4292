"""Spreadsheet exporter: institutions -> XLSX workbook, degrading to plain CSV.

Two strategies behind one ``render`` call:
- primary: pandas + XlsxWriter workbook with an ``Instituciones`` sheet and, when
  statistics are requested, an ``Estadísticas`` sheet with ratios and totals
- fallback: RFC4180-style CSV text (csv.writer, QUOTE_MINIMAL) of the same rows, used only when the workbook
  build raises something that is not already a classified ExportError
"""

from __future__ import annotations

import csv
import io
import time
from typing import Any, Iterable, List, Optional

import pandas as pd

from app.models import ExportOptions
from app.utils.file_utils import build_export_filename
from app.utils.logging import logger
from app.utils.metrics import EXPORT_CSV_FALLBACKS
from .base_exporter import BaseExporter
from .errors import ExportArtifact, ExportError, generation_error
from .projector import (
    STATS_REPORT_TITLE,
    ProjectionResult,
    ReportMetadata,
    StatisticsTable,
)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_CONTENT_TYPE = "text/csv; charset=utf-8"

INSTITUTIONS_SHEET = "Instituciones"
STATISTICS_SHEET = "Estadísticas"

# Nombre, Dirección, Teléfono, Email, Creación, Actualización, Cursos, Estudiantes, Profesores
COLUMN_WIDTHS = [30, 30, 15, 25, 18, 18, 10, 12, 12]
STATISTICS_COLUMN_WIDTHS = [38, 30, 10, 12, 12, 22, 22, 16]


def escape_csv_field(value: Any) -> str:
    """Quote a field containing a comma, quote or newline; double embedded quotes.

    Single-field form of the quoting ``to_csv_text`` applies to whole rows.
    """
    text = "" if value is None else str(value)
    if any(ch in text for ch in (",", '"', "\n", "\r")):
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv_text(rows: Iterable[Iterable[Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerows(rows)
    return buf.getvalue()


class CsvFallbackRenderer:
    """Degraded spreadsheet output: header row + data rows as CSV text."""

    def render(self, projection: ProjectionResult) -> bytes:
        lines: List[List[Any]] = [projection.headers]
        lines.extend(row.values() for row in projection.rows)
        return to_csv_text(lines).encode("utf-8")


class SpreadsheetExporter(BaseExporter):
    """Exporter for the "excel" format."""

    format_label = "excel"

    def __init__(self, config=None, fallback: Optional[CsvFallbackRenderer] = None):
        super().__init__(config)
        self.fallback = fallback or CsvFallbackRenderer()

    async def render(
        self,
        projection: ProjectionResult,
        metadata: ReportMetadata,
        options: ExportOptions,
    ) -> ExportArtifact:
        self.check_input(projection)

        start = time.perf_counter()
        try:
            content = await self.run_with_timeout(self._build_workbook, projection, metadata)
            self.check_size(content)
        except ExportError:
            raise
        except Exception as primary_error:
            logger.warning("Workbook generation failed, falling back to CSV", extra={
                "export_format": self.format_label,
                "rows": len(projection),
                "error": str(primary_error),
            })
            return self._render_fallback(projection, metadata, options, primary_error)

        logger.info("Workbook generated", extra={
            "export_format": self.format_label,
            "rows": len(projection),
            "degraded_rows": len(projection.row_errors),
            "size_bytes": len(content),
            "elapsed_ms": int((time.perf_counter() - start) * 1000),
        })
        filename = build_export_filename(options, "xlsx", now=metadata.generated_at)
        return ExportArtifact(content, filename, XLSX_CONTENT_TYPE)

    def _render_fallback(
        self,
        projection: ProjectionResult,
        metadata: ReportMetadata,
        options: ExportOptions,
        primary_error: Exception,
    ) -> ExportArtifact:
        EXPORT_CSV_FALLBACKS.inc()
        try:
            content = self.fallback.render(projection)
            self.check_size(content)
        except Exception as fallback_error:
            raise generation_error(
                "Error al generar el archivo Excel y también falló el respaldo en CSV",
                details={"primary_error": str(primary_error), "fallback_error": str(fallback_error)},
                cause=fallback_error,
            )
        filename = build_export_filename(options, "csv", now=metadata.generated_at)
        return ExportArtifact(content, filename, CSV_CONTENT_TYPE)

    # ---------- workbook ----------

    def _build_workbook(self, projection: ProjectionResult, metadata: ReportMetadata) -> bytes:
        bio = io.BytesIO()
        with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
            header_format = writer.book.add_format({
                "bold": True,
                "bg_color": "#EEEEEE",
                "align": "center",
                "border": 1,
            })
            self._write_institutions_sheet(writer, projection, metadata, header_format)

            if projection.statistics is not None:
                try:
                    self._write_statistics_sheet(writer, projection.statistics, metadata, header_format)
                except Exception as e:
                    logger.warning("Statistics sheet skipped", extra={"error": str(e)})

        bio.seek(0)
        return bio.read()

    def _write_institutions_sheet(self, writer, projection: ProjectionResult, metadata: ReportMetadata, header_format):
        meta_rows = metadata.block_rows()
        header_row = len(meta_rows)

        df = pd.DataFrame([row.values() for row in projection.rows], columns=projection.headers)
        df.to_excel(writer, sheet_name=INSTITUTIONS_SHEET, index=False, startrow=header_row)

        ws = writer.sheets[INSTITUTIONS_SHEET]
        for r, values in enumerate(meta_rows):
            ws.write_row(r, 0, values)
        ws.write_row(header_row, 0, projection.headers, header_format)
        for col, width in enumerate(COLUMN_WIDTHS[: len(projection.headers)]):
            ws.set_column(col, col, width)
        ws.freeze_panes(header_row + 1, 0)

    def _write_statistics_sheet(self, writer, table: StatisticsTable, metadata: ReportMetadata, header_format):
        meta_rows = [
            [STATS_REPORT_TITLE],
            ["Generado el:", metadata.generated_at_text],
            ["Total de instituciones:", str(metadata.total_records)],
            [],
        ]
        header_row = len(meta_rows)

        df = pd.DataFrame(table.rows, columns=table.headers)
        df.to_excel(writer, sheet_name=STATISTICS_SHEET, index=False, startrow=header_row)

        ws = writer.sheets[STATISTICS_SHEET]
        for r, values in enumerate(meta_rows):
            ws.write_row(r, 0, values)
        ws.write_row(header_row, 0, table.headers, header_format)
        # blank separator row, then totals
        totals_row = header_row + 1 + len(table.rows) + 1
        ws.write_row(totals_row, 0, table.totals, header_format)
        for col, width in enumerate(STATISTICS_COLUMN_WIDTHS):
            ws.set_column(col, col, width)
