"""Paginated PDF exporter for institution reports.

Layout happens in two steps:
1. ``paginate`` walks the rows with a running vertical cursor and groups them into
   ``PageLayout`` records. Rows are never split and every page starts with the
   table header, so a header is never left without at least one row under it.
2. ``_draw`` renders the page list with reportlab's canvas. The total page count
   is known before drawing starts, so each footer can say "Página X de N".

All geometry is expressed in millimetres and converted to points when drawing.
"""

from __future__ import annotations

import io
import math
import re
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape, letter, portrait
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from app.models import ExportOptions
from app.utils.file_utils import build_export_filename
from app.utils.logging import logger
from .base_exporter import BaseExporter, ExportConfig
from .errors import ExportArtifact, data_error
from .formatting import NOT_AVAILABLE, truncate_text
from .projector import REPORT_TITLE, ProjectionResult, ReportMetadata, TabularRow

PDF_CONTENT_TYPE = "application/pdf"

PAGE_SIZES = {"a4": A4, "letter": letter}
ORIENTATIONS = {"portrait": portrait, "landscape": landscape}

# Geometry in millimetres
MARGIN = 20.0
ROW_HEIGHT = 7.0
TABLE_HEADER_HEIGHT = 10.0
FOOTER_RESERVE = 10.0
# Band at the top of every page: full title block on page 1, continuation banner after
HEADER_BAND = 51.0

BASE_PDF_HEADERS = ["Nombre", "Dirección", "Teléfono", "Email", "Fecha Creación"]
STATS_PDF_HEADERS = ["Cursos", "Estudiantes", "Profesores"]

COLUMN_WIDTHS = {
    ("portrait", False): [50, 45, 30, 40, 25],
    ("portrait", True): [40, 35, 25, 35, 25, 15, 15, 15],
    ("landscape", False): [70, 70, 40, 55, 22],
    ("landscape", True): [60, 50, 30, 45, 22, 16, 18, 16],
}

# Character budgets per text column; the row data itself is left untouched
TRUNCATE_NAME = 25
TRUNCATE_ADDRESS = 20
TRUNCATE_PHONE = 15
TRUNCATE_EMAIL = 20

_DISPLAY_DATE = re.compile(r"^\d{2}/\d{2}/\d{4}")


@dataclass(frozen=True)
class PdfExportConfig(ExportConfig):
    max_file_size_mb: float = 25
    page_format: str = "a4"  # a4 | letter
    orientation: str = "portrait"  # portrait | landscape
    include_header: bool = True
    include_footer: bool = True


@dataclass(frozen=True)
class ColumnLayout:
    headers: List[str]
    widths: List[float]
    scale: float = 1.0

    @property
    def total_width(self) -> float:
        return sum(self.widths)


@dataclass(frozen=True)
class PageGeometry:
    width: float
    height: float
    margin: float = MARGIN
    row_height: float = ROW_HEIGHT
    include_header: bool = True
    include_footer: bool = True

    @property
    def available_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def table_top(self) -> float:
        return self.margin + (HEADER_BAND if self.include_header else 0)

    @property
    def first_row_top(self) -> float:
        return self.table_top + TABLE_HEADER_HEIGHT

    @property
    def bottom_limit(self) -> float:
        return self.height - self.margin - (FOOTER_RESERVE if self.include_footer else 0)

    def rows_per_page(self) -> int:
        return max(int((self.bottom_limit - self.first_row_top) // self.row_height), 1)


@dataclass
class PageLayout:
    number: int
    continuation: bool = False
    rows: List[TabularRow] = field(default_factory=list)


def page_geometry(config: PdfExportConfig) -> PageGeometry:
    size = PAGE_SIZES.get(config.page_format)
    orient = ORIENTATIONS.get(config.orientation)
    if size is None:
        raise data_error(f"Formato de página no soportado: {config.page_format}")
    if orient is None:
        raise data_error(f"Orientación no soportada: {config.orientation}")
    width_pt, height_pt = orient(size)
    return PageGeometry(
        width=width_pt / mm,
        height=height_pt / mm,
        include_header=config.include_header,
        include_footer=config.include_footer,
    )


def compute_column_layout(include_stats: bool, orientation: str, available_width: float) -> ColumnLayout:
    """Pick headers and widths; shrink every column by one factor if they overflow."""
    headers = BASE_PDF_HEADERS + STATS_PDF_HEADERS if include_stats else list(BASE_PDF_HEADERS)
    widths = [float(w) for w in COLUMN_WIDTHS[(orientation, include_stats)]]
    total = sum(widths)
    if total > available_width:
        factor = available_width / total
        return ColumnLayout(headers, [w * factor for w in widths], scale=factor)
    return ColumnLayout(headers, widths)


def paginate(rows: Sequence[TabularRow], geometry: PageGeometry) -> List[PageLayout]:
    """Group rows into pages using a running cursor; a row never straddles two pages."""
    pages: List[PageLayout] = []
    current = PageLayout(number=1)
    cursor = geometry.first_row_top

    for row in rows:
        if current.rows and cursor + geometry.row_height > geometry.bottom_limit:
            pages.append(current)
            current = PageLayout(number=len(pages) + 1, continuation=True)
            cursor = geometry.first_row_top
        current.rows.append(row)
        cursor += geometry.row_height

    pages.append(current)
    return pages


def _or_na(value: str) -> str:
    return value if value else NOT_AVAILABLE


def _date_cell(value: str) -> str:
    match = _DISPLAY_DATE.match(value or "")
    return match.group(0) if match else truncate_text(_or_na(value), 12)


def row_cells(row: TabularRow, include_stats: bool) -> List[str]:
    cells = [
        truncate_text(_or_na(row.name), TRUNCATE_NAME),
        truncate_text(_or_na(row.address), TRUNCATE_ADDRESS),
        truncate_text(_or_na(row.phone), TRUNCATE_PHONE),
        truncate_text(_or_na(row.email), TRUNCATE_EMAIL),
        _date_cell(row.created),
    ]
    if include_stats:
        cells.extend(str(v if v is not None else 0) for v in (row.courses, row.students, row.professors))
    return cells


class PdfExporter(BaseExporter):
    """Exporter for the "pdf" format."""

    format_label = "pdf"

    def __init__(self, config: Optional[PdfExportConfig] = None):
        super().__init__(config or PdfExportConfig())

    async def render(
        self,
        projection: ProjectionResult,
        metadata: ReportMetadata,
        options: ExportOptions,
    ) -> ExportArtifact:
        self.check_input(projection)
        geometry = page_geometry(self.config)

        start = time.perf_counter()
        content, page_count = await self.run_with_timeout(self._build_document, projection, metadata, geometry)
        self.check_size(content)

        logger.info("PDF generated", extra={
            "export_format": self.format_label,
            "rows": len(projection),
            "pages": page_count,
            "size_bytes": len(content),
            "elapsed_ms": int((time.perf_counter() - start) * 1000),
        })
        filename = build_export_filename(options, "pdf", now=metadata.generated_at)
        return ExportArtifact(content, filename, PDF_CONTENT_TYPE)

    def _build_document(
        self,
        projection: ProjectionResult,
        metadata: ReportMetadata,
        geometry: PageGeometry,
    ) -> Tuple[bytes, int]:
        layout = compute_column_layout(projection.include_stats, self.config.orientation, geometry.available_width)
        pages = paginate(projection.rows, geometry)
        return self._draw(pages, layout, metadata, geometry, projection.include_stats), len(pages)

    # ---------- drawing ----------

    def _draw(
        self,
        pages: List[PageLayout],
        layout: ColumnLayout,
        metadata: ReportMetadata,
        geometry: PageGeometry,
        include_stats: bool,
    ) -> bytes:
        bio = io.BytesIO()
        c = canvas.Canvas(bio, pagesize=(geometry.width * mm, geometry.height * mm))
        c.setTitle(REPORT_TITLE)
        c.setAuthor("institution-export")

        total_pages = len(pages)
        for page in pages:
            if geometry.include_header:
                if page.continuation:
                    self._draw_continuation_banner(c, page, geometry)
                else:
                    self._draw_title_block(c, metadata, geometry)
            self._draw_table_header(c, layout, geometry)
            self._draw_rows(c, page.rows, layout, geometry, include_stats)
            if geometry.include_footer:
                self._draw_footer(c, page.number, total_pages, metadata, geometry)
            c.showPage()

        c.save()
        bio.seek(0)
        return bio.read()

    def _y(self, geometry: PageGeometry, top_mm: float) -> float:
        """Convert a distance from the top edge (mm) to a reportlab y coordinate (pt)."""
        return (geometry.height - top_mm) * mm

    def _draw_title_block(self, c: canvas.Canvas, metadata: ReportMetadata, geometry: PageGeometry):
        x = geometry.margin * mm
        y = geometry.margin + 6
        c.setFont("Helvetica-Bold", 18)
        c.drawString(x, self._y(geometry, y), REPORT_TITLE)
        y += 15

        lines = [
            f"Generado el: {metadata.generated_at_text}",
            f"Total de instituciones: {metadata.total_records}",
        ]
        if metadata.date_range_text:
            lines.append(f"Rango de fechas: {metadata.date_range_text}")
        if metadata.stats_note:
            lines.append(f"Incluye estadísticas: {metadata.stats_note}")

        c.setFont("Helvetica", 10)
        for line in lines:
            c.drawString(x, self._y(geometry, y), line)
            y += 7

    def _draw_continuation_banner(self, c: canvas.Canvas, page: PageLayout, geometry: PageGeometry):
        c.setFont("Helvetica-Bold", 11)
        c.drawString(
            geometry.margin * mm,
            self._y(geometry, geometry.margin + 6),
            f"{REPORT_TITLE} (continuación)",
        )

    def _draw_table_header(self, c: canvas.Canvas, layout: ColumnLayout, geometry: PageGeometry):
        top = geometry.table_top
        c.setFont("Helvetica-Bold", 8)
        x = geometry.margin
        for header, width in zip(layout.headers, layout.widths):
            c.drawString(x * mm, self._y(geometry, top + 5), header)
            x += width
        c.setStrokeColor(colors.grey)
        c.line(
            geometry.margin * mm,
            self._y(geometry, top + TABLE_HEADER_HEIGHT - 3),
            (geometry.margin + layout.total_width) * mm,
            self._y(geometry, top + TABLE_HEADER_HEIGHT - 3),
        )

    def _draw_rows(
        self,
        c: canvas.Canvas,
        rows: List[TabularRow],
        layout: ColumnLayout,
        geometry: PageGeometry,
        include_stats: bool,
    ):
        c.setFont("Helvetica", 8)
        cursor = geometry.first_row_top
        for row in rows:
            c.setFillColor(colors.red if row.degraded else colors.black)
            x = geometry.margin
            for text, width in zip(row_cells(row, include_stats), layout.widths):
                c.drawString(x * mm, self._y(geometry, cursor + 4), text)
                x += width
            cursor += geometry.row_height
        c.setFillColor(colors.black)

    def _draw_footer(
        self,
        c: canvas.Canvas,
        page_number: int,
        total_pages: int,
        metadata: ReportMetadata,
        geometry: PageGeometry,
    ):
        baseline = self._y(geometry, geometry.height - geometry.margin / 2)
        c.setFont("Helvetica", 8)
        c.setFillColor(colors.grey)
        c.drawString(geometry.margin * mm, baseline, f"Generado el {metadata.generated_at_text}")
        c.drawRightString(
            (geometry.width - geometry.margin) * mm,
            baseline,
            f"Página {page_number} de {total_pages}",
        )
        c.setFillColor(colors.black)


def expected_page_count(row_count: int, geometry: PageGeometry) -> int:
    return max(math.ceil(row_count / geometry.rows_per_page()), 1)
