import csv
import io
import time

import pytest
from openpyxl import load_workbook

from app.models import ExportOptions, InstitutionRecord
from app.services.exporters.base_exporter import MSG_EMPTY, MSG_TIMEOUT, ExportConfig
from app.services.exporters.errors import ExportError, ExportErrorCode
from app.services.exporters.projector import build_report_metadata, project_records
from app.services.exporters.spreadsheet_exporter import (
    CSV_CONTENT_TYPE,
    INSTITUTIONS_SHEET,
    STATISTICS_SHEET,
    XLSX_CONTENT_TYPE,
    CsvFallbackRenderer,
    SpreadsheetExporter,
    escape_csv_field,
    to_csv_text,
)


def _inputs(records, now, stats=None, include_stats=False):
    options = ExportOptions(format="excel", include_stats=include_stats)
    projection = project_records(records, stats, include_stats)
    metadata = build_report_metadata(records, options, now=now)
    return projection, metadata, options


def _parse_csv(content: bytes):
    return list(csv.reader(io.StringIO(content.decode("utf-8"), newline="")))


def test_escape_csv_field():
    assert escape_csv_field("plain") == "plain"
    assert escape_csv_field("a,b") == '"a,b"'
    assert escape_csv_field('say "hi"') == '"say ""hi"""'
    assert escape_csv_field("two\nlines") == '"two\nlines"'
    assert escape_csv_field(None) == ""
    assert escape_csv_field(12) == "12"


@pytest.mark.asyncio
async def test_workbook_has_metadata_block_and_rows(records, now):
    artifact = await SpreadsheetExporter().render(*_inputs(records, now))

    assert artifact.content_type == XLSX_CONTENT_TYPE
    assert artifact.filename == "instituciones_2024-03-15_10-30.xlsx"

    wb = load_workbook(io.BytesIO(artifact.content))
    assert wb.sheetnames == [INSTITUTIONS_SHEET]
    ws = wb[INSTITUTIONS_SHEET]
    assert ws.cell(row=1, column=1).value == "Reporte de Instituciones"
    assert ws.cell(row=2, column=2).value == "15/03/2024 10:30"
    assert ws.cell(row=3, column=2).value == "3"
    # title, generated, total, blank separator, then the table header
    assert [ws.cell(row=5, column=c).value for c in range(1, 7)] == [
        "Nombre", "Dirección", "Teléfono", "Email", "Fecha de Creación", "Última Actualización",
    ]
    assert ws.cell(row=6, column=1).value == "Colegio San Martín"
    assert ws.cell(row=6, column=5).value == "15/01/2024 09:00"
    assert ws.cell(row=8, column=1).value == "Escuela Técnica N° 5"


@pytest.mark.asyncio
async def test_statistics_sheet_with_totals(records, stats, now):
    artifact = await SpreadsheetExporter().render(*_inputs(records, now, stats, include_stats=True))

    assert artifact.filename.endswith("_con_estadisticas.xlsx")
    wb = load_workbook(io.BytesIO(artifact.content))
    assert wb.sheetnames == [INSTITUTIONS_SHEET, STATISTICS_SHEET]

    institutions = wb[INSTITUTIONS_SHEET]
    assert institutions.cell(row=6, column=7).value == "Cursos"
    assert institutions.cell(row=7, column=8).value == 100

    sheet = wb[STATISTICS_SHEET]
    assert sheet.cell(row=1, column=1).value == "Estadísticas de Instituciones"
    assert sheet.cell(row=5, column=1).value == "ID Institución"
    assert [sheet.cell(row=6, column=c).value for c in range(1, 9)] == [
        "inst-1", "Colegio San Martín", 4, 100, 8, "25.00", "2.00", 2,
    ]
    assert sheet.cell(row=9, column=1).value is None
    assert [sheet.cell(row=10, column=c).value for c in range(1, 9)] == [
        "TOTALES", "3 instituciones", 4, 105, 9, "26.25", "2.25", 2,
    ]


@pytest.mark.asyncio
async def test_statistics_sheet_failure_keeps_workbook(records, stats, now, monkeypatch):
    exporter = SpreadsheetExporter()

    def broken_sheet(*args, **kwargs):
        raise RuntimeError("sheet exploded")

    monkeypatch.setattr(exporter, "_write_statistics_sheet", broken_sheet)
    artifact = await exporter.render(*_inputs(records, now, stats, include_stats=True))

    assert artifact.content_type == XLSX_CONTENT_TYPE
    wb = load_workbook(io.BytesIO(artifact.content))
    assert INSTITUTIONS_SHEET in wb.sheetnames


@pytest.mark.asyncio
async def test_workbook_failure_falls_back_to_csv(records, now, monkeypatch):
    exporter = SpreadsheetExporter()

    def broken_build(*args):
        raise RuntimeError("xlsx engine unavailable")

    monkeypatch.setattr(exporter, "_build_workbook", broken_build)
    projection, metadata, options = _inputs(records, now)
    artifact = await exporter.render(projection, metadata, options)

    assert artifact.content_type == CSV_CONTENT_TYPE
    assert artifact.filename == "instituciones_2024-03-15_10-30.csv"
    assert not artifact.content.startswith(b"\xef\xbb\xbf")

    lines = _parse_csv(artifact.content)
    assert lines[0] == projection.headers
    assert lines[1][0] == "Colegio San Martín"
    assert lines[3][2] == ""
    assert len(lines) == len(records) + 1


def test_csv_round_trips_awkward_values(now):
    tricky = [
        InstitutionRecord(id="1", name='Escuela "La Plata", sede\nnorte', address="Calle 1, piso 2"),
        InstitutionRecord(id="2", name="Normal", email='"quoted"@example.edu'),
    ]
    projection = project_records(tricky)

    lines = _parse_csv(CsvFallbackRenderer().render(projection))

    assert lines[1][0] == 'Escuela "La Plata", sede\nnorte'
    assert lines[1][1] == "Calle 1, piso 2"
    assert lines[2][3] == '"quoted"@example.edu'
    assert lines[1:] == [[str(v) for v in row.values()] for row in projection.rows]


@pytest.mark.asyncio
async def test_fallback_failure_is_generation_error(records, now, monkeypatch):
    exporter = SpreadsheetExporter()

    def broken(*args):
        raise RuntimeError("nope")

    monkeypatch.setattr(exporter, "_build_workbook", broken)
    monkeypatch.setattr(exporter.fallback, "render", broken)

    with pytest.raises(ExportError) as exc:
        await exporter.render(*_inputs(records, now))
    assert exc.value.code == ExportErrorCode.GENERATION_ERROR
    assert set(exc.value.details) == {"primary_error", "fallback_error"}


@pytest.mark.asyncio
async def test_empty_input_is_data_error(now):
    with pytest.raises(ExportError) as exc:
        await SpreadsheetExporter().render(*_inputs([], now))
    assert exc.value.code == ExportErrorCode.DATA_ERROR
    assert exc.value.message == MSG_EMPTY


@pytest.mark.asyncio
async def test_row_limit_is_data_error(records, now):
    exporter = SpreadsheetExporter(ExportConfig(max_rows=2))
    with pytest.raises(ExportError) as exc:
        await exporter.render(*_inputs(records, now))
    assert exc.value.code == ExportErrorCode.DATA_ERROR
    assert "Máximo permitido: 2" in exc.value.message


@pytest.mark.asyncio
async def test_oversized_output_is_not_retried_as_csv(records, now):
    exporter = SpreadsheetExporter(ExportConfig(max_file_size_mb=0.0001))
    with pytest.raises(ExportError) as exc:
        await exporter.render(*_inputs(records, now))
    assert exc.value.code == ExportErrorCode.GENERATION_ERROR


@pytest.mark.asyncio
async def test_slow_build_times_out(records, now, monkeypatch):
    exporter = SpreadsheetExporter(ExportConfig(timeout_seconds=0.05))

    def slow_build(*args):
        time.sleep(0.5)
        return b"late"

    monkeypatch.setattr(exporter, "_build_workbook", slow_build)
    with pytest.raises(ExportError) as exc:
        await exporter.render(*_inputs(records, now))
    assert exc.value.code == ExportErrorCode.GENERATION_ERROR
    assert exc.value.message == MSG_TIMEOUT


def test_row_writer_quotes_like_field_escaping():
    values = ["plain", "a,b", 'say "hi"', "two\nlines", None, 12]
    assert to_csv_text([values]) == ",".join(escape_csv_field(v) for v in values) + "\n"
