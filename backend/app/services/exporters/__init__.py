"""Institution export services for spreadsheet and PDF downloads.

Architecture:
- validator: checks export options before any work starts
- projector: institution records -> format-independent rows + report metadata
- SpreadsheetExporter: XLSX workbook, degrading to CSV text
- PdfExporter: paginated PDF report
- institution_exporter: orchestration and error classification
"""

from .errors import ExportArtifact, ExportError, ExportErrorCode, ExportResult
from .institution_exporter import (
    export_institutions,
    try_export_institutions,
    get_export_summary,
    estimate_file_size,
)
from .pdf_exporter import PdfExporter, PdfExportConfig
from .spreadsheet_exporter import SpreadsheetExporter, CsvFallbackRenderer
from .validator import validate_export_options

__all__ = [
    'ExportArtifact',
    'ExportError',
    'ExportErrorCode',
    'ExportResult',
    'export_institutions',
    'try_export_institutions',
    'get_export_summary',
    'estimate_file_size',
    'PdfExporter',
    'PdfExportConfig',
    'SpreadsheetExporter',
    'CsvFallbackRenderer',
    'validate_export_options',
]
