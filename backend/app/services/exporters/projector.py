"""Record projection: institution records -> flat, format-independent rows.

Row-level failures never abort an export. A record that cannot be projected is
replaced by a fallback row and reported in ``ProjectionResult.row_errors``, so the
number of rows always equals the number of input records and input order is kept.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from app.models import ExportOptions
from app.utils.logging import logger
from .formatting import DISPLAY_DATETIME_FORMAT, format_display_date, format_display_datetime, to_local_naive

ROW_ERROR_TEXT = "Error al procesar"
STATS_NOTE = "Cursos, Estudiantes y Profesores"
REPORT_TITLE = "Reporte de Instituciones"
STATS_REPORT_TITLE = "Estadísticas de Instituciones"

BASE_HEADERS = [
    "Nombre",
    "Dirección",
    "Teléfono",
    "Email",
    "Fecha de Creación",
    "Última Actualización",
]
STATS_HEADERS = ["Cursos", "Estudiantes", "Profesores"]

STATISTICS_SHEET_HEADERS = [
    "ID Institución",
    "Nombre",
    "Cursos",
    "Estudiantes",
    "Profesores",
    "Ratio Estudiantes/Curso",
    "Ratio Profesores/Curso",
    "Total Actividades",
]


def table_headers(include_stats: bool) -> List[str]:
    return BASE_HEADERS + STATS_HEADERS if include_stats else list(BASE_HEADERS)


def placeholder_name(index: int) -> str:
    return f"Institución {index + 1}"


@dataclass(frozen=True)
class TabularRow:
    name: str
    address: str
    phone: str
    email: str
    created: str
    updated: str
    courses: Optional[int] = None
    students: Optional[int] = None
    professors: Optional[int] = None
    degraded: bool = False

    @property
    def has_stats(self) -> bool:
        return self.courses is not None

    def values(self) -> List[Any]:
        row: List[Any] = [self.name, self.address, self.phone, self.email, self.created, self.updated]
        if self.has_stats:
            row.extend([self.courses, self.students, self.professors])
        return row


@dataclass(frozen=True)
class RowError:
    index: int
    record_id: Optional[str]
    message: str


@dataclass
class ProjectionResult:
    rows: List[TabularRow] = field(default_factory=list)
    row_errors: List[RowError] = field(default_factory=list)
    include_stats: bool = False
    # Present only when statistics were requested and supplied
    statistics: Optional["StatisticsTable"] = None

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def headers(self) -> List[str]:
        return table_headers(self.include_stats)


@dataclass(frozen=True)
class ReportMetadata:
    generated_at: datetime
    total_records: int
    include_stats: bool = False
    date_range_text: Optional[str] = None

    @property
    def generated_at_text(self) -> str:
        return self.generated_at.strftime(DISPLAY_DATETIME_FORMAT)

    @property
    def stats_note(self) -> Optional[str]:
        return STATS_NOTE if self.include_stats else None

    def block_rows(self) -> List[List[str]]:
        """Metadata rows placed above the table, ending with a blank separator row."""
        rows = [
            [REPORT_TITLE],
            ["Generado el:", self.generated_at_text],
            ["Total de instituciones:", str(self.total_records)],
        ]
        if self.date_range_text:
            rows.append([f"Rango de fechas: {self.date_range_text}"])
        if self.include_stats:
            rows.append(["Incluye estadísticas:", STATS_NOTE])
        rows.append([])
        return rows


# ---------- field access ----------

def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"expected text, got {type(value).__name__}")
    return value


def _safe_name(record: Any) -> Optional[str]:
    try:
        name = _field(record, "name")
    except Exception:
        return None
    return name if isinstance(name, str) and name else None


def _safe_id(record: Any) -> Optional[str]:
    try:
        value = _field(record, "id")
    except Exception:
        return None
    return str(value) if value is not None else None


def _count(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise TypeError("count cannot be a boolean")
    return int(value)


def stats_counts(entry: Any) -> Tuple[int, int, int]:
    """(courses, students, professors) for a stats entry; missing entry -> zeros."""
    if entry is None:
        return 0, 0, 0
    return (
        _count(_field(entry, "courses_count")),
        _count(_field(entry, "students_count")),
        _count(_field(entry, "professors_count")),
    )


def _activity_count(entry: Any) -> int:
    if entry is None:
        return 0
    activity = _field(entry, "recent_activity")
    return len(activity) if activity else 0


# ---------- rows ----------

def _project_one(record: Any, index: int, stats: Mapping[str, Any], include_stats: bool) -> TabularRow:
    name = _text(_field(record, "name")) or placeholder_name(index)
    row = dict(
        name=name,
        address=_text(_field(record, "address")),
        phone=_text(_field(record, "phone")),
        email=_text(_field(record, "email")),
        created=format_display_datetime(_field(record, "created_at")),
        updated=format_display_datetime(_field(record, "updated_at")),
    )
    if include_stats:
        record_id = _safe_id(record)
        courses, students, professors = stats_counts(stats.get(record_id) if record_id is not None else None)
        row.update(courses=courses, students=students, professors=professors)
    return TabularRow(**row)


def fallback_row(record: Any, index: int, include_stats: bool) -> TabularRow:
    return TabularRow(
        name=_safe_name(record) or placeholder_name(index),
        address=ROW_ERROR_TEXT,
        phone=ROW_ERROR_TEXT,
        email=ROW_ERROR_TEXT,
        created=ROW_ERROR_TEXT,
        updated=ROW_ERROR_TEXT,
        courses=0 if include_stats else None,
        students=0 if include_stats else None,
        professors=0 if include_stats else None,
        degraded=True,
    )


def project_records(
    records: Sequence[Any],
    stats: Optional[Mapping[str, Any]] = None,
    include_stats: bool = False,
) -> ProjectionResult:
    """Project every record to a TabularRow, degrading per row instead of failing."""
    stats = stats or {}
    result = ProjectionResult(include_stats=include_stats)

    for index, record in enumerate(records):
        try:
            result.rows.append(_project_one(record, index, stats, include_stats))
        except Exception as e:
            record_id = _safe_id(record)
            logger.warning("Institution row degraded during projection", extra={
                "row_index": index,
                "record_id": record_id,
                "error": str(e),
            })
            result.rows.append(fallback_row(record, index, include_stats))
            result.row_errors.append(RowError(index=index, record_id=record_id, message=str(e)))

    if include_stats and stats:
        try:
            result.statistics = project_statistics(records, stats)
        except Exception as e:
            logger.warning("Statistics table skipped", extra={"error": str(e)})

    return result


# ---------- report metadata ----------

def describe_date_range(options: ExportOptions) -> Optional[str]:
    """Human readable range: 'dd/MM/yyyy - dd/MM/yyyy', 'Desde …' or 'Hasta …'."""
    date_range = options.date_range
    if date_range is None:
        return None
    start, end = date_range.from_, date_range.to
    if start and end:
        return f"{format_display_date(start)} - {format_display_date(end)}"
    if start:
        return f"Desde {format_display_date(start)}"
    if end:
        return f"Hasta {format_display_date(end)}"
    return None


def build_report_metadata(
    records: Sequence[Any],
    options: ExportOptions,
    now: Optional[datetime] = None,
) -> ReportMetadata:
    return ReportMetadata(
        generated_at=to_local_naive(now) if now else datetime.now(),
        total_records=len(records),
        include_stats=options.include_stats,
        date_range_text=describe_date_range(options),
    )


# ---------- statistics sheet ----------

def _ratio(numerator: int, denominator: int) -> str:
    return f"{numerator / denominator:.2f}" if denominator > 0 else "0.00"


@dataclass
class StatisticsTable:
    rows: List[List[Any]] = field(default_factory=list)
    totals: List[Any] = field(default_factory=list)

    @property
    def headers(self) -> List[str]:
        return list(STATISTICS_SHEET_HEADERS)


def project_statistics(records: Sequence[Any], stats: Mapping[str, Any]) -> StatisticsTable:
    """Per-institution ratios plus a trailing TOTALES row summing every count."""
    table = StatisticsTable()
    total_courses = total_students = total_professors = total_activities = 0

    for index, record in enumerate(records):
        record_id = _safe_id(record)
        label_id = record_id or f"inst_{index}"
        name = _safe_name(record) or placeholder_name(index)
        try:
            entry = stats.get(record_id) if record_id is not None else None
            courses, students, professors = stats_counts(entry)
            activities = _activity_count(entry)
        except Exception as e:
            logger.warning("Statistics row degraded", extra={"row_index": index, "record_id": record_id, "error": str(e)})
            table.rows.append([label_id, name] + ["Error"] * 6)
            continue

        table.rows.append([
            label_id,
            name,
            courses,
            students,
            professors,
            _ratio(students, courses),
            _ratio(professors, courses),
            activities,
        ])
        total_courses += courses
        total_students += students
        total_professors += professors
        total_activities += activities

    table.totals = [
        "TOTALES",
        f"{len(records)} instituciones",
        total_courses,
        total_students,
        total_professors,
        _ratio(total_students, total_courses),
        _ratio(total_professors, total_courses),
        total_activities,
    ]
    return table
