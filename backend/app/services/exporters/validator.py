"""Export option validation.

Graceful degradation: returns the full list of problems (empty list = valid) and
never raises, so the UI can show every message at once.

Usage:
from app.services.exporters.validator import validate_export_options
errors = validate_export_options({"format": "pdf", "includeStats": True})
if errors: ...
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from app.models import DateRange, ExportOptions
from .formatting import to_local_naive

SUPPORTED_FORMATS = ("excel", "pdf")

MSG_FORMAT_REQUIRED = "El formato de exportación es requerido"
MSG_FORMAT_INVALID = "Formato de exportación no válido"
MSG_RANGE_ORDER = "La fecha de inicio no puede ser posterior a la fecha de fin"
MSG_FROM_FUTURE = "La fecha de inicio no puede ser futura"
MSG_TO_FUTURE = "La fecha de fin no puede ser futura"
MSG_OPTIONS_INVALID = "Opciones de exportación inválidas"

_CHECKED_FIELDS = ("format", "dateRange", "date_range")


def coerce_options(options: Union[ExportOptions, Mapping[str, Any]]) -> ExportOptions:
    if isinstance(options, ExportOptions):
        return options
    return ExportOptions.model_validate(options)


def _options_error_messages(error: ValidationError, skip_fields=()) -> List[str]:
    return [
        f"{MSG_OPTIONS_INVALID}: {err['msg']}"
        for err in error.errors()
        if not (err["loc"] and err["loc"][0] in skip_fields)
    ]


def _check_format(value: Any) -> Optional[str]:
    if value is None or value == "":
        return MSG_FORMAT_REQUIRED
    if not isinstance(value, str) or value not in SUPPORTED_FORMATS:
        return MSG_FORMAT_INVALID
    return None


def _check_date_range(date_range: DateRange, now: Optional[datetime]) -> List[str]:
    errors: List[str] = []
    current = to_local_naive(now) if now else datetime.now()
    start = to_local_naive(date_range.from_) if date_range.from_ else None
    end = to_local_naive(date_range.to) if date_range.to else None

    if start and end and start > end:
        errors.append(MSG_RANGE_ORDER)
    if start and start > current:
        errors.append(MSG_FROM_FUTURE)
    if end and end > current:
        errors.append(MSG_TO_FUTURE)
    return errors


def validate_export_options(
    options: Union[ExportOptions, Mapping[str, Any], None],
    now: Optional[datetime] = None,
) -> List[str]:
    """Check format and date range sanity; collect every violation.

    Format and date range are checked on their own, so a malformed field
    elsewhere in the options never hides them.
    """
    if options is None:
        return [MSG_FORMAT_REQUIRED]
    if isinstance(options, ExportOptions):
        raw_format, raw_range = options.format, options.date_range
    elif isinstance(options, Mapping):
        raw_format = options.get("format")
        raw_range = options.get("dateRange", options.get("date_range"))
    else:
        return [MSG_OPTIONS_INVALID]

    errors: List[str] = []

    format_error = _check_format(raw_format)
    if format_error:
        errors.append(format_error)

    if raw_range is not None:
        try:
            date_range = raw_range if isinstance(raw_range, DateRange) else DateRange.model_validate(raw_range)
        except ValidationError as e:
            errors.extend(_options_error_messages(e))
        else:
            errors.extend(_check_date_range(date_range, now))

    # Remaining fields (includeStats, filters, ...)
    if not isinstance(options, ExportOptions):
        try:
            ExportOptions.model_validate(options)
        except ValidationError as e:
            errors.extend(_options_error_messages(e, skip_fields=_CHECKED_FIELDS))

    return errors
