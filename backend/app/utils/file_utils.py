# app/utils/file_utils.py
from datetime import datetime
from typing import Optional
import re

from app.models import ExportOptions

EXPORT_FILE_PREFIX = "instituciones"

def sanitize_filename(filename: str, max_length: int = 120) -> str:
    """Remove unsafe characters and limit length for download filenames."""
    if "." in filename:
        stem, ext = filename.rsplit(".", 1)
    else:
        stem, ext = filename, ""
    stem = re.sub(r'[^a-zA-Z0-9_-]', '_', stem)
    stem = re.sub(r'_+', '_', stem)
    stem = stem[:max_length - len(ext) - 1] if ext else stem[:max_length]
    return f"{stem}.{ext}" if ext else stem

def build_export_filename(options: ExportOptions, extension: str, now: Optional[datetime] = None) -> str:
    """instituciones_<yyyy-MM-dd_HH-mm>[_desde_<date>][_hasta_<date>][_con_estadisticas].<ext>"""
    timestamp = (now or datetime.now()).strftime("%Y-%m-%d_%H-%M")
    filename = f"{EXPORT_FILE_PREFIX}_{timestamp}"

    date_range = options.date_range
    if date_range is not None and date_range.from_:
        filename += f"_desde_{date_range.from_.strftime('%Y-%m-%d')}"
    if date_range is not None and date_range.to:
        filename += f"_hasta_{date_range.to.strftime('%Y-%m-%d')}"

    if options.include_stats:
        filename += "_con_estadisticas"

    return f"{filename}.{extension.lstrip('.')}"

def content_disposition(filename: str) -> str:
    return f'attachment; filename="{sanitize_filename(filename)}"'
