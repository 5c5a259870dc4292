"""Date and text formatting shared by the projector and the renderers."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

DISPLAY_DATETIME_FORMAT = "%d/%m/%Y %H:%M"  # dd/MM/yyyy HH:mm
DISPLAY_DATE_FORMAT = "%d/%m/%Y"

NOT_AVAILABLE = "N/A"
ELLIPSIS = "..."


def to_local_naive(value: datetime) -> datetime:
    """Aware datetimes are converted to local time so they compare with datetime.now()."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def parse_timestamp(value: Any) -> datetime:
    """Coerce a record timestamp (datetime, date or ISO string) to a local naive datetime.

    Raises ValueError/TypeError for anything else; callers decide the fallback.
    """
    if isinstance(value, datetime):
        return to_local_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return to_local_naive(datetime.fromisoformat(text))
    raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")


def format_display_datetime(value: Any) -> str:
    """Render a timestamp as dd/MM/yyyy HH:mm, or N/A when missing or unparsable."""
    if value is None or value == "":
        return NOT_AVAILABLE
    try:
        return parse_timestamp(value).strftime(DISPLAY_DATETIME_FORMAT)
    except (TypeError, ValueError, OverflowError):
        return NOT_AVAILABLE


def format_display_date(value: Optional[datetime]) -> str:
    return value.strftime(DISPLAY_DATE_FORMAT) if value else ""


def truncate_text(text: str, max_length: int) -> str:
    """Shorten text to max_length characters, ending with an ellipsis when cut."""
    if len(text) <= max_length:
        return text
    return text[: max(max_length - len(ELLIPSIS), 0)] + ELLIPSIS
