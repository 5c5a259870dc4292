# backend/app/models.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, List, Any, Union
from datetime import datetime

# ---------- Institution data (owned by the backend, read-only here) ----------
class InstitutionRecord(BaseModel):
    """One institution as returned by the data layer."""
    id: str
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    # Raw strings are kept as-is; the projector renders unparsable values as N/A
    created_at: Optional[Union[datetime, str]] = None
    updated_at: Optional[Union[datetime, str]] = None

    model_config = ConfigDict(frozen=True)

class InstitutionActivity(BaseModel):
    id: str
    type: str  # course_created, student_enrolled, professor_assigned, institution_updated
    description: str = ""
    created_at: Optional[Union[datetime, str]] = None
    metadata: Optional[Dict[str, Any]] = None

class InstitutionStatistics(BaseModel):
    courses_count: int = 0
    students_count: int = 0
    professors_count: int = 0
    recent_activity: List[InstitutionActivity] = Field(default_factory=list)

# ---------- Export options ----------
class DateRange(BaseModel):
    from_: Optional[datetime] = Field(default=None, alias="from")
    to: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True)

class InstitutionFilters(BaseModel):
    """Passed through untouched; filtering happens in the data layer."""
    search: Optional[str] = None
    sort_by: Optional[str] = Field(default=None, alias="sortBy")
    sort_order: Optional[str] = Field(default=None, alias="sortOrder")
    page: Optional[int] = None
    limit: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")

class ExportOptions(BaseModel):
    # Left as a plain string so unsupported values reach the validator
    format: Optional[str] = None  # "excel" | "pdf"
    include_stats: bool = Field(default=False, alias="includeStats")
    date_range: Optional[DateRange] = Field(default=None, alias="dateRange")
    filters: Optional[InstitutionFilters] = None

    model_config = ConfigDict(populate_by_name=True)

class ExportSummary(BaseModel):
    total_institutions: int
    format: str
    include_stats: bool
    date_range: Optional[str] = None
    estimated_size: str

# ---------- API payloads ----------
class ExportRequest(BaseModel):
    institutions: List[InstitutionRecord] = Field(default_factory=list)
    stats: Optional[Dict[str, InstitutionStatistics]] = None
    options: ExportOptions

class SummaryRequest(BaseModel):
    institutions: List[InstitutionRecord] = Field(default_factory=list)
    options: ExportOptions

class ValidationResponse(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)

class PublishedDownload(BaseModel):
    filename: str
    content_type: str
    size_bytes: int
    url: str
    expires_in_seconds: float
