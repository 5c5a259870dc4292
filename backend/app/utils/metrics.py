"""Prometheus metrics helpers for export observability.

Metrics taxonomy:
Export operations:
    - export_requests_total (labels format, delivery)
    - export_generation_seconds (label format)
    - export_failures_total (label code)
    - export_csv_fallbacks_total
    - export_degraded_rows_total
    - export_bytes_total (counter of bytes delivered/published)
Download delivery:
    - export_downloads_published_total
    - export_downloads_released_total
Statistics cache:
    - stats_cache_lookups_total (label result)
"""
from prometheus_client import Counter, Histogram

EXPORT_REQUESTS = Counter(
    "export_requests_total",
    "Total export requests",
    ["format", "delivery"]
)

# Export generation timing (records -> format bytes)
EXPORT_GENERATION_SECONDS = Histogram(
    "export_generation_seconds",
    "Time to generate export file (xlsx/csv/pdf)",
    ["format"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 15, 45)
)
EXPORT_FAILURES = Counter(
    "export_failures_total",
    "Total classified export failures",
    ["code"]
)
EXPORT_CSV_FALLBACKS = Counter(
    "export_csv_fallbacks_total",
    "Spreadsheet exports that degraded to plain CSV"
)
EXPORT_DEGRADED_ROWS = Counter(
    "export_degraded_rows_total",
    "Rows replaced by a fallback row during projection"
)
EXPORT_BYTES_TOTAL = Counter(
    "export_bytes_total",
    "Total bytes generated for exports (streamed or published)"
)

EXPORT_DOWNLOADS_PUBLISHED = Counter(
    "export_downloads_published_total",
    "Artifacts published under a transient download URL"
)
EXPORT_DOWNLOADS_RELEASED = Counter(
    "export_downloads_released_total",
    "Transient download URLs released"
)

STATS_CACHE_LOOKUPS = Counter(
    "stats_cache_lookups_total",
    "Statistics cache lookups",
    ["result"]
)

__all__ = [
    "EXPORT_REQUESTS",
    "EXPORT_GENERATION_SECONDS",
    "EXPORT_FAILURES",
    "EXPORT_CSV_FALLBACKS",
    "EXPORT_DEGRADED_ROWS",
    "EXPORT_BYTES_TOTAL",
    "EXPORT_DOWNLOADS_PUBLISHED",
    "EXPORT_DOWNLOADS_RELEASED",
    "STATS_CACHE_LOOKUPS",
]
