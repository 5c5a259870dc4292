# backend/app/config.py
from pydantic_settings import BaseSettings
from pathlib import Path
from pydantic import field_validator

class Settings(BaseSettings):
    """Application settings from environment variables"""

    admin_api_key: str = "change-this-in-production"  # For cache management endpoints

    # ===== SPREADSHEET EXPORT LIMITS =====
    # Guardrails, not truncation: exceeding them rejects the export
    export_excel_max_rows: int = 10_000
    export_excel_max_file_size_mb: int = 50
    export_excel_timeout_seconds: float = 45.0

    # ===== PDF EXPORT LIMITS =====
    export_pdf_max_rows: int = 10_000
    export_pdf_max_file_size_mb: int = 25
    export_pdf_timeout_seconds: float = 45.0

    # PDF page defaults: "a4" | "letter", "portrait" | "landscape"
    export_pdf_page_format: str = "a4"
    export_pdf_orientation: str = "portrait"
    export_pdf_include_header: bool = True
    export_pdf_include_footer: bool = True

    # ===== DOWNLOAD DELIVERY =====
    # Published artifacts are served from a transient URL and released after this delay
    export_downloads_enabled: bool = True
    export_download_release_seconds: float = 60.0
    export_download_grace_seconds: float = 1.0  # kept alive briefly after the download starts
    export_download_url_prefix: str = "/api/institutions/export/downloads"

    # ===== STATISTICS CACHE =====
    stats_cache_ttl_seconds: int = 300  # 5 minutes
    cleanup_interval_seconds: int = 60

    # Paths
    log_dir: Path = Path("logs")

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]
    @field_validator("cors_origins", mode="before")
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [v]
        return v

    @field_validator("export_pdf_page_format", "export_pdf_orientation", mode="before")
    def lower_case_choice(cls, v):
        return v.lower() if isinstance(v, str) else v

    # Environment
    environment: str = "development"  # development, production

    class Config:
        # Point explicitly to backend/.env so scripts run from repo root still load variables
        env_file = Path(__file__).resolve().parent.parent / ".env"
        case_sensitive = False
        extra = "ignore"  # Allow future env vars without breaking startup

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.log_dir.mkdir(parents=True, exist_ok=True)

# Global settings instance
settings = Settings()
