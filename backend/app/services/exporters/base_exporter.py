"""Base exporter with the guardrails shared by every output format.

Both renderers follow the same contract:
- reject empty input and input above ``max_rows`` before doing any work (DATA_ERROR)
- build the file off the event loop, raced against ``timeout_seconds`` (GENERATION_ERROR)
- reject serialized output above ``max_file_size_mb`` (GENERATION_ERROR)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from app.models import ExportOptions
from .errors import ExportArtifact, data_error, generation_error
from .projector import ProjectionResult, ReportMetadata

T = TypeVar("T")

BYTES_PER_MB = 1024 * 1024

MSG_EMPTY = "No hay instituciones para exportar"
MSG_TIMEOUT = "Tiempo de espera agotado durante la exportación"


@dataclass(frozen=True)
class ExportConfig:
    max_rows: int = 10_000
    max_file_size_mb: float = 50
    timeout_seconds: float = 45.0


class BaseExporter:
    """Base class for all exporters with common guardrails."""

    format_label = "export"

    def __init__(self, config: Optional[ExportConfig] = None):
        self.config = config or ExportConfig()

    def check_input(self, projection: ProjectionResult) -> None:
        """Fail fast on inputs the renderer refuses to handle."""
        if len(projection) == 0:
            raise data_error(MSG_EMPTY)
        if len(projection) > self.config.max_rows:
            raise data_error(
                f"Demasiadas instituciones para exportar. Máximo permitido: {self.config.max_rows}",
                details={"rows": len(projection), "max_rows": self.config.max_rows},
            )

    def check_size(self, content: bytes) -> None:
        size_mb = len(content) / BYTES_PER_MB
        if size_mb > self.config.max_file_size_mb:
            raise generation_error(
                f"El archivo es demasiado grande ({size_mb:.2f}MB). "
                f"Máximo permitido: {self.config.max_file_size_mb}MB",
                details={"size_bytes": len(content)},
            )

    async def run_with_timeout(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking build step in a thread, raced against the timeout budget.

        The worker thread cannot be interrupted; on expiry its result is discarded.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise generation_error(
                MSG_TIMEOUT,
                details={"timeout_seconds": self.config.timeout_seconds, "format": self.format_label},
                cause=e,
            )

    async def render(
        self,
        projection: ProjectionResult,
        metadata: ReportMetadata,
        options: ExportOptions,
    ) -> ExportArtifact:
        raise NotImplementedError
