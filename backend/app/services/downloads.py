"""Transient download URLs for generated export artifacts.

An artifact published here is reachable under a random token URL until it is
released. Release is always deferred: a fresh URL lives for ``release_after``
seconds, and once a client starts the download it is kept for a short ``grace``
period instead of being revoked immediately, so the transfer is not cut off.
"""
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from app.config import settings
from app.services.exporters.errors import ExportArtifact
from app.utils.logging import logger
from app.utils.metrics import EXPORT_DOWNLOADS_PUBLISHED, EXPORT_DOWNLOADS_RELEASED


@dataclass
class _PublishedArtifact:
    artifact: ExportArtifact
    release_at: float
    initiated: bool = False


class TransientDownloadStore:
    """In-memory registry of published artifacts."""

    def __init__(
        self,
        url_prefix: str = "/downloads",
        release_after: float = 60.0,
        grace: float = 1.0,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.url_prefix = url_prefix.rstrip("/")
        self.release_after = release_after
        self.grace = grace
        self.enabled = enabled
        self._clock = clock
        self._entries: Dict[str, _PublishedArtifact] = {}

    def url_for(self, token: str) -> str:
        return f"{self.url_prefix}/{token}"

    def publish(self, artifact: ExportArtifact) -> str:
        """Register the artifact and return its transient URL.

        Raises:
            PermissionError: if downloads are disabled in this environment
            ValueError: if the artifact is empty
        """
        if not self.enabled:
            raise PermissionError("Downloads are disabled")
        if not artifact.content:
            raise ValueError("Cannot publish an empty artifact")

        token = secrets.token_urlsafe(16)
        self._entries[token] = _PublishedArtifact(
            artifact=artifact,
            release_at=self._clock() + self.release_after,
        )
        url = self.url_for(token)
        EXPORT_DOWNLOADS_PUBLISHED.inc()
        logger.info("Export artifact published", extra={
            "export_id": token[:8],
            "export_filename": artifact.filename,
            "size_bytes": artifact.size_bytes,
        })
        return url

    def get(self, token: str) -> Optional[ExportArtifact]:
        entry = self._entries.get(token)
        if entry is None:
            return None
        if self._clock() >= entry.release_at:
            self.release(token)
            return None
        return entry.artifact

    def start_download(self, token: str) -> Optional[ExportArtifact]:
        """Hand out the artifact and schedule its release after the grace period."""
        artifact = self.get(token)
        if artifact is None:
            return None
        entry = self._entries[token]
        if not entry.initiated:
            entry.initiated = True
            entry.release_at = min(entry.release_at, self._clock() + self.grace)
        return artifact

    def release(self, token: str) -> bool:
        if self._entries.pop(token, None) is None:
            return False
        EXPORT_DOWNLOADS_RELEASED.inc()
        logger.info("Export artifact released", extra={"export_id": token[:8]})
        return True

    def clear_expired(self) -> int:
        now = self._clock()
        expired = [token for token, entry in self._entries.items() if now >= entry.release_at]
        for token in expired:
            self.release(token)
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class PublishingSink:
    """Download sink for export_institutions: publishes into a store and keeps the URL."""

    def __init__(self, store: TransientDownloadStore):
        self.store = store
        self.url: Optional[str] = None

    def deliver(self, artifact: ExportArtifact) -> str:
        self.url = self.store.publish(artifact)
        return self.url


def create_download_store() -> TransientDownloadStore:
    return TransientDownloadStore(
        url_prefix=settings.export_download_url_prefix,
        release_after=settings.export_download_release_seconds,
        grace=settings.export_download_grace_seconds,
        enabled=settings.export_downloads_enabled,
    )
