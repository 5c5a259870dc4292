"""Classified export errors and the non-raising result type.

Every failure that leaves the export pipeline is one of four kinds:
- DATA_ERROR: caller input is unexportable (empty set, too many rows, bad options)
- GENERATION_ERROR: building the artifact failed (timeout, size limit, renderer crash)
- DOWNLOAD_ERROR: the artifact was built but could not be handed over
- PERMISSION_ERROR: the delivery target cannot accept downloads at all

Messages are Spanish and user-facing; ``details`` is diagnostic only.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional


class ExportErrorCode(str, Enum):
    GENERATION_ERROR = "GENERATION_ERROR"
    DOWNLOAD_ERROR = "DOWNLOAD_ERROR"
    DATA_ERROR = "DATA_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"


class ExportError(Exception):
    """An error tagged with one of the four export error kinds."""

    def __init__(
        self,
        code: ExportErrorCode,
        message: str,
        details: Any = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.code = ExportErrorCode(code)
        self.message = message
        self.details = details
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"ExportError(code={self.code.value!r}, message={self.message!r})"


def data_error(message: str, details: Any = None) -> ExportError:
    return ExportError(ExportErrorCode.DATA_ERROR, message, details)


def generation_error(message: str, details: Any = None, cause: Optional[BaseException] = None) -> ExportError:
    return ExportError(ExportErrorCode.GENERATION_ERROR, message, details, cause)


class ExportArtifact(NamedTuple):
    """Generated file: unpacks like the (bytes, filename, content_type) tuples exporters return."""
    content: bytes
    filename: str
    content_type: str

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ExportResult:
    """Either an artifact or a classified error, never both."""
    artifact: Optional[ExportArtifact] = None
    error: Optional[ExportError] = None

    @classmethod
    def ok(cls, artifact: ExportArtifact) -> "ExportResult":
        return cls(artifact=artifact)

    @classmethod
    def fail(cls, error: ExportError) -> "ExportResult":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> ExportArtifact:
        if self.error is not None:
            raise self.error
        return self.artifact
