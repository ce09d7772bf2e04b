"""Error taxonomy for terminal parse failures and per-unit warnings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import ClassVar


class ErrorKind(str, Enum):
    """Machine-distinguishable failure kinds surfaced to callers."""

    MALFORMED_CONTAINER = "malformed-container"
    DRM_PROTECTED = "drm-protected"
    UNSUPPORTED_COMPRESSION = "unsupported-compression"
    EMPTY_DOCUMENT = "empty-document"
    UNSUPPORTED_FORMAT = "unsupported-format"
    UNREADABLE = "unreadable"


@dataclass(slots=True)
class IngestionError(Exception):
    """Terminal failure for one file; the whole parse is abandoned."""

    message: str
    path: Path | None = None

    kind: ClassVar[ErrorKind] = ErrorKind.UNREADABLE

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.message} (path={self.path})"


class MalformedContainerError(IngestionError):
    """Structurally invalid binary header or record table."""

    kind = ErrorKind.MALFORMED_CONTAINER


class DrmProtectedError(IngestionError):
    """Encrypted container; there is no workaround."""

    kind = ErrorKind.DRM_PROTECTED


class UnsupportedCompressionError(IngestionError):
    kind = ErrorKind.UNSUPPORTED_COMPRESSION


class EmptyDocumentError(IngestionError):
    """The file parsed structurally but yielded zero words."""

    kind = ErrorKind.EMPTY_DOCUMENT


class UnsupportedFormatError(IngestionError):
    kind = ErrorKind.UNSUPPORTED_FORMAT


@dataclass(slots=True)
class UnitParseWarning:
    """Non-terminal failure attached to one structural unit."""

    unit_title: str
    message: str

    def __str__(self) -> str:
        return f'Failed to parse chapter "{self.unit_title}": {self.message}'
