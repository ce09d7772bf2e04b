"""Ingestion package interfaces."""

from .adapters import build_default_adapters
from .errors import (
    DrmProtectedError,
    EmptyDocumentError,
    ErrorKind,
    IngestionError,
    MalformedContainerError,
    UnitParseWarning,
    UnsupportedCompressionError,
    UnsupportedFormatError,
)
from .ingestor import DocumentIngestor, generate_file_key
from .models import ChapterContent, ChapterInfo, ParsedDocument, ParseResult, PreviewContent, Word
from .pagination import reconcile
from .resources import ResourceStore

__all__ = [
    "ChapterContent",
    "ChapterInfo",
    "DocumentIngestor",
    "DrmProtectedError",
    "EmptyDocumentError",
    "ErrorKind",
    "IngestionError",
    "MalformedContainerError",
    "ParseResult",
    "ParsedDocument",
    "PreviewContent",
    "ResourceStore",
    "UnitParseWarning",
    "UnsupportedCompressionError",
    "UnsupportedFormatError",
    "Word",
    "build_default_adapters",
    "generate_file_key",
    "reconcile",
]
