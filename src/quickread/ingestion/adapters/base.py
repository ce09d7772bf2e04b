"""Shared adapter contract for per-format word-stream parsers."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from quickread.ingestion.models import ParseResult


@runtime_checkable
class IngestionAdapter(Protocol):
    """Protocol that every format adapter must implement."""

    format_name: str
    extensions: tuple[str, ...]

    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        """Return True when this adapter can parse the given file."""

    def extract(self, raw_bytes: bytes, source_name: str, *, words_per_page: int) -> ParseResult:
        """Parse raw bytes into the canonical word stream with provisional pages."""
