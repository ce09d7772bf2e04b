"""Routing entrypoint for ingestion adapters."""

from __future__ import annotations

import logging
from pathlib import Path, PurePath

from quickread.ingestion.adapters import build_default_adapters
from quickread.ingestion.adapters.base import IngestionAdapter
from quickread.ingestion.builder import DEFAULT_WORDS_PER_PAGE
from quickread.ingestion.errors import EmptyDocumentError, IngestionError, UnsupportedFormatError
from quickread.ingestion.models import ParseResult
from quickread.ingestion.pagination import DEFAULT_MIN_WORDS_PER_PAGE, reconcile
from quickread.ingestion.resources import ResourceStore

logger = logging.getLogger(__name__)


def generate_file_key(filename: str, size: int) -> str:
    """Stable key used to remember reading positions across sessions."""

    return f"{filename}_{size}"


class DocumentIngestor:
    """Resolve the right adapter and return a reconciled parse result."""

    def __init__(
        self,
        sniff_bytes: int = 4096,
        *,
        words_per_page: int = DEFAULT_WORDS_PER_PAGE,
        min_words_per_page: int = DEFAULT_MIN_WORDS_PER_PAGE,
        resource_store: ResourceStore | None = None,
    ) -> None:
        if words_per_page < 1:
            raise ValueError("words_per_page must be >= 1")
        if min_words_per_page < 1:
            raise ValueError("min_words_per_page must be >= 1")
        self._sniff_bytes = sniff_bytes
        self._words_per_page = words_per_page
        self._min_words_per_page = min_words_per_page
        self._resource_store = resource_store
        self._adapter_map: dict[str, IngestionAdapter] = {}

    @classmethod
    def with_default_adapters(cls, sniff_bytes: int = 4096, **kwargs: object) -> DocumentIngestor:
        """Build an ingestor with every bundled adapter registered."""

        ingestor = cls(sniff_bytes, **kwargs)
        for name, adapter in build_default_adapters(ingestor.resource_store).items():
            ingestor.register_adapter(name, adapter)
        return ingestor

    @property
    def resource_store(self) -> ResourceStore | None:
        return self._resource_store

    @property
    def adapter_map(self) -> dict[str, IngestionAdapter]:
        """Registered adapters keyed by adapter name."""

        return dict(self._adapter_map)

    @property
    def supported_extensions(self) -> list[str]:
        extensions: list[str] = []
        for adapter in self._adapter_map.values():
            for extension in adapter.extensions:
                if extension not in extensions:
                    extensions.append(extension)
        return extensions

    def accept_string(self) -> str:
        """Comma-separated extension list suitable for a file picker."""

        return ",".join(f".{extension}" for extension in self.supported_extensions)

    def register_adapter(self, name: str, adapter: IngestionAdapter) -> None:
        """Register an adapter implementation by key."""

        if not name:
            raise ValueError("Adapter name cannot be empty")
        self._adapter_map[name] = adapter

    def select_adapter(self, path: str | PurePath, sniffed: bytes | None = None) -> IngestionAdapter | None:
        """Pick an adapter by extension first, then by content signature."""

        source = PurePath(path)
        for adapter in self._adapter_map.values():
            if adapter.supports(Path(source), None):
                return adapter
        if sniffed:
            for adapter in self._adapter_map.values():
                if adapter.supports(Path(source), sniffed):
                    return adapter
        return None

    def ingest(self, path: str | Path) -> ParseResult:
        """Read a file and return its reconciled parse result."""

        source = Path(path)
        raw_bytes = self._read_bytes(source)
        return self._ingest(raw_bytes, source)

    def ingest_bytes(self, raw_bytes: bytes, filename: str) -> ParseResult:
        """Parse an in-memory payload; ``filename`` drives adapter selection."""

        return self._ingest(raw_bytes, Path(filename))

    def _ingest(self, raw_bytes: bytes, source: Path) -> ParseResult:
        adapter = self.select_adapter(source, raw_bytes[: self._sniff_bytes])
        if adapter is None:
            extension = source.suffix.lstrip(".").lower() or "unknown"
            supported = ", ".join(f".{item}" for item in self.supported_extensions)
            raise UnsupportedFormatError(f"Unsupported file type: .{extension}. Supported formats: {supported}", source)

        try:
            extracted = adapter.extract(raw_bytes, source.name, words_per_page=self._words_per_page)
        except IngestionError as exc:
            if exc.path is None:
                exc.path = source
            raise
        except Exception as exc:
            raise IngestionError(f"Adapter extraction failed: {exc}", source) from exc

        if not isinstance(extracted, ParseResult):
            raise IngestionError("Adapter returned non-canonical output", source)

        result = reconcile(extracted, min_words_per_page=self._min_words_per_page)
        if result.document.total_words == 0:
            if self._resource_store is not None:
                result.release_resources(self._resource_store)
            raise EmptyDocumentError("Document contains no readable text", source)

        result.document.validate()
        result.file_key = generate_file_key(source.name, len(raw_bytes))
        logger.info(
            "Parsed %s as %s: %d words, %d pages, %d chapters",
            source.name,
            result.format_name,
            result.document.total_words,
            result.document.total_pages,
            len(result.chapters),
        )
        return result

    def _read_bytes(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise IngestionError(f"Failed to read source file: {exc}", path) from exc
