"""Format adapter implementations and contracts."""

from __future__ import annotations

import logging

from quickread.ingestion.resources import ResourceStore

from .base import IngestionAdapter
from .html_adapter import HTMLAdapter
from .markdown_adapter import MarkdownAdapter
from .mobi_adapter import MobiAdapter

logger = logging.getLogger(__name__)

try:
    from .pdf_adapter import PDFAdapter
except ImportError:
    PDFAdapter = None
    logger.warning("PDF support unavailable: install 'pymupdf'")

try:
    from .epub_adapter import EPUBAdapter
except ImportError:
    EPUBAdapter = None
    logger.warning("EPUB support unavailable: install 'EbookLib'")

try:
    from .fb2_adapter import FB2Adapter
except ImportError:
    FB2Adapter = None
    logger.warning("FB2 support unavailable: install 'lxml'")

try:
    from .txt_adapter import TXTAdapter
except ImportError:
    TXTAdapter = None
    logger.warning("TXT support unavailable: install 'charset-normalizer'")


def build_default_adapters(resource_store: ResourceStore | None = None) -> dict[str, IngestionAdapter]:
    """Return the default format adapter map, most specific formats first."""

    adapters: dict[str, IngestionAdapter] = {"mobi": MobiAdapter(resource_store)}
    if PDFAdapter is not None:
        adapters["pdf"] = PDFAdapter()
    if EPUBAdapter is not None:
        adapters["epub"] = EPUBAdapter(resource_store)
    if FB2Adapter is not None:
        adapters["fb2"] = FB2Adapter(resource_store)
    adapters["html"] = HTMLAdapter(resource_store)
    adapters["markdown"] = MarkdownAdapter()
    if TXTAdapter is not None:
        adapters["txt"] = TXTAdapter()
    return adapters


__all__ = [
    "IngestionAdapter",
    "EPUBAdapter",
    "FB2Adapter",
    "HTMLAdapter",
    "MarkdownAdapter",
    "MobiAdapter",
    "PDFAdapter",
    "TXTAdapter",
    "build_default_adapters",
]
