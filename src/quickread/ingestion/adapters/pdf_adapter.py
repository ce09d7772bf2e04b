"""PDF adapter producing one reading unit per PDF page."""

from __future__ import annotations

import logging
from pathlib import Path

import pymupdf

from quickread.ingestion.builder import Block, TextRun, WordStreamBuilder
from quickread.ingestion.errors import MalformedContainerError, UnitParseWarning
from quickread.ingestion.models import ParseResult
from quickread.ingestion.normalization import first_non_empty, title_from_filename

logger = logging.getLogger(__name__)

_PDF_MAGIC = b"%PDF-"


class PDFAdapter:
    """Extract paragraph-like blocks from PDF pages in stable order."""

    format_name = "pdf"
    extensions = ("pdf",)

    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        if path.suffix.lower() == ".pdf":
            return True
        if sniffed_bytes is None:
            return False
        return sniffed_bytes.startswith(_PDF_MAGIC)

    def extract(self, raw_bytes: bytes, source_name: str, *, words_per_page: int) -> ParseResult:
        try:
            doc = pymupdf.open(stream=raw_bytes, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise MalformedContainerError(f"Invalid PDF document: {exc}") from exc

        warnings: list[str] = []
        builder = WordStreamBuilder(words_per_page)
        with doc:
            doc_metadata = doc.metadata or {}
            title = first_non_empty([doc_metadata.get("title")])
            author = first_non_empty([doc_metadata.get("author")])

            for page_number, page in enumerate(doc, start=1):
                label = f"Page {page_number}"
                builder.begin_unit(label, href=f"page-{page_number}")
                try:
                    for block in self._page_blocks(page):
                        builder.add_block(block)
                except RuntimeError as exc:
                    warning = UnitParseWarning(label, str(exc))
                    logger.warning("%s", warning)
                    warnings.append(str(warning))
                builder.end_unit()

        document, preview = builder.build()
        return ParseResult(
            document=document,
            format_name=self.format_name,
            title=title or title_from_filename(source_name),
            author=author,
            warnings=warnings,
            preview=preview,
        )

    def _page_blocks(self, page: pymupdf.Page) -> list[Block]:
        page_blocks = page.get_text("blocks")
        # (x0, y0, x1, y1, text, block_no, block_type); type 1 is an image block
        ordered_blocks = sorted(page_blocks, key=lambda row: (row[1], row[0], row[5]))
        return [
            Block(tag="p", runs=[TextRun(block[4])])
            for block in ordered_blocks
            if block[6] == 0 and block[4].strip()
        ]
