"""TXT adapter with encoding detection and blank-line paragraphs."""

from __future__ import annotations

from pathlib import Path
import re

from charset_normalizer import from_bytes

from quickread.ingestion.builder import Block, TextRun, WordStreamBuilder
from quickread.ingestion.models import ParseResult
from quickread.ingestion.normalization import normalize_text, normalize_whitespace, title_from_filename

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_HEADER_FIELDS = {
    "title": "title",
    "author": "author",
    "название": "title",
    "автор": "author",
}


class TXTAdapter:
    """Extract plain-text books with robust charset handling."""

    format_name = "txt"
    extensions = ("txt", "text")

    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        if path.suffix.lower() in {".txt", ".text"}:
            return True
        if sniffed_bytes is None:
            return False

        if path.suffix:
            return False

        prefix = sniffed_bytes.lstrip()
        if prefix.startswith((b"%PDF-", b"PK\x03\x04", b"<?xml", b"<FictionBook", b"<!DOCTYPE", b"<html")):
            return False

        return b"\x00" not in sniffed_bytes

    def extract(self, raw_bytes: bytes, source_name: str, *, words_per_page: int) -> ParseResult:
        encoding = self._detect_encoding(raw_bytes)
        text = normalize_text(raw_bytes.decode(encoding).replace("\r\n", "\n").replace("\r", "\n"))
        text = text.lstrip("\ufeff")

        builder = WordStreamBuilder(words_per_page)
        builder.begin_unit(title_from_filename(source_name))
        for paragraph in _PARAGRAPH_SPLIT_RE.split(text):
            if paragraph.strip():
                builder.add_block(Block(tag="p", runs=[TextRun(paragraph)]))
        document, preview = builder.build(with_chapters=False)

        title, author = self._extract_metadata(text)
        return ParseResult(
            document=document,
            format_name=self.format_name,
            title=title or title_from_filename(source_name),
            author=author,
            preview=preview,
        )

    def _detect_encoding(self, raw: bytes) -> str:
        if raw.startswith(b"\xef\xbb\xbf"):
            return "utf-8-sig"
        try:
            raw.decode("utf-8")
            return "utf-8"
        except UnicodeDecodeError:
            pass

        best = from_bytes(raw).best()
        if best and best.encoding:
            return best.encoding
        return "latin-1"

    def _extract_metadata(self, text: str) -> tuple[str | None, str | None]:
        title: str | None = None
        author: str | None = None
        for line in text.splitlines()[:20]:
            normalized = normalize_whitespace(line)
            if not normalized or ":" not in normalized:
                continue
            key, value = normalized.split(":", 1)
            field = _HEADER_FIELDS.get(key.strip().casefold())
            clean_value = normalize_whitespace(value)
            if not field or not clean_value:
                continue
            if field == "title" and not title:
                title = clean_value
            if field == "author" and not author:
                author = clean_value
        return title, author
