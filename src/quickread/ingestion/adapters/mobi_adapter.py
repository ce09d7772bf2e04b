"""Kindle (MOBI/AZW/PRC) adapter built on the PalmDB container reader."""

from __future__ import annotations

from collections.abc import Hashable
import logging
from pathlib import Path
import re

from bs4 import Tag

from quickread.ingestion.builder import ResourceRun, WordStreamBuilder
from quickread.ingestion.markup import document_body, first_heading_text, iter_blocks, parse_html
from quickread.ingestion.models import ParseResult
from quickread.ingestion.normalization import normalize_whitespace, title_from_filename
from quickread.ingestion.palmdb import KindleBook, has_kindle_signature, read_kindle_book
from quickread.ingestion.resources import ResourceStore, acquisition_cache

logger = logging.getLogger(__name__)

_CHAPTER_TAGS = frozenset({"h1", "h2", "h3"})
_KINDLE_EMBED_RE = re.compile(r"kindle:embed:([0-9A-Va-v]+)")


def image_index_from_ref(element: Tag) -> int | None:
    """Relative image number referenced by ``recindex`` or ``kindle:embed``."""

    recindex = element.get("recindex")
    if recindex and recindex.strip().isdigit():
        return int(recindex.strip())
    src = element.get("src") or ""
    match = _KINDLE_EMBED_RE.search(src)
    if match:
        return int(match.group(1), 32)
    return None


class MobiAdapter:
    """Extract words from PalmDB-based Kindle books."""

    format_name = "mobi"
    extensions = ("mobi", "azw", "azw3", "prc")

    def __init__(self, resource_store: ResourceStore | None = None) -> None:
        self._resource_store = resource_store

    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        if path.suffix.lower() in {".mobi", ".azw", ".azw3", ".prc"}:
            return True
        if sniffed_bytes is None:
            return False
        return has_kindle_signature(sniffed_bytes)

    def extract(self, raw_bytes: bytes, source_name: str, *, words_per_page: int) -> ParseResult:
        book = read_kindle_book(raw_bytes)
        for warning in book.warnings:
            logger.warning("%s: %s", source_name, warning)

        soup = parse_html(book.html)
        title = normalize_whitespace(book.title) or first_heading_text(soup, ("h1",))
        builder = WordStreamBuilder(words_per_page)
        with acquisition_cache(self._resource_store) as image_cache:

            def resolve(element: Tag) -> ResourceRun | None:
                return self._resolve_image(book, element, image_cache)

            builder.add_sectioned_blocks(
                iter_blocks(document_body(soup), resolve_image=resolve),
                chapter_tags=_CHAPTER_TAGS,
                default_title=title or "Content",
            )
            document, preview = builder.build()
        if self._resource_store is not None:
            self._resource_store.release_untracked(image_cache.values(), preview.resource_handles())

        return ParseResult(
            document=document,
            format_name=self.format_name,
            title=title or title_from_filename(source_name),
            warnings=list(book.warnings),
            preview=preview,
        )

    def _resolve_image(self, book: KindleBook, element: Tag, cache: dict[Hashable, str]) -> ResourceRun | None:
        if self._resource_store is None:
            return None
        index = image_index_from_ref(element)
        if index is None:
            return None
        image = book.image(index)
        if image is None:
            logger.debug("Kindle image %d not present in container", index)
            return None
        if image.record_index not in cache:
            cache[image.record_index] = self._resource_store.acquire(image.data, image.media_type)
        return ResourceRun(
            ref=f"record:{image.record_index}",
            handle=cache[image.record_index],
            alt=element.get("alt") or "",
        )
