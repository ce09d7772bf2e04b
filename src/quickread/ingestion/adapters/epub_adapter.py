"""EPUB adapter preserving reading-order chapter/item boundaries."""

from __future__ import annotations

import logging
from collections.abc import Hashable
from io import BytesIO
from pathlib import Path
import posixpath
from urllib.parse import unquote, urldefrag
from zipfile import BadZipFile

import ebooklib
from bs4 import Tag
from ebooklib import epub

from quickread.ingestion.builder import ResourceRun, WordStreamBuilder
from quickread.ingestion.errors import MalformedContainerError, UnitParseWarning
from quickread.ingestion.markup import document_body, iter_blocks, parse_html
from quickread.ingestion.models import ParseResult
from quickread.ingestion.normalization import first_non_empty, normalize_whitespace, title_from_filename
from quickread.ingestion.resources import ResourceStore, acquisition_cache

logger = logging.getLogger(__name__)

_IMAGE_ITEM_TYPES = frozenset({ebooklib.ITEM_IMAGE, ebooklib.ITEM_COVER})
NO_TOC_WARNING = "No table of contents; chapter titles fall back to section numbers"


def _metadata_values(values: list[tuple[str, dict[str, str]]] | None) -> list[str | None]:
    return [value for value, _attrs in values or []]


def _toc_titles(entries: object, titles: dict[str, str] | None = None) -> dict[str, str]:
    """Map TOC hrefs (fragment stripped) to their first label."""

    titles = {} if titles is None else titles
    for entry in entries or []:
        if isinstance(entry, tuple):
            section, children = entry
            _record_toc_entry(section, titles)
            _toc_titles(children, titles)
        else:
            _record_toc_entry(entry, titles)
    return titles


def _record_toc_entry(entry: object, titles: dict[str, str]) -> None:
    href = getattr(entry, "href", None)
    title = normalize_whitespace(getattr(entry, "title", None) or "")
    if not href or not title:
        return
    titles.setdefault(unquote(urldefrag(href)[0]), title)


class EPUBAdapter:
    """Extract text from EPUB document items in spine order."""

    format_name = "epub"
    extensions = ("epub",)

    def __init__(self, resource_store: ResourceStore | None = None) -> None:
        self._resource_store = resource_store

    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        if path.suffix.lower() == ".epub":
            return True
        if sniffed_bytes is None or path.suffix:
            return False
        return sniffed_bytes.startswith(b"PK\x03\x04") and b"application/epub+zip" in sniffed_bytes[:128]

    def extract(self, raw_bytes: bytes, source_name: str, *, words_per_page: int) -> ParseResult:
        book = self._read_book(raw_bytes)
        title = first_non_empty(_metadata_values(book.get_metadata("DC", "title")))
        author = first_non_empty(_metadata_values(book.get_metadata("DC", "creator")))

        toc_titles = _toc_titles(book.toc)
        warnings: list[str] = []
        if not toc_titles:
            warnings.append(NO_TOC_WARNING)
            logger.warning("%s: %s", source_name, NO_TOC_WARNING)
        builder = WordStreamBuilder(words_per_page)

        with acquisition_cache(self._resource_store) as image_cache:
            position = 0
            for spine_entry in book.spine:
                item_id = spine_entry[0] if isinstance(spine_entry, tuple) else spine_entry
                item = book.get_item_with_id(item_id)
                if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT or not item.is_chapter():
                    continue
                position += 1
                label = toc_titles.get(item.file_name) or f"Section {position}"

                def resolve(element: Tag, _item: epub.EpubItem = item) -> ResourceRun | None:
                    return self._resolve_image(book, _item, element, image_cache)

                builder.begin_unit(label, href=item.file_name)
                try:
                    soup = parse_html(item.get_content(), xml=True)
                    for block in iter_blocks(document_body(soup), resolve_image=resolve):
                        builder.add_block(block)
                except Exception as exc:
                    warning = UnitParseWarning(label, str(exc))
                    logger.warning("%s", warning)
                    warnings.append(str(warning))
                builder.end_unit()

            document, preview = builder.build()
        if self._resource_store is not None:
            self._resource_store.release_untracked(image_cache.values(), preview.resource_handles())

        return ParseResult(
            document=document,
            format_name=self.format_name,
            title=title or title_from_filename(source_name),
            author=author,
            warnings=warnings,
            preview=preview,
        )

    def _read_book(self, raw_bytes: bytes) -> epub.EpubBook:
        try:
            return epub.read_epub(BytesIO(raw_bytes))
        except (BadZipFile, epub.EpubException, KeyError) as exc:
            raise MalformedContainerError(f"Invalid EPUB container: {exc}") from exc

    def _resolve_image(
        self,
        book: epub.EpubBook,
        chapter: epub.EpubItem,
        element: Tag,
        cache: dict[Hashable, str],
    ) -> ResourceRun | None:
        if self._resource_store is None:
            return None
        src = element.get("src") or element.get("xlink:href") or element.get("href") or ""
        if not src or src.startswith(("data:", "http:", "https:")):
            return None
        href = posixpath.normpath(posixpath.join(posixpath.dirname(chapter.file_name), unquote(urldefrag(src)[0])))
        if href not in cache:
            image = book.get_item_with_href(href)
            if image is None or image.get_type() not in _IMAGE_ITEM_TYPES:
                logger.debug("EPUB image %s not found in manifest", href)
                return None
            cache[href] = self._resource_store.acquire(image.get_content(), image.media_type or "image/jpeg")
        return ResourceRun(ref=src, handle=cache[href], alt=element.get("alt") or "")
