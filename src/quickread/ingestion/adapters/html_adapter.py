"""HTML adapter splitting documents into heading-delimited chapters."""

from __future__ import annotations

import base64
import binascii
import hashlib
from collections.abc import Hashable
from pathlib import Path

from bs4 import Tag

from quickread.ingestion.builder import ResourceRun, WordStreamBuilder
from quickread.ingestion.markup import document_body, first_heading_text, iter_blocks, parse_html
from quickread.ingestion.models import ParseResult
from quickread.ingestion.normalization import first_non_empty, title_from_filename
from quickread.ingestion.resources import ResourceStore, acquisition_cache

_CHAPTER_TAGS = frozenset({"h1", "h2"})
_HTML_PREFIXES = (b"<!doctype html", b"<html")


def decode_data_uri(uri: str) -> tuple[str, bytes] | None:
    """Decode a base64 ``data:`` URI into (media type, payload)."""

    if not uri.startswith("data:") or "," not in uri:
        return None
    header, payload = uri[5:].split(",", 1)
    if not header.endswith(";base64"):
        return None
    try:
        return header[: -len(";base64")] or "application/octet-stream", base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        return None


class HTMLAdapter:
    """Extract words from standalone HTML pages."""

    format_name = "html"
    extensions = ("html", "htm", "xhtml")

    def __init__(self, resource_store: ResourceStore | None = None) -> None:
        self._resource_store = resource_store

    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        if path.suffix.lower() in {".html", ".htm", ".xhtml"}:
            return True
        if not sniffed_bytes or path.suffix:
            return False
        return sniffed_bytes.lstrip()[:16].lower().startswith(_HTML_PREFIXES)

    def extract(self, raw_bytes: bytes, source_name: str, *, words_per_page: int) -> ParseResult:
        soup = parse_html(raw_bytes)

        title_tag = soup.find("title")
        title = first_non_empty(
            [title_tag.get_text(" ", strip=True) if title_tag else None, first_heading_text(soup, ("h1",))]
        )
        author_meta = soup.find("meta", attrs={"name": "author"})
        author = first_non_empty([author_meta.get("content") if author_meta else None])

        builder = WordStreamBuilder(words_per_page)
        with acquisition_cache(self._resource_store) as image_cache:

            def resolve(element: Tag) -> ResourceRun | None:
                return self._resolve_image(element, image_cache)

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
            author=author,
            preview=preview,
        )

    def _resolve_image(self, element: Tag, cache: dict[Hashable, str]) -> ResourceRun | None:
        src = element.get("src") or ""
        if self._resource_store is None or not src:
            return None
        if src not in cache:
            decoded = decode_data_uri(src)
            if decoded is None:
                return None
            media_type, payload = decoded
            cache[src] = self._resource_store.acquire(payload, media_type)
        handle = cache[src]
        ref = f"data-uri:{hashlib.sha256(src.encode('utf-8')).hexdigest()[:16]}"
        return ResourceRun(ref=ref, handle=handle, alt=element.get("alt") or "")
