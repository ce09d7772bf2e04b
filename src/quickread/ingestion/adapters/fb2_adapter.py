"""FB2 adapter with raw and zipped container support."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Hashable
from io import BytesIO
import logging
from pathlib import Path
from typing import Iterator
from zipfile import BadZipFile, ZipFile

from lxml import etree

from quickread.ingestion.builder import Block, ResourceRun, TextRun, WordStreamBuilder
from quickread.ingestion.errors import MalformedContainerError, UnitParseWarning
from quickread.ingestion.models import ParseResult
from quickread.ingestion.normalization import normalize_whitespace, title_from_filename
from quickread.ingestion.resources import ResourceStore, acquisition_cache

logger = logging.getLogger(__name__)

_ZIP_MAGIC = b"PK\x03\x04"
_XLINK_HREF = "{http://www.w3.org/1999/xlink}href"
_PARAGRAPH_TAGS = frozenset({"p", "v", "subtitle", "text-author"})
_CONTAINER_TAGS = frozenset({"section", "poem", "stanza", "cite", "epigraph", "annotation"})


def _local_name(node: object) -> str:
    tag = getattr(node, "tag", None)
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname


class FB2Adapter:
    """Extract words and metadata from FictionBook sources."""

    format_name = "fb2"
    extensions = ("fb2", "fbz")

    def __init__(self, resource_store: ResourceStore | None = None) -> None:
        self._resource_store = resource_store

    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        suffixes = [part.lower() for part in path.suffixes]
        if suffixes and suffixes[-1] in {".fb2", ".fbz"}:
            return True
        if suffixes[-2:] == [".fb2", ".zip"]:
            return True
        if sniffed_bytes and not path.suffix:
            head = sniffed_bytes.lstrip()[:512]
            return b"<FictionBook" in head
        return False

    def extract(self, raw_bytes: bytes, source_name: str, *, words_per_page: int) -> ParseResult:
        xml_bytes = self._read_fb2_payload(raw_bytes, source_name)
        parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False, huge_tree=False, recover=True)
        try:
            root = etree.fromstring(xml_bytes, parser=parser)
        except etree.XMLSyntaxError as exc:
            raise MalformedContainerError(f"Invalid FB2 document: {exc}") from exc
        if root is None:
            raise MalformedContainerError("Invalid FB2 document: no root element")

        title, author = self._extract_metadata(root)
        warnings: list[str] = []
        builder = WordStreamBuilder(words_per_page)
        binaries = {
            node.get("id"): node
            for node in root.xpath("//*[local-name()='binary']")
            if node.get("id")
        }

        with acquisition_cache(self._resource_store) as image_cache:

            def resolve(node: etree._Element) -> ResourceRun | None:
                return self._resolve_image(node, binaries, image_cache)

            for index, (unit_title, unit) in enumerate(self._iter_units(root), start=1):
                label = unit_title or f"Section {index}"
                builder.begin_unit(label, href=f"section-{index}")
                try:
                    for block in self._section_blocks(unit, depth=0, resolve=resolve):
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

    def _read_fb2_payload(self, raw: bytes, source_name: str) -> bytes:
        if raw.startswith(_ZIP_MAGIC):
            return self._extract_from_zip(raw)
        return raw

    def _extract_from_zip(self, raw: bytes) -> bytes:
        try:
            with ZipFile(BytesIO(raw), "r") as archive:
                candidates = [name for name in archive.namelist() if not name.endswith("/")]
                fb2_name = next((name for name in candidates if name.lower().endswith(".fb2")), None)
                target = fb2_name or (candidates[0] if candidates else None)
                if not target:
                    raise MalformedContainerError("Zipped FB2 container has no readable files")
                return archive.read(target)
        except BadZipFile as exc:
            raise MalformedContainerError(f"Zipped FB2 container is corrupt: {exc}") from exc

    def _extract_metadata(self, root: etree._Element) -> tuple[str | None, str | None]:
        title = self._first_text(root.xpath("//*[local-name()='title-info']/*[local-name()='book-title']"))
        return title, self._extract_author(root)

    def _extract_author(self, root: etree._Element) -> str | None:
        authors = root.xpath("//*[local-name()='title-info']/*[local-name()='author']")
        names: list[str] = []
        for author in authors:
            first = self._first_text(author.xpath("./*[local-name()='first-name']"))
            middle = self._first_text(author.xpath("./*[local-name()='middle-name']"))
            last = self._first_text(author.xpath("./*[local-name()='last-name']"))
            full = normalize_whitespace(" ".join(part for part in [first, middle, last] if part))
            if full:
                names.append(full)
        return ", ".join(names) if names else None

    def _iter_units(self, root: etree._Element) -> Iterator[tuple[str | None, etree._Element]]:
        """Top-level sections of the main bodies; footnote bodies are skipped."""

        for body in root.xpath("./*[local-name()='body']"):
            if body.get("name") == "notes":
                continue
            sections = [child for child in body if _local_name(child) == "section"]
            if not sections:
                yield self._first_text(body.xpath("./*[local-name()='title']")), body
                continue
            for section in sections:
                yield self._first_text(section.xpath("./*[local-name()='title']")), section

    def _section_blocks(self, section: etree._Element, *, depth: int, resolve) -> Iterator[Block]:
        for child in section:
            name = _local_name(child)
            if name == "title":
                heading = "h1" if depth == 0 else "h2"
                for paragraph in child:
                    if _local_name(paragraph) == "p":
                        yield Block(tag=heading, runs=self._inline_runs(paragraph, resolve))
            elif name in _PARAGRAPH_TAGS:
                yield Block(tag="p", runs=self._inline_runs(child, resolve))
            elif name == "image":
                resource = resolve(child)
                if resource is not None:
                    yield Block(tag="p", runs=[resource])
            elif name in _CONTAINER_TAGS:
                yield from self._section_blocks(child, depth=depth + 1, resolve=resolve)

    def _inline_runs(self, element: etree._Element, resolve, italic: bool = False, bold: bool = False) -> list:
        runs: list[TextRun | ResourceRun] = []
        if element.text:
            runs.append(TextRun(element.text, italic=italic, bold=bold))
        for child in element:
            name = _local_name(child)
            if name == "image":
                resource = resolve(child)
                if resource is not None:
                    runs.append(resource)
            elif name:
                runs.extend(
                    self._inline_runs(
                        child,
                        resolve,
                        italic=italic or name == "emphasis",
                        bold=bold or name == "strong",
                    )
                )
            if child.tail:
                runs.append(TextRun(child.tail, italic=italic, bold=bold))
        return runs

    def _resolve_image(
        self,
        node: etree._Element,
        binaries: dict[str, etree._Element],
        cache: dict[Hashable, str],
    ) -> ResourceRun | None:
        if self._resource_store is None:
            return None
        href = node.get(_XLINK_HREF) or next((value for key, value in node.attrib.items() if key.endswith("href")), "")
        image_id = href.lstrip("#")
        if not image_id:
            return None
        if image_id not in cache:
            binary = binaries.get(image_id)
            if binary is None or not binary.text:
                return None
            try:
                payload = base64.b64decode("".join(binary.text.split()))
            except (binascii.Error, ValueError):
                logger.warning("Skipping undecodable FB2 image %s", image_id)
                return None
            cache[image_id] = self._resource_store.acquire(payload, binary.get("content-type") or "image/jpeg")
        return ResourceRun(ref=href, handle=cache[image_id], alt=node.get("alt") or "")

    def _first_text(self, nodes: list[object]) -> str | None:
        for node in nodes:
            if hasattr(node, "itertext"):
                text = normalize_whitespace(" ".join(node.itertext()))
            else:
                text = normalize_whitespace(str(node))
            if text:
                return text
        return None
