"""BeautifulSoup walker turning HTML/XHTML trees into builder blocks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator

from bs4 import BeautifulSoup, Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from quickread.ingestion.builder import Block, ResourceRun, TextRun
from quickread.ingestion.normalization import normalize_whitespace

BLOCK_TAGS = frozenset(
    {
        "p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote",
        "section", "article", "pre", "td", "th", "dd", "dt", "figcaption", "body",
    }
)
SKIP_TAGS = frozenset({"script", "style", "nav", "header", "footer", "aside", "head", "title", "svg:title"})
ITALIC_TAGS = frozenset({"i", "em", "cite", "var", "dfn"})
BOLD_TAGS = frozenset({"b", "strong"})
IMAGE_TAGS = frozenset({"img", "image", "svg:image"})
BREAK_TAGS = frozenset({"mbp:pagebreak", "hr"})
HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

_IGNORED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)

ImageResolver = Callable[[Tag], "ResourceRun | None"]


def parse_html(markup: bytes | str, *, xml: bool = False) -> BeautifulSoup:
    """Parse markup with lxml; XHTML spine items use the XML parser."""

    return BeautifulSoup(markup, "xml" if xml else "lxml")


def _tag_name(tag: Tag) -> str:
    if tag.prefix:
        return f"{tag.prefix}:{tag.name}".lower()
    return (tag.name or "").lower()


@dataclass(slots=True)
class _Walker:
    resolve_image: ImageResolver | None
    current: Block | None = None

    def walk(self, root: Tag) -> Iterator[Block]:
        yield from self._children(root, italic=False, bold=False, block_tag=_tag_name(root) or "p")
        yield from self._flush()

    def _flush(self) -> Iterator[Block]:
        block = self.current
        self.current = None
        if block is not None and block.runs:
            yield block

    def _push(self, run: TextRun | ResourceRun, block_tag: str) -> None:
        if self.current is None:
            self.current = Block(tag=block_tag if block_tag in BLOCK_TAGS else "p")
        self.current.runs.append(run)

    def _children(self, node: Tag, *, italic: bool, bold: bool, block_tag: str) -> Iterator[Block]:
        for child in node.children:
            if isinstance(child, _IGNORED_STRINGS):
                continue
            if isinstance(child, NavigableString):
                if str(child):
                    self._push(TextRun(str(child), italic=italic, bold=bold), block_tag)
                continue
            if not isinstance(child, Tag):
                continue
            yield from self._element(child, italic=italic, bold=bold, block_tag=block_tag)

    def _element(self, element: Tag, *, italic: bool, bold: bool, block_tag: str) -> Iterator[Block]:
        name = _tag_name(element)
        if name in SKIP_TAGS:
            return
        if name in IMAGE_TAGS:
            if self.resolve_image is not None:
                resource = self.resolve_image(element)
                if resource is not None:
                    self._push(resource, block_tag)
            return
        if name == "br":
            self._push(TextRun("\n", italic=italic, bold=bold), block_tag)
            return
        if name in BREAK_TAGS:
            # the HTML parser may nest following content inside an unclosed mbp:pagebreak
            yield from self._flush()
            yield from self._children(element, italic=italic, bold=bold, block_tag=block_tag)
            yield from self._flush()
            return

        italic = italic or name in ITALIC_TAGS
        bold = bold or name in BOLD_TAGS

        if name in BLOCK_TAGS:
            yield from self._flush()
            yield from self._children(element, italic=italic, bold=bold, block_tag=name)
            yield from self._flush()
            return

        yield from self._children(element, italic=italic, bold=bold, block_tag=block_tag)


def iter_blocks(root: Tag, *, resolve_image: ImageResolver | None = None) -> Iterator[Block]:
    """Yield paragraph-level blocks in document order.

    Block elements start and end paragraphs; inline ``i``/``em`` and
    ``b``/``strong`` set the formatting flags of the runs they contain; images
    become resources when ``resolve_image`` returns one.
    """

    return _Walker(resolve_image=resolve_image).walk(root)


def document_body(soup: BeautifulSoup) -> Tag:
    return soup.find("body") or soup


def first_heading_text(soup: BeautifulSoup, names: tuple[str, ...] = ("h1", "h2", "h3")) -> str | None:
    for name in names:
        heading = soup.find(name)
        if heading is not None:
            text = normalize_whitespace(heading.get_text(" ", strip=True))
            if text:
                return text
    return None
