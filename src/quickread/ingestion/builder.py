"""Shared word-stream builder that every format adapter feeds.

Adapters translate their native structure into :class:`Block` objects, a
sequence of inline runs with formatting flags, and hand them to
:class:`WordStreamBuilder`. The builder owns the word list, the paragraph,
page and chapter tables and the annotated preview markup, so the indices in
``data-word-index`` attributes always match the word list 1:1.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
import html
import logging
import re
from typing import Iterable

from quickread.ingestion.models import ChapterContent, ChapterInfo, ParsedDocument, PreviewContent, Word
from quickread.ingestion.segmenter import is_decorative_punctuation, merge_orphaned_groups, split_on_dashes

logger = logging.getLogger(__name__)

DEFAULT_WORDS_PER_PAGE = 250
MIN_PAGE_SUBSTANCE = 5

_TOKEN_RE = re.compile(r"\S+")
_ANCHOR = "\x00anchor\x00"
_BLOCK_TAGS = frozenset(
    {"p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "section", "article", "pre", "td"}
)


@dataclass(slots=True)
class TextRun:
    text: str
    italic: bool = False
    bold: bool = False


@dataclass(slots=True)
class ResourceRun:
    """A non-text inline resource such as an image."""

    ref: str
    handle: str | None = None
    alt: str = ""


@dataclass(slots=True)
class Block:
    """One paragraph-level unit of inline content."""

    tag: str = "p"
    runs: list[TextRun | ResourceRun] = field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(" ".join(run.text.split()) for run in self.runs if isinstance(run, TextRun)).strip()

    @property
    def is_heading(self) -> bool:
        return len(self.tag) == 2 and self.tag[0] == "h" and self.tag[1].isdigit()


@dataclass(slots=True)
class _Token:
    text: str
    italic: bool
    bold: bool


def _format_word(index: int, token: _Token) -> str:
    markup = f'<span data-word-index="{index}">{html.escape(token.text)}</span>'
    if token.bold and token.italic:
        return f"<strong><em>{markup}</em></strong>"
    if token.bold:
        return f"<strong>{markup}</strong>"
    if token.italic:
        return f"<em>{markup}</em>"
    return markup


def _format_resource(anchor: str, run: ResourceRun) -> str:
    alt = html.escape(run.alt or "Image")
    return (
        f'<img data-word-index="{anchor}" src="{html.escape(run.handle or "")}" '
        f'data-original-src="{html.escape(run.ref)}" alt="{alt}" />'
    )


class WordStreamBuilder:
    """Accumulate words, boundary tables and annotated markup unit by unit."""

    def __init__(self, words_per_page: int = DEFAULT_WORDS_PER_PAGE, *, min_page_substance: int = MIN_PAGE_SUBSTANCE) -> None:
        if words_per_page < 1:
            raise ValueError("words_per_page must be >= 1")
        self._words_per_page = words_per_page
        self._min_page_substance = min_page_substance

        self._words: list[Word] = []
        self._paragraph_starts: list[int] = []
        self._page_starts: list[int] = []
        self._words_on_page = 0
        self._page_break_pending = False

        self._chapters: list[ChapterInfo] = []
        self._chapter_starts: list[int] = []
        self._contents: list[ChapterContent] = []

        self._unit_open = False
        self._unit_title = ""
        self._unit_href = ""
        self._unit_start = 0
        self._unit_markup: list[str] = []
        self._unit_resources: dict[str, str] = {}

    @property
    def word_count(self) -> int:
        return len(self._words)

    @property
    def unit_word_count(self) -> int:
        return len(self._words) - self._unit_start if self._unit_open else 0

    def begin_unit(self, title: str, href: str = "") -> None:
        """Open a structural unit (spine item, heading section, PDF page)."""

        if self._unit_open:
            self.end_unit()
        if self._words_on_page > self._min_page_substance:
            self._page_break_pending = True
        self._unit_open = True
        self._unit_title = title
        self._unit_href = href
        self._unit_start = len(self._words)
        self._unit_markup = []
        self._unit_resources = {}

    def rename_unit(self, title: str) -> None:
        if self._unit_open and title:
            self._unit_title = title

    def add_markup(self, markup: str) -> None:
        """Append unindexed markup (rules, separators) to the current unit."""

        self._ensure_unit()
        self._unit_markup.append(markup)

    def add_block(self, block: Block) -> int:
        """Segment one block into words and emit its annotated markup.

        Returns the number of words the block produced.
        """

        self._ensure_unit()
        tag = block.tag if block.tag in _BLOCK_TAGS else "p"

        items, tokens = self._collect(block)
        if not tokens and not any(kind == "resource" for kind, _ in items):
            if any(kind == "separator" for kind, _ in items):
                separators = " ".join(
                    f'<span class="separator">{html.escape(value)}</span>' for kind, value in items if kind == "separator"
                )
                self._unit_markup.append(f"<{tag}>{separators}</{tag}>")
            return 0

        groups = merge_orphaned_groups([token.text for token in tokens])
        group_of: dict[int, int] = {}
        for group_index, group in enumerate(groups):
            group_of[group[0]] = group_index

        first_index = len(self._words)
        if groups:
            self._start_paragraph()

        parts: list[str] = []
        for kind, value in items:
            if kind == "separator":
                parts.append(f'<span class="separator">{html.escape(value)}</span>')
            elif kind == "resource":
                anchor = str(len(self._words) - 1) if len(self._words) > self._unit_start else _ANCHOR
                if value.handle:
                    parts.append(_format_resource(anchor, value))
                    self._track_resource(value.ref, value.handle)
            else:
                group_index = group_of.get(value)
                if group_index is None:
                    continue
                group = groups[group_index]
                head = tokens[group[0]]
                merged = _Token("".join(tokens[i].text for i in group), head.italic, head.bold)
                parts.append(_format_word(len(self._words), merged))
                self._append_word(merged)

        self._unit_markup.append(f"<{tag}>{' '.join(parts)}</{tag}>")
        produced = len(self._words) - first_index
        if produced and self._words_on_page >= self._words_per_page:
            self._page_break_pending = True
        return produced

    def end_unit(self, resources: dict[str, str] | None = None) -> None:
        """Close the current unit and record its chapter row and markup."""

        if not self._unit_open:
            return
        self._unit_open = False
        for ref, handle in (resources or {}).items():
            self._track_resource(ref, handle)

        start = self._unit_start
        end = len(self._words) - 1
        if end >= start:
            anchor = start
            self._chapters.append(ChapterInfo(title=self._unit_title, href=self._unit_href, word_start=start, word_end=end))
            self._chapter_starts.append(start)
            word_range = (start, end)
        else:
            anchor = max(len(self._words) - 1, 0)
            word_range = (anchor, anchor)
            if not self._unit_resources:
                logger.debug("Dropping empty unit %r", self._unit_title)
                return

        markup = "".join(self._unit_markup).replace(_ANCHOR, str(anchor))
        self._contents.append(
            ChapterContent(
                ordinal=len(self._contents),
                html=markup,
                word_range=word_range,
                resources=dict(self._unit_resources),
            )
        )

    def _track_resource(self, ref: str, handle: str) -> None:
        # a ref may point at several handles; every handle must stay reachable
        key = ref
        suffix = 1
        while self._unit_resources.get(key, handle) != handle:
            suffix += 1
            key = f"{ref}#{suffix}"
        self._unit_resources[key] = handle

    def build(self, *, with_chapters: bool = True) -> tuple[ParsedDocument, PreviewContent]:
        if self._unit_open:
            self.end_unit()
        document = ParsedDocument(
            words=self._words,
            paragraph_starts=self._paragraph_starts,
            page_starts=self._page_starts,
        )
        preview = PreviewContent(
            chapters=self._chapters if with_chapters else [],
            chapter_starts=self._chapter_starts if with_chapters else [],
            contents=self._contents,
        )
        return document, preview

    def add_sectioned_blocks(
        self,
        blocks: Iterable[Block],
        *,
        chapter_tags: frozenset[str],
        default_title: str = "Content",
    ) -> None:
        """Feed blocks, opening a new unit at every chapter-level heading."""

        if not self._unit_open:
            self.begin_unit(default_title)
        numbered = 0
        for block in blocks:
            if block.tag in chapter_tags:
                numbered += 1
                title = block.text or f"Chapter {numbered}"
                if self.unit_word_count > 0:
                    self.begin_unit(title)
                else:
                    self.rename_unit(title)
            self.add_block(block)

    def _ensure_unit(self) -> None:
        if not self._unit_open:
            self.begin_unit("Content")

    def _collect(self, block: Block) -> tuple[list[tuple[str, object]], list[_Token]]:
        items: list[tuple[str, object]] = []
        tokens: list[_Token] = []

        text_parts: list[str] = []
        spans: list[tuple[int, TextRun]] = []
        resources: list[tuple[int, ResourceRun]] = []
        offset = 0
        for run in block.runs:
            if isinstance(run, ResourceRun):
                resources.append((offset, run))
                continue
            spans.append((offset, run))
            text_parts.append(run.text)
            offset += len(run.text)
        full_text = "".join(text_parts)

        span_starts = [start for start, _run in spans]

        def run_at(position: int) -> TextRun:
            return spans[max(bisect_right(span_starts, position) - 1, 0)][1]

        pending = list(resources)
        for match in _TOKEN_RE.finditer(full_text):
            while pending and pending[0][0] <= match.start():
                items.append(("resource", pending.pop(0)[1]))
            run = run_at(match.start())
            for piece in split_on_dashes(match.group()):
                if is_decorative_punctuation(piece):
                    items.append(("separator", piece))
                    continue
                items.append(("word", len(tokens)))
                tokens.append(_Token(piece, run.italic, run.bold))
        for _offset, resource in pending:
            items.append(("resource", resource))
        return items, tokens

    def _start_paragraph(self) -> None:
        if self._page_break_pending and self._words:
            self._page_starts.append(len(self._words))
            self._words_on_page = 0
        self._page_break_pending = False
        self._paragraph_starts.append(len(self._words))

    def _append_word(self, token: _Token) -> None:
        if not self._page_starts:
            self._page_starts.append(0)
        self._words.append(
            Word(
                text=token.text,
                paragraph_index=len(self._paragraph_starts) - 1,
                page_index=len(self._page_starts) - 1,
                italic=token.italic,
                bold=token.bold,
            )
        )
        self._words_on_page += 1
