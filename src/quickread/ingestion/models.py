"""Canonical word-stream structures shared by all ingestion adapters."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quickread.ingestion.resources import ResourceStore


@dataclass(slots=True)
class Word:
    """A display-ready word; its identity is its index in the owning document."""

    text: str
    paragraph_index: int
    page_index: int
    italic: bool = False
    bold: bool = False


def _lookup(starts: list[int], word_index: int) -> int:
    if not starts:
        return 0
    return max(0, bisect_right(starts, word_index) - 1)


def _start_of(starts: list[int], position: int, total_words: int) -> int:
    if position < 0:
        return 0
    if position >= len(starts):
        return max(total_words - 1, 0)
    return starts[position]


@dataclass(slots=True)
class ParsedDocument:
    """Ordered words plus the paragraph and page boundary tables."""

    words: list[Word] = field(default_factory=list)
    paragraph_starts: list[int] = field(default_factory=list)
    page_starts: list[int] = field(default_factory=list)

    @property
    def total_words(self) -> int:
        return len(self.words)

    @property
    def total_paragraphs(self) -> int:
        return len(self.paragraph_starts)

    @property
    def total_pages(self) -> int:
        return len(self.page_starts)

    def texts(self) -> list[str]:
        return [word.text for word in self.words]

    def paragraph_for_word_index(self, word_index: int) -> int:
        return _lookup(self.paragraph_starts, word_index)

    def page_for_word_index(self, word_index: int) -> int:
        return _lookup(self.page_starts, word_index)

    def word_index_for_paragraph(self, paragraph_index: int) -> int:
        return _start_of(self.paragraph_starts, paragraph_index, self.total_words)

    def word_index_for_page(self, page_index: int) -> int:
        return _start_of(self.page_starts, page_index, self.total_words)

    def next_paragraph_start(self, word_index: int) -> int:
        return self.word_index_for_paragraph(self.paragraph_for_word_index(word_index) + 1)

    def previous_paragraph_start(self, word_index: int) -> int:
        current = self.paragraph_for_word_index(word_index)
        if self.paragraph_starts and self.paragraph_starts[current] == word_index:
            return self.word_index_for_paragraph(current - 1)
        return self.word_index_for_paragraph(current)

    def next_page_start(self, word_index: int) -> int:
        return self.word_index_for_page(self.page_for_word_index(word_index) + 1)

    def previous_page_start(self, word_index: int) -> int:
        current = self.page_for_word_index(word_index)
        if self.page_starts and self.page_starts[current] == word_index:
            return self.word_index_for_page(current - 1)
        return self.word_index_for_page(current)

    def page_word_range(self, page_index: int) -> tuple[int, int]:
        """Inclusive word range covered by one page."""

        start = self.page_starts[page_index]
        if page_index + 1 < len(self.page_starts):
            return start, self.page_starts[page_index + 1] - 1
        return start, self.total_words - 1

    def validate(self) -> None:
        """Assert the boundary-table invariants every adapter must uphold."""

        if not self.words:
            assert not self.page_starts and not self.paragraph_starts
            return
        for name, starts in (("paragraph_starts", self.paragraph_starts), ("page_starts", self.page_starts)):
            assert starts and starts[0] == 0, f"{name} must start at 0"
            assert all(a < b for a, b in zip(starts, starts[1:])), f"{name} must be strictly increasing"
            assert starts[-1] < self.total_words, f"{name} points past the last word"
        for index, word in enumerate(self.words):
            assert word.page_index == self.page_for_word_index(index), f"word {index} has a stale page index"


@dataclass(slots=True)
class ChapterInfo:
    """Chapter metadata for ebook-like formats."""

    title: str
    href: str
    word_start: int
    word_end: int


@dataclass(slots=True)
class ChapterContent:
    """Annotated preview markup for one structural unit."""

    ordinal: int
    html: str
    word_range: tuple[int, int]
    resources: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class PreviewContent:
    """Chapter table and annotated markup blocks kept in sync with the words."""

    chapters: list[ChapterInfo] = field(default_factory=list)
    chapter_starts: list[int] = field(default_factory=list)
    contents: list[ChapterContent] = field(default_factory=list)

    def chapter_for_word_index(self, word_index: int) -> int:
        return _lookup(self.chapter_starts, word_index)

    def word_index_for_chapter(self, chapter_index: int, total_words: int) -> int:
        return _start_of(self.chapter_starts, chapter_index, total_words)

    def resource_handles(self) -> list[str]:
        return [handle for content in self.contents for handle in content.resources.values()]


@dataclass(slots=True)
class ParseResult:
    """Adapter output: the document, metadata, warnings and optional preview."""

    document: ParsedDocument
    format_name: str
    title: str | None = None
    author: str | None = None
    warnings: list[str] = field(default_factory=list)
    preview: PreviewContent | None = None
    file_key: str | None = None

    @property
    def chapters(self) -> list[ChapterInfo]:
        return self.preview.chapters if self.preview else []

    def release_resources(self, store: ResourceStore) -> int:
        """Release every display handle owned by the preview content."""

        if self.preview is None:
            return 0
        released = store.release_all(self.preview.resource_handles())
        for content in self.preview.contents:
            content.resources.clear()
        return released
