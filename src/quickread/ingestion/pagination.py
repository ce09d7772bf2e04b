"""Post-extraction passes that keep words, tables and preview markup aligned.

Adapters build provisional pages and merge punctuation inside each block.
:func:`reconcile` then merges punctuation that was split across blocks and
folds tiny provisional pages into their neighbours, remapping every word
index that refers to the old stream.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import replace
import logging
import re

from quickread.ingestion.models import ChapterContent, ChapterInfo, ParsedDocument, ParseResult, PreviewContent, Word
from quickread.ingestion.segmenter import merge_orphaned_groups

logger = logging.getLogger(__name__)

DEFAULT_MIN_WORDS_PER_PAGE = 20

_WORD_INDEX_RE = re.compile(r'data-word-index="(\d+)"')
_ADJACENT_SPANS_RE = re.compile(
    r'<span data-word-index="(\d+)"[^>]*>([^<]*)</span>(\s*)<span data-word-index="\1"[^>]*>([^<]*)</span>'
)


def _index_for(starts: list[int], position: int) -> int:
    return max(0, bisect_right(starts, position) - 1)


def merge_tiny_pages(document: ParsedDocument, min_words: int = DEFAULT_MIN_WORDS_PER_PAGE) -> ParsedDocument:
    """Fold provisional pages holding fewer than ``min_words`` words forward.

    A merged page closes at the first original boundary where it has gathered
    ``min_words`` non-blank words; a short tail joins the page before it.
    """

    page_starts = document.page_starts
    words = document.words
    if len(page_starts) <= 1 or not words:
        return document

    merged_starts = [0]
    merged_counts = [0]
    for page_index, start in enumerate(page_starts):
        end = page_starts[page_index + 1] if page_index + 1 < len(page_starts) else len(words)
        merged_counts[-1] += sum(1 for word in words[start:end] if word.text.strip())
        if merged_counts[-1] >= min_words and page_index + 1 < len(page_starts):
            merged_starts.append(page_starts[page_index + 1])
            merged_counts.append(0)

    if len(merged_starts) > 1 and merged_counts[-1] < min_words:
        merged_starts.pop()

    if merged_starts == page_starts:
        return document

    logger.debug("Merged %d provisional pages into %d", len(page_starts), len(merged_starts))
    return ParsedDocument(
        words=[replace(word, page_index=_index_for(merged_starts, index)) for index, word in enumerate(words)],
        paragraph_starts=list(document.paragraph_starts),
        page_starts=merged_starts,
    )


def _remap_starts(starts: list[int], index_map: list[int], heads: set[int], total: int) -> list[int]:
    """Map boundary positions onto the merged stream.

    A boundary that falls inside a merged run moves to the next run, so the
    run stays with the unit of its first word.
    """

    remapped: list[int] = []
    for start in starts:
        if start >= len(index_map):
            continue
        new_start = index_map[start] if start in heads else index_map[start] + 1
        if new_start < total and (not remapped or new_start > remapped[-1]):
            remapped.append(new_start)
    return remapped


def rewrite_word_indices(markup: str, index_map: list[int]) -> str:
    """Rewrite ``data-word-index`` attributes and coalesce same-index spans."""

    def substitute(match: re.Match[str]) -> str:
        old_index = int(match.group(1))
        if old_index < len(index_map):
            return f'data-word-index="{index_map[old_index]}"'
        return match.group(0)

    markup = _WORD_INDEX_RE.sub(substitute, markup)
    previous = None
    while previous != markup:
        previous = markup
        markup = _ADJACENT_SPANS_RE.sub(r'<span data-word-index="\1">\2\4</span>', markup)
    return markup


def remerge_punctuation(
    document: ParsedDocument,
    preview: PreviewContent | None,
) -> tuple[ParsedDocument, PreviewContent | None, list[int]]:
    """Merge orphaned punctuation across the whole stream.

    Returns the rewritten document and preview plus the old-to-new index map.
    """

    texts = document.texts()
    groups = merge_orphaned_groups(texts)
    if len(groups) == len(texts):
        return document, preview, list(range(len(texts)))

    index_map = [0] * len(texts)
    heads: set[int] = set()
    for new_index, group in enumerate(groups):
        heads.add(group[0])
        for old_index in group:
            index_map[old_index] = new_index

    total = len(groups)
    paragraph_starts = _remap_starts(document.paragraph_starts, index_map, heads, total)
    page_starts = _remap_starts(document.page_starts, index_map, heads, total)
    words: list[Word] = []
    for new_index, group in enumerate(groups):
        head = document.words[group[0]]
        words.append(
            Word(
                text="".join(texts[i] for i in group),
                paragraph_index=_index_for(paragraph_starts, new_index),
                page_index=_index_for(page_starts, new_index),
                italic=head.italic,
                bold=head.bold,
            )
        )
    logger.debug("Merged %d orphaned punctuation tokens", len(texts) - total)
    merged_document = ParsedDocument(words=words, paragraph_starts=paragraph_starts, page_starts=page_starts)

    if preview is None:
        return merged_document, None, index_map

    chapters: list[ChapterInfo] = []
    for chapter in preview.chapters:
        start = _remap_starts([chapter.word_start], index_map, heads, total)
        end = index_map[chapter.word_end] if chapter.word_end < len(index_map) else total - 1
        if start and start[0] <= end and (not chapters or start[0] > chapters[-1].word_start):
            chapters.append(replace(chapter, word_start=start[0], word_end=end))
    contents = [
        ChapterContent(
            ordinal=content.ordinal,
            html=rewrite_word_indices(content.html, index_map),
            word_range=_remap_range(content.word_range, index_map),
            resources=content.resources,
        )
        for content in preview.contents
    ]
    merged_preview = PreviewContent(
        chapters=chapters,
        chapter_starts=[chapter.word_start for chapter in chapters] if preview.chapter_starts else [],
        contents=contents,
    )
    return merged_document, merged_preview, index_map


def _remap_range(word_range: tuple[int, int], index_map: list[int]) -> tuple[int, int]:
    start_old, end_old = word_range
    if start_old >= len(index_map):
        return word_range
    start_new = index_map[start_old]
    last_valid = min(end_old, len(index_map) - 1)
    end_new = index_map[last_valid] if last_valid >= start_old else start_new
    return start_new, end_new


def reconcile(result: ParseResult, *, min_words_per_page: int = DEFAULT_MIN_WORDS_PER_PAGE) -> ParseResult:
    """Run the punctuation and tiny-page passes over an adapter result.

    Punctuation is merged first so that page word counts are final when the
    tiny-page pass runs; this makes a second call a no-op.
    """

    document, preview, _index_map = remerge_punctuation(result.document, result.preview)
    document = merge_tiny_pages(document, min_words_per_page)
    return replace(result, document=document, preview=preview)
