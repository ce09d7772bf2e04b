from __future__ import annotations

import pytest

from quickread.ingestion.models import ChapterContent, ChapterInfo, ParsedDocument, ParseResult, PreviewContent, Word
from quickread.ingestion.normalization import normalize_text, normalize_whitespace, title_from_filename
from quickread.ingestion.resources import ResourceStore, acquisition_cache


def _document() -> ParsedDocument:
    paragraph_starts = [0, 3, 5]
    page_starts = [0, 5]
    words = []
    for index in range(8):
        paragraph = 0 if index < 3 else 1 if index < 5 else 2
        words.append(Word(text=f"w{index}", paragraph_index=paragraph, page_index=0 if index < 5 else 1))
    return ParsedDocument(words=words, paragraph_starts=paragraph_starts, page_starts=page_starts)


def test_document_totals_and_lookups() -> None:
    document = _document()

    assert document.total_words == 8
    assert document.total_paragraphs == 3
    assert document.total_pages == 2
    assert document.paragraph_for_word_index(4) == 1
    assert document.paragraph_for_word_index(0) == 0
    assert document.page_for_word_index(7) == 1
    assert document.word_index_for_paragraph(2) == 5
    assert document.word_index_for_paragraph(9) == 7
    assert document.word_index_for_page(-1) == 0
    assert document.page_word_range(0) == (0, 4)
    assert document.page_word_range(1) == (5, 7)
    document.validate()


def test_document_navigation_jumps() -> None:
    document = _document()

    assert document.next_paragraph_start(1) == 3
    assert document.next_paragraph_start(6) == 7
    assert document.previous_paragraph_start(4) == 3
    assert document.previous_paragraph_start(3) == 0
    assert document.previous_paragraph_start(0) == 0
    assert document.next_page_start(2) == 5
    assert document.previous_page_start(6) == 5
    assert document.previous_page_start(5) == 0


def test_validate_rejects_broken_tables() -> None:
    document = _document()
    document.page_starts = [0, 5, 5]

    with pytest.raises(AssertionError):
        document.validate()

    stale = _document()
    stale.words[6].page_index = 0
    with pytest.raises(AssertionError):
        stale.validate()


def test_preview_lookups_and_resource_release() -> None:
    store = ResourceStore()
    handle = store.acquire(b"\x89PNG\r\n\x1a\n", "image/png")
    preview = PreviewContent(
        chapters=[ChapterInfo("One", "c1.xhtml", 0, 4), ChapterInfo("Two", "c2.xhtml", 5, 7)],
        chapter_starts=[0, 5],
        contents=[ChapterContent(ordinal=0, html="<p></p>", word_range=(0, 4), resources={"a.png": handle})],
    )
    result = ParseResult(document=_document(), format_name="epub", preview=preview)

    assert preview.chapter_for_word_index(6) == 1
    assert preview.word_index_for_chapter(1, 8) == 5
    assert preview.word_index_for_chapter(2, 8) == 7
    assert [chapter.title for chapter in result.chapters] == ["One", "Two"]
    assert handle in store
    assert result.release_resources(store) == 1
    assert handle not in store
    assert len(store) == 0
    assert preview.contents[0].resources == {}


def test_parse_result_without_preview_has_no_chapters() -> None:
    result = ParseResult(document=ParsedDocument(), format_name="txt")

    assert result.chapters == []
    assert result.release_resources(ResourceStore()) == 0


def test_resource_store_round_trip() -> None:
    store = ResourceStore()
    first = store.acquire(b"one", "image/gif")
    second = store.acquire(b"two", "image/png")

    assert first.startswith("quickread-resource:")
    assert first != second
    resolved = store.resolve(second)
    assert resolved is not None
    assert resolved.data == b"two"
    assert resolved.media_type == "image/png"
    assert store.release(first) is True
    assert store.release(first) is False
    assert store.resolve(first) is None
    assert store.release_all([second, second, "unknown"]) == 1


def test_resource_store_releases_untracked_handles() -> None:
    store = ResourceStore()
    kept = store.acquire(b"kept", "image/png")
    dropped = store.acquire(b"dropped", "image/png")

    assert store.release_untracked([kept, dropped], [kept]) == 1
    assert kept in store
    assert dropped not in store


def test_acquisition_cache_releases_everything_on_failure() -> None:
    store = ResourceStore()

    with pytest.raises(RuntimeError):
        with acquisition_cache(store) as cache:
            cache["a"] = store.acquire(b"a", "image/png")
            cache["b"] = store.acquire(b"b", "image/png")
            raise RuntimeError("parse failed")

    assert len(store) == 0

    with acquisition_cache(store) as cache:
        cache["c"] = store.acquire(b"c", "image/png")
    assert len(store) == 1


def test_normalization_helpers() -> None:
    assert normalize_whitespace("  many\n\tspaces  here ") == "many spaces here"
    assert normalize_text("cafe\u0301") == "caf\u00e9"
    assert title_from_filename("mystic_collection.epub") == "Mystic Collection"
    assert title_from_filename("the-long.road.fb2.zip") == "The Long Road"
