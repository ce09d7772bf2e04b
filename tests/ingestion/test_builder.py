from __future__ import annotations

import pytest

from quickread.ingestion.builder import Block, ResourceRun, TextRun, WordStreamBuilder


def _texts(builder: WordStreamBuilder) -> list[str]:
    document, _preview = builder.build()
    return document.texts()


def test_builder_carries_inline_formatting_into_words_and_markup() -> None:
    builder = WordStreamBuilder()
    builder.begin_unit("One")
    builder.add_block(
        Block(
            runs=[
                TextRun("Hello "),
                TextRun("bold", bold=True),
                TextRun(" and "),
                TextRun("both", italic=True, bold=True),
                TextRun(" a<b"),
            ]
        )
    )
    document, preview = builder.build()

    assert document.texts() == ["Hello", "bold", "and", "both", "a<b"]
    assert [(word.italic, word.bold) for word in document.words] == [
        (False, False),
        (False, True),
        (False, False),
        (True, True),
        (False, False),
    ]
    html = preview.contents[0].html
    assert '<strong><span data-word-index="1">bold</span></strong>' in html
    assert '<strong><em><span data-word-index="3">both</span></em></strong>' in html
    assert '<span data-word-index="4">a&lt;b</span>' in html


def test_builder_merges_orphaned_punctuation_within_a_block() -> None:
    builder = WordStreamBuilder()
    builder.add_block(Block(runs=[TextRun("Hello "), TextRun("world", italic=True), TextRun(" .")]))
    document, preview = builder.build()

    assert document.texts() == ["Hello", "world."]
    assert document.words[1].italic is True
    assert 'data-word-index="2"' not in preview.contents[0].html


def test_builder_renders_separators_without_indexing_them() -> None:
    builder = WordStreamBuilder()
    builder.add_block(Block(runs=[TextRun("Before")]))
    assert builder.add_block(Block(runs=[TextRun("* * *")])) == 0
    builder.add_block(Block(runs=[TextRun("After")]))
    document, preview = builder.build()

    assert document.texts() == ["Before", "After"]
    assert document.paragraph_starts == [0, 1]
    assert '<span class="separator">*</span>' in preview.contents[0].html


def test_builder_starts_pages_after_paragraph_reaching_target() -> None:
    builder = WordStreamBuilder(words_per_page=3)
    builder.begin_unit("Only")
    for text in ("a b", "c d", "e", "f g h", "i"):
        builder.add_block(Block(runs=[TextRun(text)]))
    document, _preview = builder.build()

    assert document.paragraph_starts == [0, 2, 4, 5, 8]
    assert document.page_starts == [0, 4, 8]
    assert [word.page_index for word in document.words] == [0, 0, 0, 0, 1, 1, 1, 1, 2]
    document.validate()


def test_builder_breaks_pages_at_units_with_enough_substance() -> None:
    builder = WordStreamBuilder(words_per_page=250)
    builder.begin_unit("Title page")
    builder.add_block(Block(runs=[TextRun("A Short Title")]))
    builder.begin_unit("Chapter 1")
    builder.add_block(Block(runs=[TextRun("one two three four five six")]))
    builder.begin_unit("Chapter 2")
    builder.add_block(Block(runs=[TextRun("seven eight")]))
    document, preview = builder.build()

    assert document.page_starts == [0, 9]
    assert [chapter.title for chapter in preview.chapters] == ["Title page", "Chapter 1", "Chapter 2"]
    assert preview.chapter_starts == [0, 3, 9]
    assert [(chapter.word_start, chapter.word_end) for chapter in preview.chapters] == [(0, 2), (3, 8), (9, 10)]


def test_resources_anchor_to_preceding_word_or_first_word_of_unit() -> None:
    builder = WordStreamBuilder()
    builder.begin_unit("One")
    builder.add_block(Block(runs=[ResourceRun("cover.png", handle="h-cover"), TextRun("Caption text")]))
    builder.add_block(Block(runs=[TextRun("More words"), ResourceRun("inline.png", handle="h-inline")]))
    builder.begin_unit("Two")
    builder.add_block(Block(runs=[ResourceRun("plate.png", handle="h-plate")]))
    builder.add_block(Block(runs=[TextRun("Second unit")]))
    document, preview = builder.build()

    first, second = preview.contents
    assert document.total_words == 6
    assert 'data-word-index="0" src="h-cover"' in first.html
    assert 'data-word-index="3" src="h-inline"' in first.html
    assert 'data-word-index="4" src="h-plate"' in second.html
    assert first.resources == {"cover.png": "h-cover", "inline.png": "h-inline"}
    assert second.word_range == (4, 5)


def test_builder_keeps_every_handle_sharing_a_ref() -> None:
    builder = WordStreamBuilder()
    builder.begin_unit("One")
    builder.add_block(
        Block(runs=[TextRun("Look"), ResourceRun("fig.png", handle="h-1"), ResourceRun("fig.png", handle="h-2")])
    )
    builder.add_block(Block(runs=[ResourceRun("fig.png", handle="h-1")]))
    builder.end_unit({"fig.png": "h-3"})
    _document, preview = builder.build()

    assert preview.contents[0].resources == {"fig.png": "h-1", "fig.png#2": "h-2", "fig.png#3": "h-3"}
    assert sorted(preview.resource_handles()) == ["h-1", "h-2", "h-3"]

def test_resource_only_unit_keeps_markup_without_chapter_row() -> None:
    builder = WordStreamBuilder()
    builder.begin_unit("Text")
    builder.add_block(Block(runs=[TextRun("Some words")]))
    builder.begin_unit("Gallery")
    builder.add_block(Block(runs=[ResourceRun("plate.png", handle="h-plate")]))
    builder.begin_unit("Blank")
    builder.end_unit()
    _document, preview = builder.build()

    assert [chapter.title for chapter in preview.chapters] == ["Text"]
    assert len(preview.contents) == 2
    assert preview.contents[1].word_range == (1, 1)
    assert 'data-word-index="1"' in preview.contents[1].html
    assert preview.resource_handles() == ["h-plate"]


def test_sectioned_blocks_open_units_at_chapter_headings() -> None:
    builder = WordStreamBuilder()
    blocks = [
        Block(tag="h1", runs=[TextRun("Intro")]),
        Block(runs=[TextRun("some words here")]),
        Block(tag="h2", runs=[TextRun("Subsection")]),
        Block(tag="h1", runs=[TextRun("Next")]),
        Block(runs=[TextRun("more")]),
    ]
    builder.add_sectioned_blocks(blocks, chapter_tags=frozenset({"h1"}), default_title="Book")
    document, preview = builder.build()

    assert [chapter.title for chapter in preview.chapters] == ["Intro", "Next"]
    assert preview.chapter_starts == [0, 5]
    assert document.texts()[5:] == ["Next", "more"]
    assert preview.contents[0].html.startswith('<h1><span data-word-index="0">Intro</span></h1>')


def test_builder_without_chapters_keeps_markup() -> None:
    builder = WordStreamBuilder()
    builder.begin_unit("Plain")
    builder.add_block(Block(runs=[TextRun("Just text")]))
    _document, preview = builder.build(with_chapters=False)

    assert preview.chapters == []
    assert preview.chapter_starts == []
    assert preview.contents[0].word_range == (0, 1)


def test_builder_rejects_invalid_page_size() -> None:
    with pytest.raises(ValueError, match="words_per_page"):
        WordStreamBuilder(words_per_page=0)


def test_empty_builder_produces_empty_tables() -> None:
    document, preview = WordStreamBuilder().build()

    assert document.total_words == 0
    assert document.page_starts == []
    assert document.paragraph_starts == []
    assert preview.contents == []
    document.validate()
