from __future__ import annotations

from pathlib import Path

from quickread.ingestion.adapters.markdown_adapter import MarkdownAdapter, inline_runs, markdown_blocks

_SAMPLE = """# The Book

Some *soft* and **loud** words.

```
ignored code
```

## Part Two

- first item
- second item
"""


def test_markdown_adapter_builds_chapters_from_headings() -> None:
    adapter = MarkdownAdapter()

    result = adapter.extract(_SAMPLE.encode("utf-8"), "notes.md", words_per_page=250)

    assert adapter.supports(Path("notes.markdown"))
    assert not adapter.supports(Path("notes.txt"), b"# heading")
    assert result.format_name == "markdown"
    assert result.title == "The Book"
    assert result.document.texts() == [
        "The", "Book", "Some", "soft", "and", "loud", "words.", "Part", "Two", "first", "item", "second", "item",
    ]
    assert result.document.words[3].italic is True
    assert result.document.words[5].bold is True
    assert [chapter.title for chapter in result.chapters] == ["The Book", "Part Two"]
    assert result.preview.chapter_starts == [0, 7]
    assert result.document.paragraph_starts == [0, 2, 7, 9, 11]
    assert result.document.page_starts == [0, 7]
    assert "<li>" in result.preview.contents[1].html
    result.document.validate()


def test_inline_runs_strip_links_images_and_code() -> None:
    runs = inline_runs("See [the docs](http://example.com) ![logo](logo.png)and `run()` now")

    assert "".join(run.text for run in runs) == "See the docs and run() now"
    assert not any(run.italic or run.bold for run in runs)


def test_inline_runs_keep_snake_case_words_plain() -> None:
    runs = inline_runs("call some_function_name ***now***")

    assert [(run.text, run.italic, run.bold) for run in runs] == [
        ("call some_function_name ", False, False),
        ("now", True, True),
    ]


def test_markdown_blocks_group_blockquotes_and_rules() -> None:
    blocks = list(markdown_blocks("> quoted one\n> quoted two\nplain after\n\n---\n"))

    assert [block.tag for block in blocks] == ["blockquote", "p", "p"]
    assert blocks[0].text.split() == ["quoted", "one", "quoted", "two"]
    assert blocks[2].text == "---"


def test_markdown_adapter_warns_on_undecodable_bytes() -> None:
    result = MarkdownAdapter().extract(b"caf\xff text", "broken.md", words_per_page=250)

    assert result.warnings == ["Some characters could not be decoded as UTF-8"]
    assert result.title == "Broken"
