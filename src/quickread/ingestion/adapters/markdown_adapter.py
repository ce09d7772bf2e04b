"""Markdown adapter: line-oriented conversion into formatted blocks."""

from __future__ import annotations

from pathlib import Path
import re
from typing import Iterator

from quickread.ingestion.builder import Block, TextRun, WordStreamBuilder
from quickread.ingestion.models import ParseResult
from quickread.ingestion.normalization import normalize_text, normalize_whitespace, title_from_filename

_CHAPTER_TAGS = frozenset({"h1", "h2"})

_PATTERNS = {
    # ![alt](url)
    "images": re.compile(r"!\[([^\]]*)\]\([^)]*\)"),
    # [text](url) -> text
    "links": re.compile(r"\[([^\]]+)\]\([^)]*\)"),
    # `code` -> code
    "inline_code": re.compile(r"`([^`]+)`"),
    "heading": re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$"),
    "fence": re.compile(r"^\s*(```|~~~)"),
    "hr": re.compile(r"^\s*([-*_])(\s*\1){2,}\s*$"),
    "blockquote": re.compile(r"^\s*>\s?"),
    "list_item": re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+"),
}

_EMPHASIS_RE = re.compile(
    r"\*\*\*(?P<bold_italic>.+?)\*\*\*"
    r"|\*\*(?P<bold>.+?)\*\*"
    r"|(?<!\w)__(?P<bold_alt>.+?)__(?!\w)"
    r"|\*(?P<italic>[^*\s](?:.*?[^*\s])?)\*"
    r"|(?<!\w)_(?P<italic_alt>[^_\s](?:.*?[^_\s])?)_(?!\w)"
)


def inline_runs(text: str) -> list[TextRun]:
    """Split one line of inline markdown into formatted runs."""

    text = _PATTERNS["images"].sub("", text)
    text = _PATTERNS["links"].sub(r"\1", text)
    text = _PATTERNS["inline_code"].sub(r"\1", text)

    runs: list[TextRun] = []
    position = 0
    for match in _EMPHASIS_RE.finditer(text):
        if match.start() > position:
            runs.append(TextRun(text[position : match.start()]))
        groups = match.groupdict()
        if groups["bold_italic"] is not None:
            runs.append(TextRun(groups["bold_italic"], italic=True, bold=True))
        elif groups["bold"] is not None or groups["bold_alt"] is not None:
            runs.append(TextRun(groups["bold"] or groups["bold_alt"], bold=True))
        else:
            runs.append(TextRun(groups["italic"] or groups["italic_alt"], italic=True))
        position = match.end()
    if position < len(text):
        runs.append(TextRun(text[position:]))
    return runs


def markdown_blocks(source: str) -> Iterator[Block]:
    """Yield paragraph-level blocks from markdown text."""

    paragraph: list[str] = []
    paragraph_tag = "p"
    in_fence = False

    def flush() -> Iterator[Block]:
        nonlocal paragraph, paragraph_tag
        if paragraph:
            runs: list[TextRun] = []
            for line in paragraph:
                runs.extend(inline_runs(line))
                runs.append(TextRun("\n"))
            yield Block(tag=paragraph_tag, runs=runs)
        paragraph = []
        paragraph_tag = "p"

    for line in source.splitlines():
        if _PATTERNS["fence"].match(line):
            yield from flush()
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        if not line.strip():
            yield from flush()
            continue

        heading = _PATTERNS["heading"].match(line)
        if heading:
            yield from flush()
            yield Block(tag=f"h{len(heading.group(1))}", runs=inline_runs(heading.group(2)))
            continue
        if _PATTERNS["hr"].match(line):
            yield from flush()
            yield Block(tag="p", runs=[TextRun(line.strip())])
            continue
        if _PATTERNS["list_item"].match(line):
            yield from flush()
            paragraph = [_PATTERNS["list_item"].sub("", line, count=1)]
            paragraph_tag = "li"
            continue

        quote = _PATTERNS["blockquote"].match(line)
        if quote:
            if paragraph and paragraph_tag != "blockquote":
                yield from flush()
            paragraph_tag = "blockquote"
            paragraph.append(line[quote.end() :])
            continue
        if paragraph_tag == "blockquote" and paragraph:
            yield from flush()
        paragraph.append(line)

    yield from flush()


class MarkdownAdapter:
    """Extract words from Markdown documents."""

    format_name = "markdown"
    extensions = ("md", "markdown")

    def supports(self, path: Path, sniffed_bytes: bytes | None = None) -> bool:
        return path.suffix.lower() in {".md", ".markdown"}

    def extract(self, raw_bytes: bytes, source_name: str, *, words_per_page: int) -> ParseResult:
        text = normalize_text(raw_bytes.decode("utf-8", errors="replace")).lstrip("\ufeff")
        warnings: list[str] = []
        if "\ufffd" in text:
            warnings.append("Some characters could not be decoded as UTF-8")

        title: str | None = None
        for line in text.splitlines():
            heading = _PATTERNS["heading"].match(line)
            if heading and len(heading.group(1)) == 1:
                title = normalize_whitespace("".join(run.text for run in inline_runs(heading.group(2)))) or None
                break

        builder = WordStreamBuilder(words_per_page)
        builder.add_sectioned_blocks(
            markdown_blocks(text),
            chapter_tags=_CHAPTER_TAGS,
            default_title=title or "Content",
        )
        document, preview = builder.build()

        return ParseResult(
            document=document,
            format_name=self.format_name,
            title=title or title_from_filename(source_name),
            warnings=warnings,
            preview=preview,
        )
