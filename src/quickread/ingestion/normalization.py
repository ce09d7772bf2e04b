"""Text normalization helpers used by adapters for metadata and titles."""

from __future__ import annotations

from pathlib import PurePath
import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")
_TITLE_SPLIT_RE = re.compile(r"[._\-]+")
_BOOK_SUFFIXES = frozenset(
    {".epub", ".mobi", ".azw", ".azw3", ".prc", ".fb2", ".fbz", ".zip", ".txt", ".md", ".markdown", ".html", ".htm", ".xhtml", ".pdf"}
)


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_text(text: str) -> str:
    """NFC-normalize decoded text so combining sequences compare stably."""

    return unicodedata.normalize("NFC", text)


def title_from_filename(name: str) -> str:
    """Readable fallback title derived from a file name."""

    stem = PurePath(name).name
    while PurePath(stem).suffix.lower() in _BOOK_SUFFIXES:
        stem = stem[: -len(PurePath(stem).suffix)]
    return normalize_whitespace(_TITLE_SPLIT_RE.sub(" ", stem)).title() or name


def first_non_empty(values: list[str | None]) -> str | None:
    for value in values:
        if value is None:
            continue
        cleaned = normalize_whitespace(value)
        if cleaned:
            return cleaned
    return None
