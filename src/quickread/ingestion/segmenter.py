"""Word segmentation rules shared by every format adapter.

All adapters funnel raw text runs through :func:`tokenize`, so the rules here
define what a "word" is across the whole project:

* whitespace separates tokens;
* long hyphenated compounds and em/en-dash or ellipsis joins are split into
  separately displayed tokens, with the mark kept on the left-hand token;
* decorative scene separators (``***``, ``----``, ``~~~``) are dropped from
  the readable stream;
* orphaned punctuation is glued back onto its neighbour.
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_DASH_SPLIT_RE = re.compile(r"(—|–|…|\.\.\.)")
_DASH_MARKS = frozenset({"—", "–", "…", "..."})
_DECORATIVE_RE = re.compile(r"^(?:\*+|[-_]+|\.{4,}|~+)$")
_LEADING_PUNCTUATION_RE = re.compile(r"^[(\[{\"“‘]+$")
_TRAILING_PUNCTUATION_RE = re.compile(r"^[)\]}\"'”’.,;:!?]+$")


def split_on_dashes(token: str) -> list[str]:
    """Split long hyphenated compounds and dash/ellipsis joins.

    ``"forty-nine-year-old"`` becomes ``["forty-", "nine-", "year-", "old"]``,
    ``"forty-nine"`` stays whole and ``"consciousness—seemed"`` becomes
    ``["consciousness—", "seemed"]``.
    """

    hyphen_parts = token.split("-")
    if len(hyphen_parts) > 2:
        last = len(hyphen_parts) - 1
        pieces: list[str] = []
        carry = ""
        for i, part in enumerate(hyphen_parts):
            piece = part + "-" if i < last else part
            if part:
                pieces.append(carry + piece)
                carry = ""
            elif pieces:
                # Runs of hyphens ("a--b") stay on the left-hand piece.
                pieces[-1] += piece
            else:
                carry += piece
        if carry:
            pieces.append(carry)
        return pieces

    if not _DASH_SPLIT_RE.search(token):
        return [token]

    result: list[str] = []
    for part in _DASH_SPLIT_RE.split(token):
        if part in _DASH_MARKS:
            if result:
                result[-1] += part
            else:
                result.append(part)
        elif part:
            result.append(part)
    return result


def is_decorative_punctuation(token: str) -> bool:
    """Return True for scene-separator glyphs that are shown but never indexed."""

    return bool(_DECORATIVE_RE.match(token))


def is_leading_punctuation(token: str) -> bool:
    return bool(_LEADING_PUNCTUATION_RE.match(token))


def is_trailing_punctuation(token: str) -> bool:
    return bool(_TRAILING_PUNCTUATION_RE.match(token))


def merge_orphaned_groups(tokens: list[str]) -> list[list[int]]:
    """Group token positions into the runs that merge into one output token.

    The groups are contiguous, cover every input position exactly once and
    appear in order, so ``"".join(tokens[i] for i in group)`` is the merged
    token for each group.
    """

    groups: list[list[int]] = []
    i = 0
    count = len(tokens)
    while i < count:
        if is_leading_punctuation(tokens[i]) and i + 1 < count:
            # a run of openers such as "( “" folds into the word that follows
            group = [i]
            i += 1
            while i + 1 < count and is_leading_punctuation(tokens[i]):
                group.append(i)
                i += 1
            group.append(i)
            i += 1
            while i < count and is_trailing_punctuation(tokens[i]):
                group.append(i)
                i += 1
            groups.append(group)
            continue

        group = [i]
        i += 1
        while i < count and is_trailing_punctuation(tokens[i]):
            group.append(i)
            i += 1
        groups.append(group)
    return groups


def merge_orphaned_punctuation(tokens: list[str]) -> list[str]:
    """Reattach punctuation-only tokens to their neighbours.

    ``["the", "end", "."]`` becomes ``["the", "end."]`` and
    ``["(", "some", "text", ")"]`` becomes ``["(some", "text)"]``.
    """

    return ["".join(tokens[i] for i in group) for group in merge_orphaned_groups(tokens)]


def split_words(text: str) -> list[str]:
    """Whitespace split followed by dash splitting."""

    return [piece for raw in _WHITESPACE_RE.split(text) if raw for piece in split_on_dashes(raw)]


def tokenize(text: str) -> list[str]:
    """Turn one raw text run into display-ready words."""

    words = [word for word in split_words(text) if not is_decorative_punctuation(word)]
    return merge_orphaned_punctuation(words)
