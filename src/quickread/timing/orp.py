"""ORP (Optimal Recognition Point) and per-word display timing."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache

import regex

MIN_WPM = 100
MAX_WPM = 900
DEFAULT_WPM = 300
WPM_STEP = 50

PUNCTUATION_DELAY_MULTIPLIER = 1.5
LONG_WORD_THRESHOLD = 10
LONG_WORD_DELAY_MULTIPLIER = 1.2
NAME_DELAY_MULTIPLIER = 1.3
NUMBER_DELAY_MULTIPLIER = 1.3

PAUSE_PUNCTUATION = frozenset({".", ",", ";", ":", "!", "?", "—", "–"})
SENTENCE_END_PUNCTUATION = frozenset({".", "!", "?"})

_GRAPHEME_RE = regex.compile(r"\X")
_DIGIT_RE = regex.compile(r"\d")
_FIRST_LETTER_RE = regex.compile(r"[a-zA-Z]")
_NON_LETTER_RE = regex.compile(r"[^a-zA-Z]")


@dataclass(frozen=True, slots=True)
class OrpSplit:
    """A word split around its fixation character."""

    before: str
    orp: str
    after: str


@lru_cache(maxsize=4096)
def graphemes(word: str) -> tuple[str, ...]:
    """Segment a word into user-perceived characters (extended grapheme clusters)."""

    return tuple(_GRAPHEME_RE.findall(word))


def orp_index(word: str) -> int:
    """Return the grapheme index where the eye should fixate.

    * 1-2 characters: first character
    * 3-6 characters: second character
    * 7-9 characters: third character
    * 10+ characters: fourth character
    """

    length = len(graphemes(word))
    if length <= 2:
        return 0
    if length <= 6:
        return 1
    if length <= 9:
        return 2
    return 3


def split_at_orp(word: str) -> OrpSplit:
    if not word:
        return OrpSplit("", "", "")

    chars = graphemes(word)
    index = orp_index(word)
    return OrpSplit(
        before="".join(chars[:index]),
        orp=chars[index] if index < len(chars) else "",
        after="".join(chars[index + 1 :]),
    )


def contains_number(word: str) -> bool:
    return bool(_DIGIT_RE.search(word))


def looks_like_name(word: str) -> bool:
    """Capitalized, not all caps, with at least two letters after leading punctuation."""

    if len(word) < 2:
        return False
    first = _FIRST_LETTER_RE.search(word)
    if first is None:
        return False
    letters = _NON_LETTER_RE.sub("", word[first.start() :])
    if len(letters) < 2:
        return False
    if not letters[0].isupper():
        return False
    return letters != letters.upper()


def _round_ms(value: float) -> int:
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def word_duration(
    word: str,
    wpm: float,
    punctuation_multiplier: float = PUNCTUATION_DELAY_MULTIPLIER,
    long_word_multiplier: float = LONG_WORD_DELAY_MULTIPLIER,
    long_word_threshold: int = LONG_WORD_THRESHOLD,
    name_multiplier: float = NAME_DELAY_MULTIPLIER,
    number_multiplier: float = NUMBER_DELAY_MULTIPLIER,
) -> int:
    """Display duration for one word in milliseconds."""

    if wpm <= 0:
        raise ValueError("wpm must be positive")

    duration = 60000 / wpm
    if word and word[-1] in PAUSE_PUNCTUATION:
        duration *= punctuation_multiplier
    if len(graphemes(word)) >= long_word_threshold:
        duration *= long_word_multiplier
    if name_multiplier > 1 and looks_like_name(word):
        duration *= name_multiplier
    if number_multiplier > 1 and contains_number(word):
        duration *= number_multiplier
    return _round_ms(duration)


def clamp_wpm(value: int) -> int:
    return max(MIN_WPM, min(MAX_WPM, value))


@dataclass(frozen=True, slots=True)
class TimingProfile:
    """Multiplier set applied by the playback scheduler to every word."""

    punctuation_multiplier: float = PUNCTUATION_DELAY_MULTIPLIER
    long_word_multiplier: float = LONG_WORD_DELAY_MULTIPLIER
    long_word_threshold: int = LONG_WORD_THRESHOLD
    name_multiplier: float = NAME_DELAY_MULTIPLIER
    number_multiplier: float = NUMBER_DELAY_MULTIPLIER

    def duration(self, word: str, wpm: float) -> int:
        return word_duration(
            word,
            wpm,
            self.punctuation_multiplier,
            self.long_word_multiplier,
            self.long_word_threshold,
            self.name_multiplier,
            self.number_multiplier,
        )

    def durations(self, words: list[str], wpm: float) -> list[int]:
        return [self.duration(word, wpm) for word in words]
