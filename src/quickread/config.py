"""Runtime configuration for the reader pipeline and CLI."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping

from quickread.ingestion.builder import DEFAULT_WORDS_PER_PAGE
from quickread.ingestion.pagination import DEFAULT_MIN_WORDS_PER_PAGE
from quickread.timing.orp import (
    DEFAULT_WPM,
    LONG_WORD_DELAY_MULTIPLIER,
    LONG_WORD_THRESHOLD,
    MAX_WPM,
    MIN_WPM,
    NAME_DELAY_MULTIPLIER,
    NUMBER_DELAY_MULTIPLIER,
    PUNCTUATION_DELAY_MULTIPLIER,
    TimingProfile,
)


def _parse_int(*, name: str, raw_value: str, minimum: int = 1, maximum: int | None = None) -> int:
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must be <= {maximum}")
    return value


def _parse_multiplier(*, name: str, raw_value: str, minimum: float = 1.0) -> float:
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


@dataclass(frozen=True, slots=True)
class ReaderSettings:
    """Validated reader runtime settings."""

    words_per_page: int = DEFAULT_WORDS_PER_PAGE
    min_words_per_page: int = DEFAULT_MIN_WORDS_PER_PAGE
    wpm: int = DEFAULT_WPM
    punctuation_multiplier: float = PUNCTUATION_DELAY_MULTIPLIER
    long_word_multiplier: float = LONG_WORD_DELAY_MULTIPLIER
    long_word_threshold: int = LONG_WORD_THRESHOLD
    name_multiplier: float = NAME_DELAY_MULTIPLIER
    number_multiplier: float = NUMBER_DELAY_MULTIPLIER

    @property
    def timing_profile(self) -> TimingProfile:
        return TimingProfile(
            punctuation_multiplier=self.punctuation_multiplier,
            long_word_multiplier=self.long_word_multiplier,
            long_word_threshold=self.long_word_threshold,
            name_multiplier=self.name_multiplier,
            number_multiplier=self.number_multiplier,
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ReaderSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        def raw(name: str, default: object) -> str:
            value = source.get(name, str(default)).strip()
            if not value:
                raise ValueError(f"{name} cannot be empty")
            return value

        return cls(
            words_per_page=_parse_int(
                name="QUICKREAD_WORDS_PER_PAGE",
                raw_value=raw("QUICKREAD_WORDS_PER_PAGE", DEFAULT_WORDS_PER_PAGE),
            ),
            min_words_per_page=_parse_int(
                name="QUICKREAD_MIN_WORDS_PER_PAGE",
                raw_value=raw("QUICKREAD_MIN_WORDS_PER_PAGE", DEFAULT_MIN_WORDS_PER_PAGE),
            ),
            wpm=_parse_int(
                name="QUICKREAD_WPM",
                raw_value=raw("QUICKREAD_WPM", DEFAULT_WPM),
                minimum=MIN_WPM,
                maximum=MAX_WPM,
            ),
            punctuation_multiplier=_parse_multiplier(
                name="QUICKREAD_PUNCTUATION_MULTIPLIER",
                raw_value=raw("QUICKREAD_PUNCTUATION_MULTIPLIER", PUNCTUATION_DELAY_MULTIPLIER),
            ),
            long_word_multiplier=_parse_multiplier(
                name="QUICKREAD_LONG_WORD_MULTIPLIER",
                raw_value=raw("QUICKREAD_LONG_WORD_MULTIPLIER", LONG_WORD_DELAY_MULTIPLIER),
            ),
            long_word_threshold=_parse_int(
                name="QUICKREAD_LONG_WORD_THRESHOLD",
                raw_value=raw("QUICKREAD_LONG_WORD_THRESHOLD", LONG_WORD_THRESHOLD),
            ),
            name_multiplier=_parse_multiplier(
                name="QUICKREAD_NAME_MULTIPLIER",
                raw_value=raw("QUICKREAD_NAME_MULTIPLIER", NAME_DELAY_MULTIPLIER),
            ),
            number_multiplier=_parse_multiplier(
                name="QUICKREAD_NUMBER_MULTIPLIER",
                raw_value=raw("QUICKREAD_NUMBER_MULTIPLIER", NUMBER_DELAY_MULTIPLIER),
            ),
        )
