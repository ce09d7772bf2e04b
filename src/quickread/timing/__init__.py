"""Timing model consumed by the playback scheduler."""

from .orp import (
    DEFAULT_WPM,
    MAX_WPM,
    MIN_WPM,
    WPM_STEP,
    OrpSplit,
    TimingProfile,
    clamp_wpm,
    contains_number,
    graphemes,
    looks_like_name,
    orp_index,
    split_at_orp,
    word_duration,
)

__all__ = [
    "DEFAULT_WPM",
    "MAX_WPM",
    "MIN_WPM",
    "WPM_STEP",
    "OrpSplit",
    "TimingProfile",
    "clamp_wpm",
    "contains_number",
    "graphemes",
    "looks_like_name",
    "orp_index",
    "split_at_orp",
    "word_duration",
]
