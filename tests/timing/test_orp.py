from __future__ import annotations

import pytest

from quickread.timing import (
    MAX_WPM,
    MIN_WPM,
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


@pytest.mark.parametrize(
    ("length", "expected"),
    [(1, 0), (2, 0), (6, 1), (7, 2), (9, 2), (10, 3), (11, 3)],
)
def test_orp_index_matches_length_table(length: int, expected: int) -> None:
    assert orp_index("x" * length) == expected


def test_orp_uses_grapheme_clusters() -> None:
    word = "cafe\u0301"  # e + combining acute accent
    family = "\U0001F468\u200d\U0001F469\u200d\U0001F467"

    assert len(graphemes(word)) == 4
    assert orp_index(word) == 1
    assert split_at_orp(word) == OrpSplit(before="c", orp="a", after="fe\u0301")
    assert graphemes(family) == (family,)
    assert split_at_orp(family) == OrpSplit(before="", orp=family, after="")


def test_split_at_orp_handles_empty_word() -> None:
    assert split_at_orp("") == OrpSplit("", "", "")


def test_word_duration_applies_punctuation_multiplier_only() -> None:
    assert word_duration("end.", 300, 1.5, 1.2, 10, 1.3, 1.3) == round(60000 / 300 * 1.5)
    assert word_duration("end.", 300, 1.5, 1.2, 10, 1.3, 1.3) == 300


def test_word_duration_composes_multipliers() -> None:
    assert word_duration("plain", 300) == 200
    assert word_duration("Alice", 300) == 260
    assert word_duration("(Alice)", 300) == 260
    assert word_duration("NASA", 300) == 200
    assert word_duration("1984", 300) == 260
    assert word_duration("extraordinary", 300) == 240
    assert word_duration("Hello,", 300) == 390


def test_word_duration_rounds_half_up() -> None:
    assert word_duration("end.", 800) == 113


def test_word_duration_rejects_non_positive_wpm() -> None:
    with pytest.raises(ValueError, match="wpm"):
        word_duration("word", 0)


def test_name_and_number_detection() -> None:
    assert looks_like_name("Paris")
    assert looks_like_name("“Holmes,")
    assert not looks_like_name("paris")
    assert not looks_like_name("USA")
    assert not looks_like_name("A")
    assert contains_number("B-52")
    assert not contains_number("fifty")


def test_clamp_wpm_stays_in_supported_range() -> None:
    assert clamp_wpm(10) == MIN_WPM
    assert clamp_wpm(5000) == MAX_WPM
    assert clamp_wpm(450) == 450


def test_timing_profile_maps_words_to_durations() -> None:
    profile = TimingProfile()

    assert profile.durations(["end.", "Alice", "word"], 300) == [300, 260, 200]
    assert TimingProfile(name_multiplier=1.0).duration("Alice", 300) == 200
