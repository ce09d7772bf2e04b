from __future__ import annotations

import pytest

from quickread.config import ReaderSettings


def test_settings_defaults_when_environment_is_empty() -> None:
    settings = ReaderSettings.from_env({})

    assert settings.words_per_page == 250
    assert settings.min_words_per_page == 20
    assert settings.wpm == 300
    assert settings.timing_profile.duration("end.", settings.wpm) == 300


def test_settings_load_overrides_from_env() -> None:
    settings = ReaderSettings.from_env(
        {
            "QUICKREAD_WORDS_PER_PAGE": "120",
            "QUICKREAD_MIN_WORDS_PER_PAGE": "10",
            "QUICKREAD_WPM": "450",
            "QUICKREAD_NAME_MULTIPLIER": "1.0",
            "QUICKREAD_LONG_WORD_THRESHOLD": "8",
        }
    )

    assert settings.words_per_page == 120
    assert settings.min_words_per_page == 10
    assert settings.wpm == 450
    assert settings.timing_profile.duration("Alice", 300) == 200
    assert settings.timing_profile.long_word_threshold == 8


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("QUICKREAD_WORDS_PER_PAGE", "0", "QUICKREAD_WORDS_PER_PAGE must be >= 1"),
        ("QUICKREAD_WORDS_PER_PAGE", "many", "QUICKREAD_WORDS_PER_PAGE must be an integer"),
        ("QUICKREAD_WPM", "50", "QUICKREAD_WPM must be >= 100"),
        ("QUICKREAD_WPM", "1000", "QUICKREAD_WPM must be <= 900"),
        ("QUICKREAD_PUNCTUATION_MULTIPLIER", "0.5", "QUICKREAD_PUNCTUATION_MULTIPLIER must be >= 1.0"),
        ("QUICKREAD_NUMBER_MULTIPLIER", "slow", "QUICKREAD_NUMBER_MULTIPLIER must be a number"),
        ("QUICKREAD_MIN_WORDS_PER_PAGE", "  ", "QUICKREAD_MIN_WORDS_PER_PAGE cannot be empty"),
    ],
)
def test_settings_invalid_values_name_the_variable(name: str, value: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        ReaderSettings.from_env({name: value})
