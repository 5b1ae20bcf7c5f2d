"""Tests for shared utility functions."""

import pytest

from resy_bot.utils import is_reset_command, location_words, parse_choice, to_12h


class TestParseChoice:
    def test_plain_number(self):
        assert parse_choice("2", 5) == 2

    def test_leading_digits_with_trailing_text(self):
        assert parse_choice("3 please", 5) == 3
        assert parse_choice("  1.", 5) == 1

    def test_bounds_inclusive(self):
        assert parse_choice("1", 5) == 1
        assert parse_choice("5", 5) == 5

    @pytest.mark.parametrize("text", ["0", "6", "99"])
    def test_out_of_range(self, text):
        assert parse_choice(text, 5) is None

    @pytest.mark.parametrize("text", ["sushi", "", "two", "-1"])
    def test_non_numeric(self, text):
        assert parse_choice(text, 5) is None

    def test_empty_menu(self):
        assert parse_choice("1", 0) is None


class TestLocationWords:
    def test_splits_on_punctuation(self):
        assert location_words("Williamsburg, Brooklyn") == ["williamsburg", "brooklyn"]

    def test_hyphen_and_period(self):
        assert location_words("Bed-Stuy St. Marks") == ["bed", "stuy", "marks"]

    def test_short_words_dropped(self):
        assert location_words("NY") == []
        assert location_words("LA") == []

    def test_lowercases(self):
        assert location_words("SoHo") == ["soho"]


class TestTo12h:
    @pytest.mark.parametrize("value,expected", [
        ("00:05", "12:05 AM"),
        ("09:00", "9:00 AM"),
        ("12:00", "12:00 PM"),
        ("19:30", "7:30 PM"),
        ("23:59", "11:59 PM"),
    ])
    def test_conversion(self, value, expected):
        assert to_12h(value) == expected

    def test_unknown_passes_through(self):
        assert to_12h("??:??") == "??:??"


class TestResetCommand:
    @pytest.mark.parametrize("text", ["reset", "RESET", "  start over ", "Start Over"])
    def test_recognized(self, text):
        assert is_reset_command(text)

    @pytest.mark.parametrize("text", ["restart", "reset please", "over", ""])
    def test_not_recognized(self, text):
        assert not is_reset_command(text)
