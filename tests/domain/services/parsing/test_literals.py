#!/usr/bin/env python3

"""Unit tests for literal and offset annotation parsing."""

import pytest

from header_type_model.domain.services.parsing import (
    parse_float_literal,
    parse_integer_literal,
    parse_offset_comment,
)


@pytest.mark.unit
class TestIntegerLiterals:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("0", 0),
            ("42", 42),
            ("0x4B", 75),
            ("0X10", 16),
            ("0b101", 5),
            ("017", 15),
            ("128u", 128),
            ("10ULL", 10),
        ],
    )
    def test_parse_integer_literal(self, text, expected):
        assert parse_integer_literal(text) == expected

    def test_malformed_integer_raises(self):
        with pytest.raises(ValueError):
            parse_integer_literal("0xZZ")

    def test_parse_float_literal(self):
        assert parse_float_literal("3.5f") == 3.5
        assert parse_float_literal("1e3") == 1000.0


@pytest.mark.unit
class TestOffsetComments:
    @pytest.mark.parametrize(
        "text, expected",
        [
            (" 00", 0),
            (" 04", 4),
            (" 0C", 12),
            (" 10", 16),
            (" 0x30", 48),
            (" 0x4B - 0x30", 75),
            ("1C", 28),
        ],
    )
    def test_offsets_are_hexadecimal(self, text, expected):
        assert parse_offset_comment(text) == expected

    @pytest.mark.parametrize("text", [" unused", " add", " dead code", "", " TODO: check"])
    def test_non_offset_comments(self, text):
        assert parse_offset_comment(text) is None
