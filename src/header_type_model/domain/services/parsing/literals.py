#!/usr/bin/env python3

"""Numeric literal and offset annotation parsing.

Offset annotations are the trailing comments written next to fields by the
extraction tool. They are hexadecimal, with or without a ``0x`` prefix::

    float delta;              // 04
    uint8_t unk30[0x1B];      // 0x30 - 0x4B

A range keeps its first number. Comments that do not start with a number
(``// unused``) carry no offset.
"""

import re

_OFFSET_PATTERN = re.compile(r"^\s*(?P<prefix>0[xX])?(?P<digits>[0-9A-Fa-f]+)(?![\w.])")

_INTEGER_SUFFIX = re.compile(r"[uUlLzZ]+$")


def parse_integer_literal(text: str) -> int:
    """Parse a C++ integer literal (decimal, hex, binary or octal, with suffixes).

    Args:
        text: Literal as lexed, digit separators already removed

    Returns:
        Integer value

    Raises:
        ValueError: If the literal is malformed
    """
    digits = _INTEGER_SUFFIX.sub("", text)
    lowered = digits.lower()

    if lowered.startswith("0x"):
        return int(digits[2:], 16)
    if lowered.startswith("0b"):
        return int(digits[2:], 2)
    if len(digits) > 1 and digits.startswith("0"):
        return int(digits[1:], 8)
    return int(digits, 10)


def parse_float_literal(text: str) -> float:
    """Parse a floating literal, dropping ``f``/``l`` suffixes."""
    return float(text.rstrip("fFlL"))


def parse_offset_comment(text: str) -> int | None:
    """Extract the byte offset from a trailing field comment.

    Args:
        text: Comment body without the ``//`` marker

    Returns:
        Offset in bytes, or None if the comment is not an offset annotation

    Examples:
        >>> parse_offset_comment(" 0C")
        12
        >>> parse_offset_comment(" 0x4B - 0x30")
        75
        >>> parse_offset_comment(" dead code") is None
        True
    """
    match = _OFFSET_PATTERN.match(text)
    if not match:
        return None

    digits = match.group("digits")
    # Without a 0x prefix, plain words made of hex letters ("add", "dead") are not offsets
    if match.group("prefix") is None and not any(ch.isdigit() for ch in digits):
        return None

    return int(digits, 16)
