#!/usr/bin/env python3

"""Parsing of declaration files into the type model."""

from .declaration_parser import DeclarationParser, ParseResult, parse_source
from .literals import parse_float_literal, parse_integer_literal, parse_offset_comment

__all__ = [
    "DeclarationParser",
    "ParseResult",
    "parse_float_literal",
    "parse_integer_literal",
    "parse_offset_comment",
    "parse_source",
]
