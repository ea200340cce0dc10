#!/usr/bin/env python3

"""Token definitions for the declaration subset."""

from dataclasses import dataclass, field
from enum import Enum, auto


class TokenKind(Enum):
    IDENTIFIER = auto()
    INTEGER = auto()
    FLOAT = auto()
    STRING = auto()
    CHARACTER = auto()
    PUNCTUATION = auto()
    EOF = auto()


class CommentKind(Enum):
    LINE = "line"
    BLOCK = "block"


@dataclass(frozen=True)
class Comment:
    """Comment trivia; ``text`` excludes the ``//`` or ``/* */`` markers."""

    kind: CommentKind
    text: str
    line: int
    column: int


@dataclass
class Token:
    """A lexed token with the comments that precede it attached as trivia."""

    kind: TokenKind
    value: str
    line: int
    column: int
    leading_comments: list[Comment] = field(default_factory=list)

    def is_punct(self, *values: str) -> bool:
        return self.kind == TokenKind.PUNCTUATION and self.value in values

    def is_word(self, *values: str) -> bool:
        return self.kind == TokenKind.IDENTIFIER and self.value in values


# Longest match first
PUNCTUATORS = (
    "...",
    "<<=",
    ">>=",
    "::",
    "->",
    "<<",
    ">>",
    "&&",
    "||",
    "==",
    "!=",
    "<=",
    ">=",
    "+=",
    "-=",
    "*=",
    "/=",
    "%=",
    "&=",
    "|=",
    "^=",
    "++",
    "--",
)

SINGLE_PUNCTUATORS = frozenset("{}[]()<>;:,.=+-*/%&|^~!?#")
